"""
Shared fixtures for building analysis state files with h5py.

The builders write a complete, valid stage for a given format version; tests
then break one field to exercise a single rule.
"""

from types import SimpleNamespace
from typing import Dict, Optional, Sequence

import h5py
import numpy as np
import pytest

STATISTICS = ["means", "detected", "lfc", "delta_detected", "cohen", "auc"]


def write_string(group: h5py.Group, name: str, value: str):
    group.create_dataset(name, data=value, dtype=h5py.string_dtype())


def write_strings(group: h5py.Group, name: str, values: Sequence[str]):
    group.create_dataset(
        name, data=np.array(list(values), dtype=object), dtype=h5py.string_dtype()
    )


def write_int(group: h5py.Group, name: str, value: int):
    group.create_dataset(name, data=np.int32(value))


def write_ints(group: h5py.Group, name: str, values: Sequence[int]):
    group.create_dataset(name, data=np.asarray(values, dtype=np.int32))


def write_inputs(
    root: h5py.Group,
    version: int,
    formats: Sequence[str] = ("MatrixMarket",),
    file_types: Sequence[str] = ("mtx", "genes"),
    sizes: Optional[Sequence[int]] = None,
    offsets: Optional[Sequence[int]] = None,
    embedded: bool = True,
    sample_groups: Optional[Sequence[int]] = None,
    sample_names: Optional[Sequence[str]] = None,
    num_features: Optional[Dict[str, int]] = None,
    num_cells: int = 100,
    num_samples: Optional[int] = None,
    sample_factor: Optional[str] = None,
    multi_matrix: Optional[bool] = None,
) -> h5py.Group:
    """Write a valid ``inputs`` group and return it."""
    if num_features is None:
        num_features = {"RNA": 20}
    if multi_matrix is None:
        multi_matrix = len(formats) > 1
    if sizes is None:
        sizes = [10 * (i + 1) for i in range(len(file_types))]
    if offsets is None:
        offsets = np.concatenate([[0], np.cumsum(sizes)[:-1]]).astype(int).tolist()

    ihandle = root.create_group("inputs")
    phandle = ihandle.create_group("parameters")

    if multi_matrix:
        write_strings(phandle, "format", formats)
        if sample_groups is None:
            sample_groups = [1] * len(formats)
        if sample_names is None:
            sample_names = [f"sample_{i}" for i in range(len(formats))]
        write_ints(phandle, "sample_groups", sample_groups)
        write_strings(phandle, "sample_names", sample_names)
    else:
        write_string(phandle, "format", formats[0])

    if sample_factor is not None:
        write_string(phandle, "sample_factor", sample_factor)

    fihandle = phandle.create_group("files")
    for i, ftype in enumerate(file_types):
        fhandle = fihandle.create_group(str(i))
        write_string(fhandle, "name", f"file_{i}.{ftype}")
        write_string(fhandle, "type", ftype)
        if embedded:
            write_int(fhandle, "offset", offsets[i])
            write_int(fhandle, "size", sizes[i])
        else:
            write_string(fhandle, "id", f"cache-{i}")

    rhandle = ihandle.create_group("results")
    modalities = list(num_features)
    counts = [num_features[m] for m in modalities]

    if version >= 2000000:
        write_int(rhandle, "num_cells", num_cells)
        nfhandle = rhandle.create_group("num_features")
        idhandle = rhandle.create_group("identities")
        for m, n in zip(modalities, counts):
            write_int(nfhandle, m, n)
            write_ints(idhandle, m, np.arange(n) * 2)
    else:
        write_ints(rhandle, "dimensions", [counts[0], num_cells])
        if version >= 1002000:
            write_ints(rhandle, "identities", np.arange(counts[0]) + 5)
        elif multi_matrix:
            write_ints(rhandle, "indices", np.arange(counts[0])[::-1] * 3)
        else:
            write_ints(rhandle, "permutation", np.arange(counts[0])[::-1])

    if num_samples is not None:
        write_int(rhandle, "num_samples", num_samples)
    elif multi_matrix:
        write_int(rhandle, "num_samples", len(formats))

    return ihandle


def write_pca(
    root: h5py.Group,
    version: int,
    num_cells: int = 100,
    num_pcs: int = 10,
    stored_pcs: Optional[int] = None,
    block_method: str = "none",
    corrected: Optional[bool] = None,
) -> h5py.Group:
    """Write a valid ``pca`` group and return it."""
    if stored_pcs is None:
        stored_pcs = num_pcs

    handle = root.create_group("pca")
    phandle = handle.create_group("parameters")
    write_int(phandle, "num_hvgs", 2000)
    write_int(phandle, "num_pcs", num_pcs)
    if version >= 1001000:
        write_string(phandle, "block_method", block_method)

    rhandle = handle.create_group("results")
    rhandle.create_dataset("pcs", data=np.zeros((num_cells, stored_pcs), dtype=np.float64))
    rhandle.create_dataset("var_exp", data=np.linspace(0.5, 0.01, stored_pcs))

    if corrected is None:
        corrected = block_method == "mnn" and 1001000 <= version < 2000000
    if corrected:
        rhandle.create_dataset(
            "corrected", data=np.ones((num_cells, stored_pcs), dtype=np.float32)
        )
    return handle


def write_combine_embeddings(
    root: h5py.Group,
    modalities: Sequence[str],
    num_cells: int = 100,
    total_dims: int = 25,
    weights: Optional[Dict[str, float]] = None,
    combined: Optional[bool] = None,
) -> h5py.Group:
    """Write a valid ``combine_embeddings`` group and return it."""
    handle = root.create_group("combine_embeddings")
    phandle = handle.create_group("parameters")
    phandle.create_dataset("approximate", data=True)
    whandle = phandle.create_group("weights")
    for m, w in (weights or {}).items():
        whandle.create_dataset(m, data=np.float64(w))

    rhandle = handle.create_group("results")
    if combined is None:
        combined = len(modalities) > 1
    if combined:
        rhandle.create_dataset(
            "combined", data=np.zeros((num_cells, total_dims), dtype=np.float64)
        )
    return handle


def write_statistics(group: h5py.Group, num_features: int):
    for stat in STATISTICS:
        group.create_dataset(stat, data=np.zeros(num_features, dtype=np.float64))


def write_custom_selections(
    root: h5py.Group,
    version: int,
    selections: Dict[str, Sequence[int]],
    num_features: Dict[str, int],
) -> h5py.Group:
    """Write a valid ``custom_selections`` group and return it."""
    handle = root.create_group("custom_selections")
    shandle = handle.create_group("parameters").create_group("selections")
    for name, indices in selections.items():
        write_ints(shandle, name, indices)

    rhandle = handle.create_group("results")
    if version >= 2000000:
        mhandle = rhandle.create_group("per_selection")
        for name in selections:
            sel = mhandle.create_group(name)
            for modality, n in num_features.items():
                write_statistics(sel.create_group(modality), n)
    else:
        mhandle = rhandle.create_group("markers")
        first = list(num_features.values())[0]
        for name in selections:
            write_statistics(mhandle.create_group(name), first)
    return handle


@pytest.fixture
def state_file(tmp_path):
    """An HDF5 state file open for writing, closed after the test."""
    with h5py.File(tmp_path / "state.h5", "w") as handle:
        yield handle


@pytest.fixture
def builders():
    """Namespace of the state file builders."""
    return SimpleNamespace(
        write_string=write_string,
        write_strings=write_strings,
        write_int=write_int,
        write_ints=write_ints,
        write_inputs=write_inputs,
        write_pca=write_pca,
        write_combine_embeddings=write_combine_embeddings,
        write_statistics=write_statistics,
        write_custom_selections=write_custom_selections,
    )
