"""Validation of the ingestion stage.

Contents live in an ``inputs`` group at the root of the state file, holding
``parameters`` and ``results`` subgroups.

``parameters`` contains:

- ``format``: a string scalar naming the format of a single matrix, usually
  ``"MatrixMarket"``, ``"10X"`` or ``"H5AD"``. From version 1.1 it may instead
  be a 1-dimensional string dataset with one entry per matrix. Other values
  denote custom resources and are not interpreted.
- ``files``: a group of groups named ``"0"``, ``"1"``, ... Each holds a ``name``
  and a ``type`` string, plus ``offset`` and ``size`` integers for embedded
  files or an ``id`` string for linked files. Embedded files must tile the
  embedded byte section in order, starting at zero.
- ``sample_groups`` and ``sample_names`` (multiple matrices only): the number
  of consecutive ``files`` entries belonging to each matrix, and a distinct
  name for each matrix.
- ``sample_factor`` (single matrix only, optional): a string naming the
  per-cell annotation that splits the matrix into samples.

``results`` contains the dataset dimensions (``dimensions`` before 2.0,
``num_cells`` plus a per-modality ``num_features`` group from 2.0), an
optional ``num_samples`` and the row identities of the loaded dataset, stored
as ``permutation``/``indices`` before 1.2, as a flat ``identities`` dataset
before 2.0, and as a per-modality ``identities`` group from 2.0.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import h5py
import numpy as np

from ..errors import (
    error_context,
    inconsistency,
    range_violation,
    shape_mismatch,
    type_mismatch,
    unknown_value,
    uniqueness_violation,
)
from ..storage.h5_utils import (
    PrimitiveType,
    has_entry,
    list_children,
    load_integer_scalar,
    load_integer_vector,
    load_string,
    load_string_vector,
    open_dataset,
    open_group,
    open_scalar,
    read_strings,
)
from .constants import DEFAULT_MODALITY, FILE_TYPE_RULES
from .details import Details
from .versions import RowIdentity, VersionRules, format_version, rules_for

logger = logging.getLogger(__name__)

STAGE = "inputs"


@dataclass(frozen=True)
class FileEntry:
    """One entry of ``parameters/files``."""

    position: int
    name: str
    type: str
    offset: Optional[int] = None
    size: Optional[int] = None


@dataclass(frozen=True)
class ParameterSummary:
    """What the results phase needs to know about the parameters."""

    formats: Tuple[str, ...]
    multi_matrix: bool
    multi_sample: bool
    files: Tuple[FileEntry, ...]

    @property
    def num_matrices(self) -> int:
        return len(self.formats)


def _load_formats(phandle: h5py.Group, rules: VersionRules) -> Tuple[List[str], bool]:
    dset = open_dataset(phandle, "format", PrimitiveType.STRING)
    if dset.shape == ():
        return [read_strings(dset)], False

    if not rules.multi_matrix:
        raise type_mismatch(
            f"'format' should be a scalar string in version {rules.label}"
        )
    if len(dset.shape) != 1:
        raise shape_mismatch("'format' should be a scalar or 1-dimensional dataset")
    return read_strings(dset), True


def _load_sample_groups(
    phandle: h5py.Group, formats: Sequence[str], num_files: int
) -> List[int]:
    runs = load_integer_vector(phandle, "sample_groups")
    if len(runs) != len(formats):
        raise inconsistency("'sample_groups' and 'format' should have the same length")
    if (runs < 0).any():
        raise range_violation("'sample_groups' should contain non-negative values")
    if int(runs.sum()) != num_files:
        raise inconsistency(
            f"sum of 'sample_groups' ({int(runs.sum())}) is not equal to "
            f"the number of 'files' ({num_files})"
        )

    names = load_string_vector(phandle, "sample_names")
    if len(names) != len(formats):
        raise inconsistency("'sample_names' and 'format' should have the same length")

    seen = set()
    for name in names:
        if name in seen:
            raise uniqueness_violation(f"duplicated sample name '{name}' in 'sample_names'")
        seen.add(name)

    return [int(r) for r in runs]


def _load_file_entry(fihandle: h5py.Group, position: int, embedded: bool) -> FileEntry:
    fhandle = open_group(fihandle, str(position))
    name = load_string(fhandle, "name")
    ftype = load_string(fhandle, "type")

    if not embedded:
        open_scalar(fhandle, "id", PrimitiveType.STRING)
        return FileEntry(position=position, name=name, type=ftype)

    offset = load_integer_scalar(fhandle, "offset")
    if offset < 0:
        raise range_violation(f"'offset' should be non-negative, got {offset}")
    size = load_integer_scalar(fhandle, "size")
    if size < 0:
        raise range_violation(f"'size' should be non-negative, got {size}")
    return FileEntry(position=position, name=name, type=ftype, offset=offset, size=size)


def _describe_count(lo: int, hi: int) -> str:
    if lo == hi:
        return f"exactly {lo}"
    if lo == 0:
        return f"no more than {hi}"
    return f"between {lo} and {hi}"


def check_file_types(fmt: str, types: Sequence[str]) -> None:
    """Check the file types of one matrix against the rules for its format.

    Formats without rules are custom resources and accept any types.
    """
    allowed = FILE_TYPE_RULES.get(fmt)
    if allowed is None:
        return

    for ftype in types:
        if ftype not in allowed:
            raise unknown_value(f"unknown file type '{ftype}' when format is '{fmt}'")

    counts = Counter(types)
    for ftype, (lo, hi) in allowed.items():
        found = counts.get(ftype, 0)
        if not lo <= found <= hi:
            raise inconsistency(
                f"expected {_describe_count(lo, hi)} '{ftype}' file(s) when "
                f"format is '{fmt}', found {found}"
            )


def check_contiguous(byte_ranges: Sequence[Tuple[int, int]]) -> None:
    """Check that ``(offset, size)`` pairs, in file order, tile ``[0, total)``."""
    expected = 0
    for position, (offset, size) in enumerate(byte_ranges):
        if offset != expected:
            raise inconsistency(
                f"offsets and sizes of 'files' are not sorted and contiguous: "
                f"file {position} starts at {offset}, expected {expected}"
            )
        expected = offset + size


def validate_parameters(
    handle: h5py.Group, embedded: bool, version: int
) -> ParameterSummary:
    """Validate ``inputs/parameters``.

    Args:
        handle: The open ``inputs`` group.
        embedded: Whether files are stored as byte ranges inside the state file.
        version: Version of the state file.

    Returns:
        Summary of the matrices and samples declared by the parameters.
    """
    rules = rules_for(version)
    phandle = open_group(handle, "parameters")

    formats, multi_matrix = _load_formats(phandle, rules)
    fihandle = open_group(phandle, "files")
    num_files = len(list_children(fihandle))

    if multi_matrix:
        runs = _load_sample_groups(phandle, formats, num_files)
    else:
        runs = [num_files]

    files: List[FileEntry] = []
    for r, (fmt, run) in enumerate(zip(formats, runs)):
        types = []
        for _ in range(run):
            position = len(files)
            with error_context(f"file {position}"):
                entry = _load_file_entry(fihandle, position, embedded)
            files.append(entry)
            types.append(entry.type)

        with error_context(f"matrix {r}"):
            check_file_types(fmt, types)

    if embedded:
        check_contiguous([(f.offset, f.size) for f in files])

    if not multi_matrix and has_entry(phandle, "sample_factor"):
        open_scalar(phandle, "sample_factor", PrimitiveType.STRING)
        multi_sample = True
    else:
        multi_sample = multi_matrix

    logger.debug(
        f"Parameters: formats={formats}, files={len(files)}, "
        f"multi_matrix={multi_matrix}, multi_sample={multi_sample}"
    )
    return ParameterSummary(
        formats=tuple(formats),
        multi_matrix=multi_matrix,
        multi_sample=multi_sample,
        files=tuple(files),
    )


def _load_dimensions(
    rhandle: h5py.Group, rules: VersionRules
) -> Tuple[List[str], List[int], int]:
    if not rules.multimodal:
        dims = load_integer_vector(rhandle, "dimensions", 2)
        if (dims < 0).any():
            raise range_violation("'dimensions' should contain non-negative integers")
        return [DEFAULT_MODALITY], [int(dims[0])], int(dims[1])

    num_cells = load_integer_scalar(rhandle, "num_cells")
    if num_cells < 0:
        raise range_violation(f"'num_cells' should be non-negative, got {num_cells}")

    fhandle = open_group(rhandle, "num_features")
    modalities = list_children(fhandle)
    if not modalities:
        raise range_violation("'num_features' should contain at least one modality")

    num_features = []
    for modality in modalities:
        with error_context(f"modality '{modality}'"):
            count = load_integer_scalar(fhandle, modality)
            if count < 0:
                raise range_violation(
                    f"number of features should be non-negative, got {count}"
                )
        num_features.append(count)
    return modalities, num_features, num_cells


def _load_num_samples(rhandle: h5py.Group, params: ParameterSummary) -> int:
    num_samples = 1
    if has_entry(rhandle, "num_samples"):
        num_samples = load_integer_scalar(rhandle, "num_samples")
        if num_samples < 1:
            raise range_violation(f"'num_samples' should be positive, got {num_samples}")

    if params.multi_matrix:
        if num_samples != params.num_matrices:
            raise inconsistency(
                f"'num_samples' ({num_samples}) should be equal to the number of "
                f"matrices ({params.num_matrices})"
            )
    elif not params.multi_sample and num_samples != 1:
        raise inconsistency(
            "'num_samples' should be 1 for single matrix inputs without 'sample_factor'"
        )
    return num_samples


def _duplicates(values: np.ndarray) -> List[int]:
    uniq, counts = np.unique(values, return_counts=True)
    return uniq[counts > 1].tolist()


def check_unique_indices(values: np.ndarray, label: str) -> None:
    """Require non-negative, pairwise distinct row indices."""
    if values.size and values.min() < 0:
        raise range_violation(f"{label} contains negative values")
    dups = _duplicates(values)
    if dups:
        raise uniqueness_violation(
            f"{label} contains duplicate values: {dups[:5]}{'...' if len(dups) > 5 else ''}"
        )


def check_permutation(values: np.ndarray, label: str) -> None:
    """Require ``values`` to be a permutation of ``0, ..., len(values) - 1``.

    Values inside ``[0, n)`` with no repeats cover every index exactly once.
    """
    n = values.size
    if n and (values.min() < 0 or values.max() >= n):
        raise range_violation(f"{label} contains out-of-range values")
    dups = _duplicates(values)
    if dups:
        raise uniqueness_violation(
            f"duplicated index in {label}: {dups[:5]}{'...' if len(dups) > 5 else ''}"
        )


def _check_legacy_identities(rhandle, params, modalities, num_features) -> None:
    if params.multi_matrix:
        indices = load_integer_vector(rhandle, "indices", num_features[0])
        check_unique_indices(indices, "'indices'")
    else:
        perm = load_integer_vector(rhandle, "permutation", num_features[0])
        check_permutation(perm, "'permutation'")


def _check_flat_identities(rhandle, params, modalities, num_features) -> None:
    ids = load_integer_vector(rhandle, "identities", num_features[0])
    check_unique_indices(ids, "'identities'")


def _check_modality_identities(rhandle, params, modalities, num_features) -> None:
    ihandle = open_group(rhandle, "identities")
    for modality, count in zip(modalities, num_features):
        with error_context(f"modality '{modality}'"):
            ids = load_integer_vector(ihandle, modality, count)
            check_unique_indices(ids, "'identities'")


_ROW_IDENTITY_CHECKS = {
    RowIdentity.LEGACY: _check_legacy_identities,
    RowIdentity.FLAT: _check_flat_identities,
    RowIdentity.PER_MODALITY: _check_modality_identities,
}


def validate_results(
    handle: h5py.Group, params: ParameterSummary, version: int
) -> Details:
    """Validate ``inputs/results`` against the already-validated parameters."""
    rules = rules_for(version)
    rhandle = open_group(handle, "results")

    modalities, num_features, num_cells = _load_dimensions(rhandle, rules)
    num_samples = _load_num_samples(rhandle, params)
    _ROW_IDENTITY_CHECKS[rules.row_identity](rhandle, params, modalities, num_features)

    return Details(
        modalities=tuple(modalities),
        num_features=tuple(num_features),
        num_cells=num_cells,
        num_samples=num_samples,
    )


def validate(handle: h5py.Group, embedded: bool, version: int) -> Details:
    """Check the contents of the ingestion stage.

    Args:
        handle: Root group of the state file.
        embedded: Whether input files are embedded in the state file as byte
            ranges (``True``) or linked by ``id`` (``False``).
        version: Version of the state file.

    Returns:
        Details about the loaded dataset, for use by later stages.

    Raises:
        ValidationError: On the first violation found, with a message naming
            the path from ``inputs`` to the failing entry.
    """
    logger.info(
        f"Validating '{STAGE}' (version {format_version(version)}, embedded={embedded})"
    )
    with error_context(STAGE):
        ihandle = open_group(handle, STAGE)
        with error_context("parameters"):
            params = validate_parameters(ihandle, embedded, version)
        with error_context("results"):
            details = validate_results(ihandle, params, version)

    logger.info(
        f"✓ '{STAGE}' is valid: {details.num_cells} cells, "
        f"{details.num_samples} sample(s), modalities {list(details.modalities)}"
    )
    return details
