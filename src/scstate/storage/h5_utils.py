"""HDF5 access helpers for analysis-state files.

These helpers open groups and datasets by name and check their type and shape,
raising :class:`~scstate.errors.ValidationError` with a
``MISSING_ENTRY``, ``TYPE_MISMATCH`` or ``SHAPE_MISMATCH`` kind when the
container does not match. They never attach context; callers do that.

Type conventions:

- ``INTEGER`` datasets have a signed, unsigned or boolean numpy dtype, as h5py
  maps HDF5 boolean enums to numpy booleans.
- ``FLOAT`` datasets have a floating point dtype.
- ``STRING`` datasets have any h5py string dtype (fixed or variable length).
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional, Sequence, Union

import h5py
import numpy as np

from ..errors import missing_entry, range_violation, shape_mismatch, type_mismatch

Shape = Sequence[Optional[int]]

_INT64_MAX = int(np.iinfo(np.int64).max)


class PrimitiveType(Enum):
    """Primitive value types stored in the container."""

    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"


_DESCRIPTIONS = {
    PrimitiveType.INTEGER: "an integer",
    PrimitiveType.FLOAT: "a float",
    PrimitiveType.STRING: "a string",
}


def _matches(dtype: np.dtype, expected: PrimitiveType) -> bool:
    if expected is PrimitiveType.STRING:
        return h5py.check_string_dtype(dtype) is not None
    if expected is PrimitiveType.INTEGER:
        return dtype.kind in "iub"
    return dtype.kind == "f"


def _format_shape(shape: Shape) -> str:
    dims = ["*" if d is None else str(d) for d in shape]
    if len(dims) == 1:
        return f"({dims[0]},)"
    return "(" + ", ".join(dims) + ")"


def has_entry(parent: h5py.Group, name: str) -> bool:
    return name in parent


def list_children(group: h5py.Group) -> List[str]:
    """Names of the children of ``group`` in HDF5 enumeration order."""
    return list(group.keys())


def open_group(parent: h5py.Group, name: str) -> h5py.Group:
    """Open the child group ``name``."""
    obj = parent.get(name)
    if obj is None:
        raise missing_entry(f"'{name}' is missing")
    if not isinstance(obj, h5py.Group):
        raise type_mismatch(f"'{name}' should be a group")
    return obj


def open_dataset(
    parent: h5py.Group, name: str, expected_type: PrimitiveType
) -> h5py.Dataset:
    """Open the child dataset ``name`` of any rank and check its type."""
    obj = parent.get(name)
    if obj is None:
        raise missing_entry(f"'{name}' is missing")
    if not isinstance(obj, h5py.Dataset):
        raise type_mismatch(f"'{name}' should be a dataset")
    if not _matches(obj.dtype, expected_type):
        raise type_mismatch(
            f"'{name}' should be {_DESCRIPTIONS[expected_type]} dataset, found {obj.dtype}"
        )
    if obj.shape is None:
        raise shape_mismatch(f"'{name}' has an empty dataspace")
    return obj


def open_scalar(
    parent: h5py.Group, name: str, expected_type: PrimitiveType
) -> h5py.Dataset:
    """Open a rank-0 dataset."""
    dset = open_dataset(parent, name, expected_type)
    if dset.shape != ():
        raise shape_mismatch(
            f"'{name}' should be a scalar, found shape {_format_shape(dset.shape)}"
        )
    return dset


def open_array(
    parent: h5py.Group,
    name: str,
    expected_type: PrimitiveType,
    expected_shape: Optional[Shape] = None,
) -> h5py.Dataset:
    """Open a dataset of rank one or more.

    Args:
        parent: Group containing the dataset.
        name: Name of the dataset.
        expected_type: Required primitive type.
        expected_shape: Required shape; ``None`` entries accept any extent.
            If omitted, any non-scalar shape is accepted.

    Returns:
        The open dataset. Values are not read.
    """
    dset = open_dataset(parent, name, expected_type)
    if dset.shape == ():
        raise shape_mismatch(f"'{name}' should be an array, found a scalar")

    if expected_shape is not None:
        ok = len(dset.shape) == len(expected_shape) and all(
            e is None or e == d for e, d in zip(expected_shape, dset.shape)
        )
        if not ok:
            raise shape_mismatch(
                f"'{name}' should have shape {_format_shape(expected_shape)}, "
                f"found {_format_shape(dset.shape)}"
            )
    return dset


def _decode(value) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


def read_strings(dset: h5py.Dataset) -> Union[str, List[str]]:
    """Read a string dataset as a ``str`` (scalar) or a list of ``str``.

    Raises a ``TYPE_MISMATCH`` error if the stored bytes are not valid UTF-8.
    """
    raw = dset[()]
    try:
        if dset.shape == ():
            return _decode(raw)
        return [_decode(v) for v in np.asarray(raw).ravel().tolist()]
    except UnicodeDecodeError:
        name = dset.name.rsplit("/", 1)[-1]
        raise type_mismatch(f"'{name}' is not a valid UTF-8 string") from None


def load_integer_scalar(parent: h5py.Group, name: str) -> int:
    return int(open_scalar(parent, name, PrimitiveType.INTEGER)[()])


def load_float_scalar(parent: h5py.Group, name: str) -> float:
    return float(open_scalar(parent, name, PrimitiveType.FLOAT)[()])


def load_string(parent: h5py.Group, name: str) -> str:
    return read_strings(open_scalar(parent, name, PrimitiveType.STRING))


def load_integer_vector(
    parent: h5py.Group, name: str, length: Optional[int] = None
) -> np.ndarray:
    """Read a 1-dimensional integer dataset as an ``int64`` array."""
    dset = open_array(parent, name, PrimitiveType.INTEGER, (length,))
    raw = np.asarray(dset[()])
    if raw.dtype.kind == "u" and raw.size and int(raw.max()) > _INT64_MAX:
        raise range_violation(f"'{name}' contains values beyond the 64-bit signed range")
    return raw.astype(np.int64)


def load_string_vector(
    parent: h5py.Group, name: str, length: Optional[int] = None
) -> List[str]:
    """Read a 1-dimensional string dataset."""
    dset = open_array(parent, name, PrimitiveType.STRING, (length,))
    return read_strings(dset)
