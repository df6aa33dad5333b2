"""HDF5 access for analysis state files."""

from .h5_utils import PrimitiveType

__all__ = ["PrimitiveType"]
