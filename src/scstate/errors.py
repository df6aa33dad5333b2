"""Validation errors with an accumulating context chain.

Every validator that descends into a sub-structure (a stage, a file entry, a
selection, a modality) wraps faults raised underneath it with a short
description of that sub-structure. The rendered message of the final error is
therefore a breadcrumb from the container root down to the failing leaf, e.g.::

    inputs: parameters: file 2: 'offset' should be non-negative, got -5

Wrapping is done through :func:`error_context`, which is the only place
where contexts are attached.
"""

from __future__ import annotations

from contextlib import contextmanager
from enum import Enum
from typing import Any, Dict, Iterator, Tuple


class ErrorKind(Enum):
    """Enumeration of validation fault categories."""

    MISSING_ENTRY = "missing_entry"
    TYPE_MISMATCH = "type_mismatch"
    SHAPE_MISMATCH = "shape_mismatch"
    RANGE_VIOLATION = "range_violation"
    UNIQUENESS_VIOLATION = "uniqueness_violation"
    CROSS_FIELD_INCONSISTENCY = "cross_field_inconsistency"
    UNKNOWN_ENUM_VALUE = "unknown_enum_value"


class ValidationError(Exception):
    """A single structural or cross-field fault in a state container.

    Attributes
    ----------
    kind : ErrorKind
        Category of the innermost fault
    message : str
        Description of the innermost fault, without any context
    contexts : Tuple[str, ...]
        Enclosing scope descriptions, innermost first
    """

    def __init__(self, kind: ErrorKind, message: str, contexts: Tuple[str, ...] = ()):
        self.kind = kind
        self.message = message
        self.contexts = tuple(contexts)
        super().__init__(self.render())

    def render(self) -> str:
        """Format the error as ``outermost: ...: innermost: message``."""
        return ": ".join(tuple(reversed(self.contexts)) + (self.message,))

    @property
    def path(self) -> Tuple[str, ...]:
        """Context descriptions ordered from the root to the failing leaf."""
        return tuple(reversed(self.contexts))

    def __str__(self) -> str:
        return self.render()

    def to_dict(self) -> Dict[str, Any]:
        """Convert the error to a dictionary.

        Returns
        -------
        Dict[str, Any]
            Dictionary representation suitable for logging or serialization
        """
        return {
            "kind": self.kind.value,
            "message": self.message,
            "path": list(self.path),
            "rendered": self.render(),
        }


def wrap(inner: ValidationError, context: str) -> ValidationError:
    """Return a new error with ``context`` added as the outermost frame.

    The inner error is left untouched; its kind and message carry over.
    """
    return ValidationError(inner.kind, inner.message, inner.contexts + (context,))


@contextmanager
def error_context(description: str) -> Iterator[None]:
    """Wrap any :class:`ValidationError` raised in the block with ``description``."""
    try:
        yield
    except ValidationError as e:
        raise wrap(e, description) from e


def missing_entry(message: str) -> ValidationError:
    return ValidationError(ErrorKind.MISSING_ENTRY, message)


def type_mismatch(message: str) -> ValidationError:
    return ValidationError(ErrorKind.TYPE_MISMATCH, message)


def shape_mismatch(message: str) -> ValidationError:
    return ValidationError(ErrorKind.SHAPE_MISMATCH, message)


def range_violation(message: str) -> ValidationError:
    return ValidationError(ErrorKind.RANGE_VIOLATION, message)


def uniqueness_violation(message: str) -> ValidationError:
    return ValidationError(ErrorKind.UNIQUENESS_VIOLATION, message)


def inconsistency(message: str) -> ValidationError:
    return ValidationError(ErrorKind.CROSS_FIELD_INCONSISTENCY, message)


def unknown_value(message: str) -> ValidationError:
    return ValidationError(ErrorKind.UNKNOWN_ENUM_VALUE, message)
