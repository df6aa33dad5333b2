"""Version policy for the analysis-state format.

Versions are encoded as a single integer ``major * 10**6 + minor * 10**3 + patch``
so that ``2.1.0`` becomes ``2001000``. Behaviour that differs between format
versions is described by a :class:`VersionRules` record, and the record that
applies to a given version is found in :data:`RULE_TABLE` by half-open range
lookup. A patch release never changes the rules of its minor version.

Boundaries:

- ``1.1`` (1001000): multiple matrices, ``block_method`` in PCA, MNN-corrected PCs
- ``1.2`` (1002000): row identities stored as ``identities`` instead of
  ``permutation`` / ``indices``
- ``2.0`` (2000000): multiple modalities, per-modality ``num_features`` and
  ``identities`` groups, combined embeddings, per-selection marker layout
"""

from __future__ import annotations

import bisect
from dataclasses import dataclass
from enum import Enum
from typing import Tuple, Union

MAJOR = 1_000_000
MINOR = 1_000

V1_1 = 1001000
V1_2 = 1002000
V2_0 = 2000000


class RowIdentity(Enum):
    """Representation of the original row identities of the loaded dataset."""

    LEGACY = "permutation/indices"
    FLAT = "identities"
    PER_MODALITY = "identities/<modality>"


@dataclass(frozen=True)
class VersionRules:
    """Schema decisions in force for one range of format versions.

    Attributes
    ----------
    label : str
        Name of the version range, e.g. ``"1.1"``
    multi_matrix : bool
        Whether ``format`` may be a string array describing multiple matrices
    block_method : bool
        Whether PCA parameters carry a ``block_method`` string
    mnn_corrected : bool
        Whether PCA results carry ``corrected`` PCs when ``block_method == "mnn"``
    row_identity : RowIdentity
        How row identities of the loaded dataset are stored
    multimodal : bool
        Whether results are organised per modality
    combined_embeddings : bool
        Whether the combined-embeddings stage exists
    """

    label: str
    multi_matrix: bool
    block_method: bool
    mnn_corrected: bool
    row_identity: RowIdentity
    multimodal: bool
    combined_embeddings: bool


RULE_TABLE: Tuple[Tuple[int, VersionRules], ...] = (
    (
        0,
        VersionRules(
            label="1.0",
            multi_matrix=False,
            block_method=False,
            mnn_corrected=False,
            row_identity=RowIdentity.LEGACY,
            multimodal=False,
            combined_embeddings=False,
        ),
    ),
    (
        V1_1,
        VersionRules(
            label="1.1",
            multi_matrix=True,
            block_method=True,
            mnn_corrected=True,
            row_identity=RowIdentity.LEGACY,
            multimodal=False,
            combined_embeddings=False,
        ),
    ),
    (
        V1_2,
        VersionRules(
            label="1.2",
            multi_matrix=True,
            block_method=True,
            mnn_corrected=True,
            row_identity=RowIdentity.FLAT,
            multimodal=False,
            combined_embeddings=False,
        ),
    ),
    (
        V2_0,
        VersionRules(
            label="2.0",
            multi_matrix=True,
            block_method=True,
            mnn_corrected=False,
            row_identity=RowIdentity.PER_MODALITY,
            multimodal=True,
            combined_embeddings=True,
        ),
    ),
)

_LOWER_BOUNDS = [lo for lo, _ in RULE_TABLE]


def _check_table() -> None:
    if not _LOWER_BOUNDS or _LOWER_BOUNDS[0] != 0:
        raise RuntimeError("version rule table must start at version 0")
    for previous, current in zip(_LOWER_BOUNDS, _LOWER_BOUNDS[1:]):
        if current <= previous:
            raise RuntimeError(
                f"version rule table is not strictly increasing at {current}"
            )


_check_table()


def encode_version(major: int, minor: int = 0, patch: int = 0) -> int:
    """Encode a ``major.minor.patch`` triple as a version integer."""
    if major < 0:
        raise ValueError(f"major version must be non-negative, got {major}")
    for label, part in (("minor", minor), ("patch", patch)):
        if not 0 <= part < MINOR:
            raise ValueError(f"{label} version must lie in [0, {MINOR}), got {part}")
    return major * MAJOR + minor * MINOR + patch


def parse_version(value: Union[int, str]) -> int:
    """Convert an integer or dotted ``"major.minor[.patch]"`` string to a version integer.

    Raises:
        ValueError: If the value cannot be interpreted as a version.
    """
    if isinstance(value, bool):
        raise ValueError(f"not a version: {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"version must be non-negative, got {value}")
        return value

    parts = str(value).strip().split(".")
    if not 1 <= len(parts) <= 3 or not all(p.isdigit() for p in parts):
        raise ValueError(f"not a version: {value!r}")
    return encode_version(*(int(p) for p in parts))


def format_version(version: int) -> str:
    """Render a version integer as ``"major.minor.patch"``."""
    major, rest = divmod(version, MAJOR)
    minor, patch = divmod(rest, MINOR)
    return f"{major}.{minor}.{patch}"


def rules_for(version: int) -> VersionRules:
    """Look up the rules in force for ``version``.

    Raises:
        ValueError: If ``version`` is negative.
    """
    if version < 0:
        raise ValueError(f"version must be non-negative, got {version}")
    index = bisect.bisect_right(_LOWER_BOUNDS, version) - 1
    return RULE_TABLE[index][1]
