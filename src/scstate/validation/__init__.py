"""Versioned validators for each stage of an analysis state file.

Each stage module exposes ``validate()`` taking the root group of the state
file and the version integer, and raising
:class:`~scstate.errors.ValidationError` on the first violation. The
ingestion stage returns the :class:`Details` needed by the later stages.
"""

from . import combine_embeddings, custom_selections, inputs, pca
from .constants import STATISTIC_SET, BlockMethod, Statistic
from .details import Details
from .versions import RowIdentity, VersionRules, parse_version, rules_for

__all__ = [
    "BlockMethod",
    "Details",
    "RowIdentity",
    "STATISTIC_SET",
    "Statistic",
    "VersionRules",
    "combine_embeddings",
    "custom_selections",
    "inputs",
    "parse_version",
    "pca",
    "rules_for",
]
