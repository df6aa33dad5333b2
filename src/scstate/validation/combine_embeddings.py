"""Validation of the combined embeddings stage.

Only one embedding existed before version 2.0, so the stage is absent from
older files and is not checked for them.

``combine_embeddings/parameters`` holds ``approximate``, an integer scalar
read as a boolean, and ``weights``, a group that is either empty (every
modality has unit weight) or holds one float scalar per modality.

``combine_embeddings/results`` holds ``combined``, a float matrix of
``num_cells`` rows and ``total_dims`` columns, when more than one modality is
present. With a single modality the PCs of that modality are used directly
and ``combined`` is not required.
"""

import logging
from typing import Dict, Optional, Sequence

import h5py

from ..errors import error_context, inconsistency
from ..storage.h5_utils import (
    PrimitiveType,
    list_children,
    load_float_scalar,
    open_array,
    open_group,
    open_scalar,
)
from .versions import format_version, rules_for

logger = logging.getLogger(__name__)

STAGE = "combine_embeddings"


def validate_parameters(
    handle: h5py.Group, modalities: Sequence[str]
) -> Dict[str, float]:
    """Validate ``combine_embeddings/parameters``.

    Returns:
        The weight of each modality.
    """
    phandle = open_group(handle, "parameters")
    open_scalar(phandle, "approximate", PrimitiveType.INTEGER)

    whandle = open_group(phandle, "weights")
    present = list_children(whandle)
    if not present:
        return {m: 1.0 for m in modalities}

    weights = {m: load_float_scalar(whandle, m) for m in modalities}
    extra = sorted(set(present) - set(modalities))
    if extra:
        raise inconsistency(f"'weights' contains unknown modalities: {extra}")
    return weights


def validate_results(
    handle: h5py.Group, num_cells: int, modalities: Sequence[str], total_dims: int
) -> None:
    rhandle = open_group(handle, "results")
    if len(modalities) > 1:
        open_array(rhandle, "combined", PrimitiveType.FLOAT, (num_cells, total_dims))


def validate(
    handle: h5py.Group,
    num_cells: int,
    modalities: Sequence[str],
    total_dims: int,
    version: int,
) -> Optional[Dict[str, float]]:
    """Check the contents of the combined embeddings stage.

    Args:
        handle: Root group of the state file.
        num_cells: Number of cells remaining after quality control.
        modalities: Modalities whose embeddings were combined.
        total_dims: Total number of PCs across ``modalities``.
        version: Version of the state file.

    Returns:
        The weight of each modality, or ``None`` for files older than 2.0.
    """
    if not rules_for(version).combined_embeddings:
        logger.debug(
            f"Skipping '{STAGE}': not present in version {format_version(version)}"
        )
        return None

    logger.info(f"Validating '{STAGE}' (version {format_version(version)})")
    with error_context(STAGE):
        chandle = open_group(handle, STAGE)
        with error_context("parameters"):
            weights = validate_parameters(chandle, modalities)
        with error_context("results"):
            validate_results(chandle, num_cells, modalities, total_dims)

    logger.info(f"✓ '{STAGE}' is valid: weights {weights}")
    return weights
