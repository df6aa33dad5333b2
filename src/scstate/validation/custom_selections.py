"""Validation of the custom selections stage.

``custom_selections/parameters/selections`` is a group with one integer
dataset per user-defined selection, holding the indices of the selected cells
after quality control.

``custom_selections/results`` holds marker statistics comparing each selection
to all other cells. From version 2.0 they live in ``per_selection/<selection>/<modality>``;
before that, in ``markers/<selection>`` for the single RNA modality. Each
statistics group holds one float vector per entry of
:data:`~scstate.validation.constants.STATISTIC_SET`, with one value per feature.
"""

import logging
from typing import List

import h5py

from ..errors import error_context, inconsistency, range_violation
from ..storage.h5_utils import (
    PrimitiveType,
    list_children,
    load_integer_vector,
    open_array,
    open_group,
)
from .constants import STATISTIC_SET
from .details import Details
from .versions import format_version, rules_for

logger = logging.getLogger(__name__)

STAGE = "custom_selections"


def validate_parameters(handle: h5py.Group, num_cells: int) -> List[str]:
    """Validate ``custom_selections/parameters``.

    Returns:
        Selection names in enumeration order.
    """
    phandle = open_group(handle, "parameters")
    shandle = open_group(phandle, "selections")

    selections = list_children(shandle)
    for name in selections:
        with error_context(f"selection '{name}'"):
            involved = load_integer_vector(shandle, name)
            if involved.size and (involved.min() < 0 or involved.max() >= num_cells):
                raise range_violation(
                    f"indices out of range [0, {num_cells}) for selection '{name}'"
                )
    return selections


def check_statistics(handle: h5py.Group, num_features: int) -> None:
    """Check that every marker statistic is a float vector of ``num_features``."""
    for stat in STATISTIC_SET:
        open_array(handle, stat.value, PrimitiveType.FLOAT, (num_features,))


def _open_per_selection(rhandle: h5py.Group, name: str, selections: List[str]) -> h5py.Group:
    mhandle = open_group(rhandle, name)
    found = len(list_children(mhandle))
    if found != len(selections):
        raise inconsistency(
            f"number of groups in '{name}' ({found}) is not consistent with "
            f"the number of selections ({len(selections)})"
        )
    return mhandle


def validate_results(
    handle: h5py.Group, selections: List[str], details: Details, version: int
) -> None:
    rhandle = open_group(handle, "results")

    if not rules_for(version).multimodal:
        mhandle = _open_per_selection(rhandle, "markers", selections)
        for name in selections:
            with error_context(f"selection '{name}'"):
                check_statistics(open_group(mhandle, name), details.num_features[0])
        return

    mhandle = _open_per_selection(rhandle, "per_selection", selections)
    for name in selections:
        with error_context(f"selection '{name}'"):
            shandle = open_group(mhandle, name)
            for modality, count in zip(details.modalities, details.num_features):
                with error_context(f"modality '{modality}'"):
                    check_statistics(open_group(shandle, modality), count)


def validate(
    handle: h5py.Group, num_cells: int, details: Details, version: int
) -> List[str]:
    """Check the contents of the custom selections stage.

    Args:
        handle: Root group of the state file.
        num_cells: Number of cells remaining after quality control.
        details: Dataset details from the ingestion stage. Before 2.0 only
            the first feature count is used.
        version: Version of the state file.

    Returns:
        Names of the validated selections.
    """
    logger.info(f"Validating '{STAGE}' (version {format_version(version)})")
    with error_context(STAGE):
        chandle = open_group(handle, STAGE)
        with error_context("parameters"):
            selections = validate_parameters(chandle, num_cells)
        with error_context("results"):
            validate_results(chandle, selections, details, version)

    logger.info(f"✓ '{STAGE}' is valid: {len(selections)} selection(s)")
    return selections
