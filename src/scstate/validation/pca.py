"""Validation of the PCA stage on the RNA log-expression matrix.

``pca/parameters`` holds positive ``num_hvgs`` and ``num_pcs`` integers and,
from version 1.1, a ``block_method`` string (``"none"``, ``"regress"`` or
``"mnn"``).

``pca/results`` holds ``pcs``, a float matrix with one row per cell and one
column per PC, and ``var_exp``, a float vector with one entry per PC. The
number of PCs is taken from ``pcs`` and may be smaller than the requested
``num_pcs`` when the data has fewer dimensions. Between 1.1 and 2.0,
``results`` also holds ``corrected`` with the shape of ``pcs`` if and only if
``block_method`` is ``"mnn"``.
"""

import logging
from typing import Optional, Tuple

import h5py

from ..errors import error_context, inconsistency, range_violation, unknown_value
from ..storage.h5_utils import (
    PrimitiveType,
    has_entry,
    load_integer_scalar,
    load_string,
    open_array,
    open_group,
)
from .constants import BlockMethod
from .versions import format_version, rules_for

logger = logging.getLogger(__name__)

STAGE = "pca"


def _check_block_method(method: str) -> BlockMethod:
    try:
        return BlockMethod(method)
    except ValueError:
        allowed = ", ".join(f"'{m.value}'" for m in BlockMethod)
        raise unknown_value(
            f"unrecognized value '{method}' for 'block_method', expected one of {allowed}"
        ) from None


def validate_parameters(
    handle: h5py.Group, version: int
) -> Tuple[int, Optional[BlockMethod]]:
    """Validate ``pca/parameters``.

    Returns:
        The requested number of PCs and the block method, which is ``None``
        before version 1.1.
    """
    phandle = open_group(handle, "parameters")

    num_hvgs = load_integer_scalar(phandle, "num_hvgs")
    if num_hvgs <= 0:
        raise range_violation(f"number of HVGs must be positive in 'num_hvgs', got {num_hvgs}")

    num_pcs = load_integer_scalar(phandle, "num_pcs")
    if num_pcs <= 0:
        raise range_violation(f"number of PCs must be positive in 'num_pcs', got {num_pcs}")

    method = None
    if rules_for(version).block_method:
        method = _check_block_method(load_string(phandle, "block_method"))

    return num_pcs, method


def validate_results(
    handle: h5py.Group,
    max_pcs: int,
    block_method: Optional[BlockMethod],
    num_cells: int,
    version: int,
) -> int:
    """Validate ``pca/results``.

    Returns:
        The number of PCs actually stored.
    """
    rhandle = open_group(handle, "results")

    pcs = open_array(rhandle, "pcs", PrimitiveType.FLOAT, (num_cells, None))
    observed = pcs.shape[1]
    if observed > max_pcs:
        raise range_violation(
            f"number of PCs in 'pcs' ({observed}) should not exceed 'num_pcs' ({max_pcs})"
        )

    open_array(rhandle, "var_exp", PrimitiveType.FLOAT, (observed,))

    expect_corrected = (
        rules_for(version).mnn_corrected and block_method is BlockMethod.MNN
    )
    if expect_corrected:
        open_array(rhandle, "corrected", PrimitiveType.FLOAT, pcs.shape)
    elif has_entry(rhandle, "corrected"):
        raise inconsistency(
            "'corrected' should only be present for 'mnn' blocking "
            "in versions 1.1 to 2.0"
        )

    return observed


def validate(handle: h5py.Group, num_cells: int, version: int) -> int:
    """Check the contents of the PCA stage.

    Args:
        handle: Root group of the state file.
        num_cells: Number of cells remaining after quality control.
        version: Version of the state file.

    Returns:
        The number of PCs stored in the results.
    """
    logger.info(f"Validating '{STAGE}' (version {format_version(version)})")
    with error_context(STAGE):
        phandle = open_group(handle, STAGE)
        with error_context("parameters"):
            num_pcs, method = validate_parameters(phandle, version)
        with error_context("results"):
            observed = validate_results(phandle, num_pcs, method, num_cells, version)

    if observed < num_pcs:
        logger.debug(f"Requested {num_pcs} PCs but {observed} were stored")
    logger.info(f"✓ '{STAGE}' is valid: {observed} PCs")
    return observed
