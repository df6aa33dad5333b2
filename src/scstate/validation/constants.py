"""Names shared by the stage validators."""

from enum import Enum
from typing import Dict, Tuple


class Statistic(Enum):
    """Per-feature marker statistics reported for every group of cells."""

    MEANS = "means"
    DETECTED = "detected"
    LFC = "lfc"
    DELTA_DETECTED = "delta_detected"
    COHEN = "cohen"
    AUC = "auc"


# Fixed reporting order
STATISTIC_SET: Tuple[Statistic, ...] = tuple(Statistic)


class BlockMethod(Enum):
    """Strategies for handling multiple blocks during PCA."""

    NONE = "none"
    REGRESS = "regress"
    MNN = "mnn"


MATRIX_MARKET = "MatrixMarket"
TENX = "10X"
H5AD = "H5AD"

# Allowed file types and how often each may appear, per matrix format.
# Each entry maps a type to (minimum, maximum) occurrences. Formats missing
# from this table are custom resources and accept any file types.
FILE_TYPE_RULES: Dict[str, Dict[str, Tuple[int, int]]] = {
    MATRIX_MARKET: {"mtx": (1, 1), "genes": (0, 1), "annotations": (0, 1)},
    TENX: {"h5": (1, 1)},
    H5AD: {"h5": (1, 1)},
}

DEFAULT_MODALITY = "RNA"
