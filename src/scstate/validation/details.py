from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple


@dataclass(frozen=True)
class Details:
    """Summary of the loaded dataset produced by the ingestion stage.

    Attributes
    ----------
    modalities : Tuple[str, ...]
        Distinct modality names, e.g. ``("RNA", "ADT")``
    num_features : Tuple[int, ...]
        Number of features for each entry of ``modalities``. For multiple
        matrices this is the size of the feature intersection.
    num_cells : int
        Total number of cells across all samples
    num_samples : int
        Number of samples, which may exceed the number of matrices
    """

    modalities: Tuple[str, ...]
    num_features: Tuple[int, ...]
    num_cells: int
    num_samples: int

    def __post_init__(self):
        if len(self.modalities) != len(self.num_features):
            raise ValueError("'modalities' and 'num_features' should have the same length")

    def num_features_for(self, modality: str) -> int:
        """Return the feature count of ``modality``.

        Raises:
            KeyError: If the modality is not present.
        """
        try:
            return self.num_features[self.modalities.index(modality)]
        except ValueError:
            raise KeyError(modality) from None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "modalities": list(self.modalities),
            "num_features": list(self.num_features),
            "num_cells": self.num_cells,
            "num_samples": self.num_samples,
        }
