"""Datatypes for classifier output."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Tuple


@dataclass(frozen=True)
class Prediction:
    """Single ranked class guess for a frame.

    Attributes
    ----------
    class_name : str
        Human-readable class name as reported by the model (ImageNet names
        may contain several comma-separated synonyms, e.g. "screen, CRT screen").
    probability : float
        Softmax probability in [0, 1].
    """

    class_name: str
    probability: float

    # ---- conversions ------------------------------------------------------
    def to_dict(self) -> Dict[str, object]:
        """Return {"className", "probability"}, the shape written to the log."""
        return {"className": self.class_name, "probability": float(self.probability)}

    # ---- factories --------------------------------------------------------
    @staticmethod
    def from_pair(pair: Tuple[str, float] | Sequence[object]) -> "Prediction":
        """Create Prediction from a (name, probability) pair."""
        name, prob = pair[0], pair[1]
        return Prediction(str(name), float(prob))  # type: ignore[arg-type]

    @staticmethod
    def list_to_dicts(preds: Iterable["Prediction"]) -> List[Dict[str, object]]:
        return [p.to_dict() for p in preds]
