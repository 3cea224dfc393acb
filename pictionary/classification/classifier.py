from __future__ import annotations

import logging
import os
import sys
import threading
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Mapping, Optional, Sequence, Union

import numpy as np

from .types import Prediction

_model_lock = threading.Lock()

logger = logging.getLogger(__name__)

Names = Union[Mapping[int, str], Sequence[str]]


class ClassifierNotAvailableError(RuntimeError):
    """Raised when Ultralytics is not importable or the weights cannot be loaded."""


def resource_path(rel_path: str) -> str:
    if hasattr(sys, "_MEIPASS"):
        return os.path.join(sys._MEIPASS, rel_path)
    return os.path.join(os.path.abspath("."), rel_path)


def resolve_weights(weights: str) -> str:
    """Prefer a bundled ``models/<weights>`` file; otherwise hand the name to
    Ultralytics, which downloads official pretrained weights on first use."""
    if os.path.isabs(weights) or os.path.exists(weights):
        return weights
    bundled = resource_path(os.path.join("models", weights))
    if os.path.exists(bundled):
        return bundled
    return weights


def _require_ultralytics():
    """Try to import Ultralytics YOLO and return the class.

    Raises
    ------
    ClassifierNotAvailableError
        If 'ultralytics' is not installed. The message contains install hint.
    """
    try:
        from ultralytics import YOLO  # type: ignore
        return YOLO
    except Exception as exc:  # pragma: no cover
        raise ClassifierNotAvailableError(
            "Ultralytics is not available. Install it with:\n"
            "    pip install ultralytics\n"
            "and provide classification weights (e.g., 'yolov8n-cls.pt')."
        ) from exc


@lru_cache(maxsize=4)
def _load_model(weights_path: str):
    YOLO = _require_ultralytics()
    with _model_lock:
        return YOLO(weights_path, task="classify")


@dataclass(frozen=True)
class ClassifierParams:
    """Pretrained classifier parameters.

    Attributes
    ----------
    weights : str
        Path or name of classification weights. 'yolov8n-cls.pt' is trained on
        ImageNet (1000 classes). Larger variants ('yolov8s-cls.pt', ...) are
        more accurate and slower.
    imgsz : int
        Model input size; tensors are letterboxed/resized to it.
    topk : int
        How many ranked predictions classify() returns by default.
    device : Optional[str]
        Torch device string ('cpu', 'cuda:0', 'mps'); None lets Ultralytics pick.
    """

    weights: str = "yolov8n-cls.pt"
    imgsz: int = 224
    topk: int = 1
    device: Optional[str] = None


def _coerce_np(x) -> np.ndarray:
    """Convert torch/ultralytics tensor-like to np.ndarray (cpu)."""
    try:
        return x.cpu().numpy()  # type: ignore[attr-defined]
    except Exception:
        return np.asarray(x)


def _class_name(names: Names, idx: int) -> str:
    try:
        return str(names[idx])
    except (KeyError, IndexError):
        return str(idx)


def rank_probabilities(probs: np.ndarray, names: Names, topk: int = 1) -> List[Prediction]:
    """Turn a probability vector into the top-``topk`` predictions.

    Sorting is stable, so equal probabilities keep the lower class index first.
    """
    p = np.asarray(probs, dtype=np.float64).reshape(-1)
    if p.size == 0 or topk <= 0:
        return []
    order = np.argsort(-p, kind="stable")[: int(topk)]
    return [Prediction(_class_name(names, int(i)), float(p[i])) for i in order]


class ImageClassifier:
    """Handle around a loaded classification model: tensor → ranked predictions."""

    def __init__(self, model, params: ClassifierParams = ClassifierParams()) -> None:
        self.model = model
        self.params = params

    @property
    def names(self) -> Names:
        return getattr(self.model, "names", {}) or {}

    def classify(self, tensor: Optional[np.ndarray], topk: Optional[int] = None) -> List[Prediction]:
        """Classify one tensor.

        Returns predictions sorted by descending probability (at most ``topk``),
        or an empty list when there is nothing to rank.
        """
        if tensor is None:
            return []
        k = int(topk if topk is not None else self.params.topk)

        kwargs = dict(imgsz=int(self.params.imgsz), verbose=False)
        if self.params.device:
            kwargs["device"] = self.params.device
        try:
            results = self.model.predict(source=tensor, **kwargs)
        except TypeError:
            # Fallback to callable if predict signature differs
            results = self.model(tensor, verbose=False)

        if not results:
            return []
        r = results[0]
        probs = getattr(r, "probs", None)
        if probs is None:
            return []
        data = _coerce_np(getattr(probs, "data", probs))
        names = getattr(r, "names", None) or self.names
        return rank_probabilities(data, names, k)


def load_classifier(params: ClassifierParams = ClassifierParams()) -> ImageClassifier:
    """Load (or reuse) the pretrained model described by ``params``.

    Raises
    ------
    ClassifierNotAvailableError
        If ultralytics is missing or the weights fail to load.
    """
    _require_ultralytics()
    weights = resolve_weights(params.weights)
    try:
        model = _load_model(weights)
    except ClassifierNotAvailableError:
        raise
    except Exception as exc:
        raise ClassifierNotAvailableError(f"Failed to load weights '{weights}': {exc}") from exc
    logger.info("Classifier loaded: %s (%d classes)", weights, len(getattr(model, "names", {}) or {}))
    return ImageClassifier(model, params)
