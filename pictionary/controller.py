"""UI-independent state and the frame → prediction control loop."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Protocol

import numpy as np

from pictionary.camera.stream import CameraStream, PermissionStatus
from pictionary.classification.classifier import (
    ClassifierNotAvailableError,
    ClassifierParams,
    ImageClassifier,
    load_classifier,
)
from pictionary.classification.types import Prediction
from pictionary.config import LoopConfig

logger = logging.getLogger(__name__)

_END_OF_STREAM = object()


class FrameScheduler(Protocol):
    """Cancellable one-shot callback, requested again on every loop iteration."""

    def request(self, callback: Callable[[], None]) -> int: ...

    def cancel(self, handle: int) -> None: ...


@dataclass
class AppState:
    has_permission: Optional[bool] = None
    framework_ready: bool = False
    prediction: str = ""
    prediction_found: bool = False
    model_error: Optional[str] = None


class Controller:
    """Owns the app state and drives the classification loop.

    Parameters
    ----------
    camera : CameraStream
        Device wrapper; asked for permission and for the tensor stream.
    scheduler : FrameScheduler
        Schedules the next loop iteration (QTimer in the GUI, a fake in tests).
    loop : LoopConfig, optional
        Confidence threshold and polling interval; a fresh default when omitted.
    classifier_params : ClassifierParams
        What to load in ``initialize()``.
    loader : callable
        ``ClassifierParams -> ImageClassifier``; defaults to ``load_classifier``.
    """

    def __init__(
        self,
        camera: CameraStream,
        scheduler: FrameScheduler,
        loop: Optional[LoopConfig] = None,
        classifier_params: ClassifierParams = ClassifierParams(),
        loader: Callable[[ClassifierParams], ImageClassifier] = load_classifier,
    ) -> None:
        self.camera = camera
        self.scheduler = scheduler
        self.loop_config = loop if loop is not None else LoopConfig()
        self.classifier_params = classifier_params
        self._loader = loader

        self.state = AppState()
        self.model: Optional[ImageClassifier] = None

        self._tensors: Optional[Iterator[Optional[np.ndarray]]] = None
        self._frame_id: Optional[int] = None
        self._listeners: List[Callable[[AppState], None]] = []

    # ---- state ------------------------------------------------------------

    def add_listener(self, fn: Callable[[AppState], None]) -> None:
        self._listeners.append(fn)

    def _notify(self) -> None:
        for fn in self._listeners:
            fn(self.state)

    @property
    def running(self) -> bool:
        return self._frame_id is not None

    # ---- startup ----------------------------------------------------------

    def initialize(self) -> AppState:
        """Ask for camera access, then load the model.

        The model is loaded even when access is denied so that a later retry
        only has to deal with the camera.
        """
        if self.state.framework_ready:
            return self.state

        status = self.camera.request_permission()
        logger.info("permissions status: %s", status.value)
        self.state.has_permission = status is PermissionStatus.GRANTED

        try:
            self.model = self._loader(self.classifier_params)
        except ClassifierNotAvailableError as exc:
            logger.error("Model unavailable: %s", exc)
            self.model = None
            self.state.model_error = str(exc)

        self.state.framework_ready = True
        self._notify()
        return self.state

    # ---- loop -------------------------------------------------------------

    def handle_camera_stream(self, tensors: Iterator[Optional[np.ndarray]]) -> None:
        """Start polling ``tensors`` until a confident prediction shows up."""
        self._tensors = tensors
        if not self.state.prediction_found and not self.running:
            self._loop()

    def _loop(self) -> None:
        self._frame_id = None
        if self._tensors is None:
            return
        next_tensor = next(self._tensors, _END_OF_STREAM)
        if next_tensor is _END_OF_STREAM:
            logger.info("Camera stream ended; prediction loop stopped")
            return
        if self.get_prediction(next_tensor):
            return
        self._frame_id = self.scheduler.request(self._loop)

    def get_prediction(self, tensor: Optional[np.ndarray]) -> bool:
        """Classify one tensor; return True once the top guess beats the threshold."""
        if tensor is None or self.model is None:
            return False

        try:
            predictions: List[Prediction] = self.model.classify(tensor, 1)
        except Exception as exc:
            logger.warning("Inference failed, frame skipped: %s: %s", type(exc).__name__, exc)
            return False
        logger.debug("prediction: %s", json.dumps(Prediction.list_to_dicts(predictions)))

        if not predictions:
            return False

        top = predictions[0]
        if top.probability > self.loop_config.threshold:
            self.cancel()
            self.state.prediction_found = True
            self.state.prediction = top.class_name
            logger.info("Prediction found: %s (p=%.3f)", top.class_name, top.probability)
            self._notify()
            return True
        return False

    def load_new_prediction(self) -> None:
        """Clear the current guess and start looking again on the same stream."""
        self.state.prediction = ""
        self.state.prediction_found = False
        self._notify()
        if self._tensors is not None:
            self.handle_camera_stream(self._tensors)

    def cancel(self) -> None:
        if self._frame_id is not None:
            self.scheduler.cancel(self._frame_id)
            self._frame_id = None
