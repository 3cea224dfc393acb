"""OpenCV camera capture that streams preprocessed tensors."""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable, Iterator, Optional

import cv2
import numpy as np

from pictionary.classification.preprocess import to_tensor
from pictionary.config import CameraConfig

logger = logging.getLogger(__name__)


class PermissionStatus(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    UNDETERMINED = "undetermined"


class CameraPermissionError(RuntimeError):
    """Raised when the capture device cannot be opened (no device or access refused)."""


class CameraStream:
    """Thin wrapper around cv2.VideoCapture.

    ``on_frame`` (if set) receives every raw BGR frame that was read, which is
    how the live preview is rendered while tensors go to the classifier.

    Once ``close()`` has been called the stream stays closed: ``open()`` and
    ``request_permission()`` refuse to grab the device again. Initialization
    runs on a worker thread, so a window closed mid-startup must not have the
    camera reopened behind its back.
    """

    def __init__(self, config: Optional[CameraConfig] = None) -> None:
        self.config = config if config is not None else CameraConfig()
        self.on_frame: Optional[Callable[[np.ndarray], None]] = None
        self._cap = None
        self._status = PermissionStatus.UNDETERMINED
        self._lock = threading.Lock()
        self._closed = False
        self._failed_reads = 0
        self._exhausted = False

    @property
    def permission(self) -> PermissionStatus:
        return self._status

    @property
    def is_open(self) -> bool:
        cap = self._cap
        return cap is not None and cap.isOpened()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def exhausted(self) -> bool:
        """True once a video file source ran out of frames."""
        return self._exhausted

    def open(self) -> None:
        if self._closed:
            raise CameraPermissionError("CameraStream was closed.")
        if self.is_open:
            return

        cap = cv2.VideoCapture(self.config.source)
        if not cap.isOpened():
            cap.release()
            raise CameraPermissionError(f"Unable to open camera source {self.config.source!r}.")

        if self.config.video_path is None:
            tw, th = self.config.texture_dims
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, float(tw))
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, float(th))

        with self._lock:
            if self._closed:
                # close() ran while the device was opening
                cap.release()
                raise CameraPermissionError("CameraStream was closed.")
            self._cap = cap

    def request_permission(self) -> PermissionStatus:
        """Open the device and probe one frame.

        Desktop OSes surface a refused camera permission as a device that will
        not open or returns no frames, so both count as denied.
        """
        try:
            self.open()
        except CameraPermissionError as exc:
            logger.warning("%s", exc)
            self._status = PermissionStatus.DENIED
            return self._status

        cap = self._cap
        ok, frame = cap.read() if cap is not None else (False, None)
        if not ok or frame is None:
            logger.warning("Camera %r opened but returned no frame", self.config.source)
            self._release()
            self._status = PermissionStatus.DENIED
        else:
            self._status = PermissionStatus.GRANTED
        return self._status

    def read(self) -> Optional[np.ndarray]:
        if not self.is_open:
            raise CameraPermissionError("CameraStream not opened.")
        ok, frame = self._cap.read()
        if not ok or frame is None:
            self._failed_reads += 1
            if self.config.video_path is not None:
                if not self._exhausted:
                    logger.info("Video source %r exhausted", self.config.video_path)
                self._exhausted = True
            elif self._failed_reads == 1:
                logger.warning("Camera frame capture failed")
            else:
                logger.debug("Camera frame capture failed (%d in a row)", self._failed_reads)
            return None
        self._failed_reads = 0
        if self.on_frame is not None:
            self.on_frame(frame)
        return frame

    def tensors(self) -> Iterator[Optional[np.ndarray]]:
        """Stream of preprocessed tensors; a failed read yields None.

        A live device streams forever. A video file stops once it has no more
        frames.
        """
        self.open()
        while True:
            frame = self.read()
            if frame is None and self._exhausted:
                return
            yield to_tensor(frame, self.config.tensor_dims, self.config.tensor_depth)

    def _release(self) -> None:
        with self._lock:
            cap, self._cap = self._cap, None
        if cap is not None:
            cap.release()

    def close(self) -> None:
        """Release the device for good; later opens are refused."""
        with self._lock:
            self._closed = True
        self._release()
