from __future__ import annotations

from typing import Optional, Tuple

import cv2
import numpy as np


def to_bgr(frame: np.ndarray) -> np.ndarray:
    """Bring grayscale / single-channel / BGRA frames to 3-channel BGR."""
    if frame.ndim == 2:
        return cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR)
    if frame.ndim == 3 and frame.shape[2] == 1:
        return cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR)
    if frame.ndim == 3 and frame.shape[2] == 4:
        return cv2.cvtColor(frame, cv2.COLOR_BGRA2BGR)
    return frame


def to_tensor(
    frame_bgr: Optional[np.ndarray],
    tensor_dims: Tuple[int, int] = (152, 200),
    depth: int = 3,
) -> Optional[np.ndarray]:
    """Resize a camera frame into the tensor fed to the classifier.

    Parameters
    ----------
    frame_bgr : np.ndarray | None
        Raw frame in OpenCV channel order.
    tensor_dims : (width, height)
        Target size. Small tensors keep per-frame inference cheap; the model
        rescales to its own input size anyway.
    depth : int
        Channel count of the output, 3 (BGR) or 1 (grayscale).

    Returns
    -------
    np.ndarray | None
        ``uint8`` array of shape (height, width, depth), or None when there is
        no usable frame.
    """
    if frame_bgr is None or frame_bgr.size == 0:
        return None

    w, h = int(tensor_dims[0]), int(tensor_dims[1])
    if w <= 0 or h <= 0:
        raise ValueError(f"tensor_dims must be positive, got {tensor_dims}")

    img = to_bgr(frame_bgr)
    if img.dtype != np.uint8:
        img = np.clip(img, 0, 255).astype(np.uint8)

    # INTER_AREA for downscale, INTER_LINEAR when a tiny source is enlarged
    interp = cv2.INTER_AREA if (img.shape[1] >= w and img.shape[0] >= h) else cv2.INTER_LINEAR
    resized = cv2.resize(img, (w, h), interpolation=interp)

    if depth == 1:
        return cv2.cvtColor(resized, cv2.COLOR_BGR2GRAY)[:, :, None]
    if depth != 3:
        raise ValueError(f"Unsupported tensor depth: {depth}")
    return resized
