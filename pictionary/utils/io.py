from __future__ import annotations
from pathlib import Path
import numpy as np
import cv2
import os

from pictionary.classification.preprocess import to_bgr


def _ext(p: str | Path) -> str:
    return os.path.splitext(str(p))[-1].lower()


def safe_imread(path: str | Path):
    """
    Read a still image as bytes -> imdecode (works with non-ASCII paths).
    Returns BGR or None.
    """
    try:
        data = np.fromfile(str(path), dtype=np.uint8)
    except OSError:
        return None
    if data.size == 0:
        return None
    return cv2.imdecode(data, cv2.IMREAD_COLOR)


def safe_imread_first_frame(path: str | Path):
    """
    Like safe_imread, but multi-page TIFFs yield their FIRST page, converted to
    BGR. Returns BGR or None.
    """
    p = str(path)
    if _ext(p) in (".tif", ".tiff"):
        ok, frames = cv2.imreadmulti(p, flags=cv2.IMREAD_UNCHANGED)
        if ok and frames:
            return to_bgr(frames[0])
    return safe_imread(p)
