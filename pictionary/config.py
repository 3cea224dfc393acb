from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional, Tuple
import json
import platform
from pathlib import Path

from .classification.classifier import ClassifierParams


def default_texture_dims() -> Tuple[int, int]:
    """Capture resolution requested from the camera (width, height), per platform."""
    if platform.system() == "Darwin":
        return (1920, 1080)
    return (1600, 1200)


@dataclass
class CameraConfig:
    device_index: int = 0
    video_path: Optional[str] = None  # replay a file instead of a live device
    texture_dims: Tuple[int, int] = field(default_factory=default_texture_dims)
    tensor_dims: Tuple[int, int] = (152, 200)  # (width, height) fed to the model
    tensor_depth: int = 3

    @property
    def source(self) -> int | str:
        return self.video_path if self.video_path else self.device_index


@dataclass
class ClassifierConfig:
    weights: str = "yolov8n-cls.pt"
    imgsz: int = 224
    topk: int = 1
    device: Optional[str] = None

    def to_params(self) -> ClassifierParams:
        return ClassifierParams(
            weights=self.weights,
            imgsz=self.imgsz,
            topk=self.topk,
            device=self.device,
        )


@dataclass
class LoopConfig:
    threshold: float = 0.30  # found only when probability > threshold
    interval_ms: int = 16    # ~ one animation frame


@dataclass
class AppConfig:
    title: str = "My Pictionary"
    camera: CameraConfig = field(default_factory=CameraConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    loop: LoopConfig = field(default_factory=LoopConfig)

    # ---- JSON I/O ----
    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        return d

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "AppConfig":
        cam = dict(d.get("camera", {}))
        for key in ("texture_dims", "tensor_dims"):
            if key in cam and cam[key] is not None:
                cam[key] = tuple(int(v) for v in cam[key])
        return AppConfig(
            title=d.get("title", "My Pictionary"),
            camera=CameraConfig(**cam),
            classifier=ClassifierConfig(**d.get("classifier", {})),
            loop=LoopConfig(**d.get("loop", {})),
        )

    def save_json(self, path: str | Path) -> None:
        Path(path).write_text(json.dumps(self.to_dict(), indent=2), encoding="utf-8")

    @staticmethod
    def load_json(path: str | Path) -> "AppConfig":
        return AppConfig.from_dict(json.loads(Path(path).read_text(encoding="utf-8")))


# ---- Presets ----
# Smaller weights are faster but less accurate; the tensor size follows suit.

def preset_fast() -> AppConfig:
    ac = AppConfig()
    ac.classifier.weights = "yolov8n-cls.pt"
    ac.classifier.imgsz = 160
    ac.camera.tensor_dims = (120, 160)
    return ac


def preset_default() -> AppConfig:
    return AppConfig()


def preset_accurate() -> AppConfig:
    ac = AppConfig()
    ac.classifier.weights = "yolov8m-cls.pt"
    ac.classifier.imgsz = 224
    ac.camera.tensor_dims = (224, 224)
    return ac


PRESETS = {
    "fast": preset_fast,
    "default": preset_default,
    "accurate": preset_accurate,
}
