"""Command line entry point: launch the camera app or classify one image."""

from __future__ import annotations

import argparse
import json
import logging
import sys

from pictionary.classification.classifier import ClassifierNotAvailableError, load_classifier
from pictionary.classification.preprocess import to_tensor
from pictionary.config import PRESETS, AppConfig
from pictionary.utils.io import safe_imread_first_frame

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pictionary",
        description="Point the camera at something and let a pretrained classifier guess what it is.",
    )
    parser.add_argument("--config", help="Load settings from a JSON preset.")
    parser.add_argument(
        "--preset",
        choices=sorted(PRESETS),
        default="default",
        help="Built-in preset (ignored when --config is given).",
    )
    parser.add_argument("--camera", type=int, help="Camera device index.")
    parser.add_argument("--video", help="Replay a video file instead of a live camera.")
    parser.add_argument("--weights", help="Classification weights (e.g. yolov8n-cls.pt).")
    parser.add_argument("--threshold", type=float, help="Confidence a guess must exceed.")
    parser.add_argument("--interval-ms", type=int, help="Delay between loop iterations.")
    parser.add_argument("--topk", type=int, help="Predictions to print with --image.")
    parser.add_argument("--image", help="Classify this image, print the result and exit.")
    parser.add_argument("--save-config", help="Write the effective settings to JSON and exit.")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (DEBUG logs every frame's prediction).",
    )
    return parser


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # ultralytics is chatty at INFO
    logging.getLogger("ultralytics").setLevel(logging.WARNING)


def build_config(args: argparse.Namespace) -> AppConfig:
    if args.config:
        cfg = AppConfig.load_json(args.config)
    else:
        cfg = PRESETS[args.preset]()

    if args.camera is not None:
        cfg.camera.device_index = args.camera
        cfg.camera.video_path = None
    if args.video:
        cfg.camera.video_path = args.video
    if args.weights:
        cfg.classifier.weights = args.weights
    if args.threshold is not None:
        if not 0.0 <= args.threshold < 1.0:
            raise ValueError(f"--threshold must be in [0, 1), got {args.threshold}")
        cfg.loop.threshold = args.threshold
    if args.interval_ms is not None:
        cfg.loop.interval_ms = max(0, args.interval_ms)
    if args.topk is not None:
        cfg.classifier.topk = max(1, args.topk)
    return cfg


def classify_image(cfg: AppConfig, path: str) -> int:
    bgr = safe_imread_first_frame(path)
    if bgr is None:
        print(f"Error: failed to read image '{path}'", file=sys.stderr)
        return 1
    try:
        clf = load_classifier(cfg.classifier.to_params())
    except ClassifierNotAvailableError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    tensor = to_tensor(bgr, cfg.camera.tensor_dims, cfg.camera.tensor_depth)
    try:
        preds = clf.classify(tensor, cfg.classifier.topk)
    except Exception as exc:
        logger.debug("Classification of %s failed", path, exc_info=True)
        print(f"Error: classification failed: {type(exc).__name__}: {exc}", file=sys.stderr)
        return 1
    found = bool(preds) and preds[0].probability > cfg.loop.threshold
    payload = {
        "image": str(path),
        "found": found,
        "predictions": [p.to_dict() for p in preds],
    }
    print(json.dumps(payload, ensure_ascii=False, indent=2))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)

    try:
        cfg = build_config(args)
    except (OSError, ValueError, TypeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    if args.save_config:
        cfg.save_json(args.save_config)
        logger.info("Config written to %s", args.save_config)
        return 0

    if args.image:
        return classify_image(cfg, args.image)

    from pictionary.app import run_gui

    return run_gui(cfg)


if __name__ == "__main__":
    raise SystemExit(main())
