import argparse
import os
from pathlib import Path

import cv2

from faceoverlay.config import load_and_merge, watermark_rect
from faceoverlay.utils import setup_logging, parse_color
from faceoverlay.overlays import build_overlays
from faceoverlay.loader import AssetLoadError, load_assets
from faceoverlay.compositor import CanvasSurface
from faceoverlay.camera import CameraFrameSource
from faceoverlay.facemesh import MediaPipeLandmarkSource, FaceMeshConfig
from faceoverlay.timers import TimerQueue
from faceoverlay.capture import CaptureStateMachine
from faceoverlay.scheduler import RenderLoop
from faceoverlay.writers import SnapshotSaver
from faceoverlay.hud import compose_display

WINDOW = "faceoverlay"

TRIGGER_KEYS = {
    "enter": {13, 10},
    "space": {32},
}
QUIT_KEYS = {ord("q"), 27}


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Face-locked overlay booth")
    # Config
    p.add_argument("--config", default=None, help="Optional YAML config path")
    p.add_argument("--log-level", default=None, help="Override log level (e.g., INFO, WARNING)")
    # Devices
    p.add_argument("--camera", type=int, default=None, help="Camera device index")
    p.add_argument("--fps", type=float, default=None, help="Target render rate")
    p.add_argument("--no-detector", action="store_true", help="Run without face landmark detection")
    # Capture hand-off
    p.add_argument("--endpoint", default=None, help="HTTP endpoint receiving captured stills")
    p.add_argument("--output-dir", default=None, help="Also save captured stills to this folder")
    return p.parse_args()


def trigger_keys(name: str) -> set:
    name = (name or "enter").lower()
    if name in TRIGGER_KEYS:
        return TRIGGER_KEYS[name]
    if len(name) == 1:
        return {ord(name)}
    raise SystemExit(f"Unsupported trigger key: {name}")


def main():
    # Reduce TF/MediaPipe verbosity if desired
    os.environ.setdefault("TF_CPP_MIN_LOG_LEVEL", "2")

    args = parse_args()

    # Build CLI overrides for config merging
    cli_overrides = {"paths": {}, "runtime": {}, "camera": {}, "upload": {}, "detection": {}}
    if args.camera is not None:
        cli_overrides["camera"]["index"] = args.camera
    if args.fps is not None:
        cli_overrides["runtime"]["fps"] = args.fps
    if args.log_level:
        cli_overrides["runtime"]["log_level"] = args.log_level
    if args.endpoint:
        cli_overrides["upload"]["endpoint"] = args.endpoint
    if args.output_dir:
        cli_overrides["paths"]["output_dir"] = args.output_dir
    if args.no_detector:
        cli_overrides["detection"]["enabled"] = False

    try:
        cfg = load_and_merge(args.config, cli_overrides)
        overlays = build_overlays(cfg)
    except ValueError as e:
        raise SystemExit(f"Invalid configuration: {e}")

    setup_logging(cfg.get("runtime", {}).get("log_level", "INFO"))

    paths = cfg.get("paths", {})
    assets_dir = Path(paths.get("assets_dir") or ".")
    try:
        assets = load_assets(overlays, paths.get("watermark"), base_dir=assets_dir)
    except AssetLoadError as e:
        raise SystemExit(f"Failed to preload images: {e}")

    screen = cfg.get("screen", {})
    width, height = int(screen.get("width", 1280)), int(screen.get("height", 720))
    background = parse_color(screen.get("background", "white"))
    surface = CanvasSurface(width, height, background)

    cam_cfg = cfg.get("camera", {})
    try:
        camera = CameraFrameSource(int(cam_cfg.get("index", 0)), cam_cfg.get("width"), cam_cfg.get("height"))
    except RuntimeError as e:
        raise SystemExit(str(e))

    det_cfg = cfg.get("detection", {})
    detector = MediaPipeLandmarkSource(FaceMeshConfig.from_cfg(cfg)) if det_cfg.get("enabled", True) else None

    up_cfg = cfg.get("upload", {})
    saver = SnapshotSaver(
        endpoint=up_cfg.get("endpoint"),
        output_dir=paths.get("output_dir"),
        timeout=float(up_cfg.get("timeout_seconds", 10.0)),
        quality=int(up_cfg.get("jpeg_quality", 92)),
    )

    cap_cfg = cfg.get("capture", {})
    timers = TimerQueue()
    capture = CaptureStateMachine(
        timers,
        snapshot_source=surface.snapshot,
        save=saver.save,
        countdown_from=int(cap_cfg.get("countdown_from", 3)),
        step_seconds=float(cap_cfg.get("step_seconds", 1.0)),
        flash_seconds=float(cap_cfg.get("flash_seconds", 0.1)),
    )
    keys = trigger_keys(cap_cfg.get("trigger_key", "enter"))

    loop = RenderLoop(
        camera,
        surface,
        overlays,
        assets,
        detector=detector,
        background=background,
        watermark_rect=watermark_rect(cfg),
        detect_mirrored=bool(det_cfg.get("mirrored", True)),
        coalesce=bool(det_cfg.get("coalesce", False)),
        max_in_flight=det_cfg.get("max_in_flight", 2),
    )

    def on_tick(report) -> bool:
        timers.run_due()
        cv2.imshow(WINDOW, compose_display(surface.pixels, capture.state))
        key = cv2.waitKey(1) & 0xFF
        if key in QUIT_KEYS:
            return False
        if key in keys:
            capture.trigger()
        return True

    cv2.namedWindow(WINDOW, cv2.WINDOW_NORMAL)
    try:
        loop.run(fps=float(cfg.get("runtime", {}).get("fps", 30.0)), on_tick=on_tick)
    except KeyboardInterrupt:
        print("Interrupted")
    finally:
        capture.reset()
        loop.close()
        saver.close()
        cv2.destroyAllWindows()


if __name__ == "__main__":
    main()
