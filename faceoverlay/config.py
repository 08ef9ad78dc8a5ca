from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)


DEFAULTS: Dict[str, Any] = {
    "paths": {
        # Overlay and watermark image references are relative to this folder
        "assets_dir": "assets",
        "watermark": "logo.png",
        # Local copy of captured stills; None disables
        "output_dir": None,
    },
    "camera": {
        "index": 0,
        "width": 1280,
        "height": 720,
    },
    "screen": {
        "width": 1280,
        "height": 720,
        # BGR triple or a color name
        "background": "white",
    },
    "mediapipe": {
        "refine_landmarks": True,
        "max_faces": 2,
        "min_detection_confidence": 0.5,
        "min_tracking_confidence": 0.5,
    },
    "detection": {
        "enabled": True,
        # Landmarks are estimated on the mirrored frame to match the display
        "mirrored": True,
        # False => every resolved estimate is drawn; True => newest only
        "coalesce": False,
        # Unresolved estimates allowed at once; a tick at the cap skips its request
        "max_in_flight": 2,
    },
    "overlays": [
        {
            "id": "glasses",
            "type": "eye_span",
            "image": "glasses.png",
            "left_eye": "left_eye",
            "right_eye": "right_eye",
            "scale": 2.0,
            "rotation_offset_deg": 180.0,
            "y_offset": -0.12,
        },
    ],
    "watermark": {
        # x None => right-aligned with `margin`
        "x": None,
        "y": 10,
        "w": 220,
        "h": 50,
        "margin": 10,
    },
    "capture": {
        "countdown_from": 3,
        "step_seconds": 1.0,
        "flash_seconds": 0.1,
        "trigger_key": "enter",
    },
    "upload": {
        "endpoint": None,
        "timeout_seconds": 10.0,
        "jpeg_quality": 92,
    },
    "runtime": {
        "fps": 30.0,
        "log_level": "INFO",
    },
}


def _deep_merge(base: MutableMapping[str, Any], override: Mapping[str, Any]) -> MutableMapping[str, Any]:
    for k, v in override.items():
        if k in base and isinstance(base[k], MutableMapping) and isinstance(v, Mapping):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def load_yaml(path: str | Path | None) -> Dict[str, Any]:
    if not path:
        return {}
    p = Path(path)
    if not p.exists():
        logger.warning("YAML config not found: %s", p)
        return {}
    with p.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError("Top-level of YAML must be a mapping/dict")
    return data


def merge_config(yaml_cfg: Mapping[str, Any] | None = None, cli_overrides: Mapping[str, Any] | None = None) -> Dict[str, Any]:
    cfg: Dict[str, Any] = copy.deepcopy(DEFAULTS)
    if yaml_cfg:
        _deep_merge(cfg, copy.deepcopy(dict(yaml_cfg)))
    if cli_overrides:
        _deep_merge(cfg, dict(cli_overrides))

    fps = float(cfg.get("runtime", {}).get("fps") or 0)
    if fps <= 0:
        raise ValueError("runtime.fps must be positive")
    cap = cfg.get("detection", {}).get("max_in_flight")
    if cap is not None and (isinstance(cap, bool) or not isinstance(cap, int) or cap < 1):
        raise ValueError("detection.max_in_flight must be a positive integer or null")
    return cfg


def load_and_merge(yaml_path: str | Path | None, cli_overrides: Mapping[str, Any] | None = None) -> Dict[str, Any]:
    yaml_cfg = load_yaml(yaml_path)
    return merge_config(yaml_cfg, cli_overrides)


def watermark_rect(cfg: Mapping[str, Any]) -> Tuple[float, float, float, float]:
    wm = cfg.get("watermark", {})
    screen_w = float(cfg.get("screen", {}).get("width", 0))
    w, h = float(wm.get("w", 220)), float(wm.get("h", 50))
    x = wm.get("x")
    if x is None:
        x = screen_w - w - float(wm.get("margin", 10))
    return float(x), float(wm.get("y", 10)), w, h


__all__ = ["DEFAULTS", "load_yaml", "merge_config", "load_and_merge", "watermark_rect"]
