"""Overlay configuration variants.

Each anchor type is its own frozen dataclass, so an overlay cannot be built
without the landmark candidate lists its positioning strategy needs. YAML
entries are turned into variants by `build_overlay`, dispatching on `type`.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Tuple, Type

from .keypoints import LANDMARK_GROUPS, candidates_of

Candidates = Tuple[int, ...]
WidthRef = Tuple[Candidates, Candidates]


class AnchorType(str, Enum):
    EYE_SPAN = "eye_span"
    HEAD_TOP = "head_top"
    FACE_BOTTOM = "face_bottom"


def _require_candidates(name: str, value: Candidates) -> None:
    if not value:
        raise ValueError(f"{name} needs at least one landmark index")


@dataclass(frozen=True, kw_only=True)
class OverlayConfig:
    id: str
    image: str
    scale: float = 1.0
    x_offset: float = 0.0
    y_offset: float = 0.0
    rotation_offset: float = 0.0  # radians
    flip_horizontal: bool = False

    anchor_type: ClassVar[AnchorType]

    def __post_init__(self):
        if not self.id:
            raise ValueError("Overlay id must be non-empty")
        if not self.image:
            raise ValueError(f"Overlay {self.id!r} needs an image reference")
        if not self.scale > 0:
            raise ValueError(f"Overlay {self.id!r} scale must be positive")


@dataclass(frozen=True, kw_only=True)
class EyeSpanOverlay(OverlayConfig):
    left_eye: Candidates
    right_eye: Candidates

    anchor_type: ClassVar[AnchorType] = AnchorType.EYE_SPAN

    def __post_init__(self):
        super().__post_init__()
        _require_candidates("left_eye", self.left_eye)
        _require_candidates("right_eye", self.right_eye)


@dataclass(frozen=True, kw_only=True)
class HeadTopOverlay(OverlayConfig):
    forehead: Candidates
    chin: Candidates
    left_eye: Candidates
    right_eye: Candidates
    width_ref: Optional[WidthRef] = None

    anchor_type: ClassVar[AnchorType] = AnchorType.HEAD_TOP

    def __post_init__(self):
        super().__post_init__()
        for name in ("forehead", "chin", "left_eye", "right_eye"):
            _require_candidates(name, getattr(self, name))
        if self.width_ref is not None:
            _require_candidates("width_ref[0]", self.width_ref[0])
            _require_candidates("width_ref[1]", self.width_ref[1])


@dataclass(frozen=True, kw_only=True)
class FaceBottomOverlay(OverlayConfig):
    bottom: Candidates
    width_ref: Optional[WidthRef] = None
    # Eyes are optional here: used for roll and as a width fallback only
    left_eye: Candidates = field(default=LANDMARK_GROUPS["left_eye"])
    right_eye: Candidates = field(default=LANDMARK_GROUPS["right_eye"])

    anchor_type: ClassVar[AnchorType] = AnchorType.FACE_BOTTOM

    def __post_init__(self):
        super().__post_init__()
        _require_candidates("bottom", self.bottom)
        if self.width_ref is not None:
            _require_candidates("width_ref[0]", self.width_ref[0])
            _require_candidates("width_ref[1]", self.width_ref[1])


VARIANTS: Dict[AnchorType, Type[OverlayConfig]] = {
    AnchorType.EYE_SPAN: EyeSpanOverlay,
    AnchorType.HEAD_TOP: HeadTopOverlay,
    AnchorType.FACE_BOTTOM: FaceBottomOverlay,
}

_CANDIDATE_FIELDS = ("left_eye", "right_eye", "forehead", "chin", "bottom")
_COMMON_FIELDS = ("id", "image", "scale", "x_offset", "y_offset", "flip_horizontal")


def _width_ref_of(value: Any) -> WidthRef:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ValueError("width_ref must be a pair of landmark candidate lists")
    return candidates_of(value[0]), candidates_of(value[1])


def build_overlay(entry: Mapping[str, Any]) -> OverlayConfig:
    """Build one overlay variant from a config mapping tagged with `type`."""
    if not isinstance(entry, Mapping):
        raise ValueError("Overlay entry must be a mapping")
    tag = entry.get("type")
    try:
        anchor_type = AnchorType(tag)
    except ValueError:
        raise ValueError(f"Unknown overlay type {tag!r} (expected one of {[a.value for a in AnchorType]})") from None
    cls = VARIANTS[anchor_type]

    kwargs: Dict[str, Any] = {k: entry[k] for k in _COMMON_FIELDS if k in entry}
    for k in ("scale", "x_offset", "y_offset"):
        if k in kwargs:
            kwargs[k] = float(kwargs[k])
    if "flip_horizontal" in kwargs:
        kwargs["flip_horizontal"] = bool(kwargs["flip_horizontal"])
    if "rotation_offset" in entry:
        kwargs["rotation_offset"] = float(entry["rotation_offset"])
    elif "rotation_offset_deg" in entry:
        kwargs["rotation_offset"] = math.radians(float(entry["rotation_offset_deg"]))

    allowed = cls.__dataclass_fields__
    for k in _CANDIDATE_FIELDS:
        if k in entry:
            if k not in allowed:
                raise ValueError(f"{anchor_type.value} overlay does not take {k!r}")
            kwargs[k] = candidates_of(entry[k])
    if entry.get("width_ref") is not None:
        if "width_ref" not in allowed:
            raise ValueError(f"{anchor_type.value} overlay does not take 'width_ref'")
        kwargs["width_ref"] = _width_ref_of(entry["width_ref"])

    try:
        return cls(**kwargs)
    except TypeError as e:
        raise ValueError(f"Invalid {anchor_type.value} overlay {entry.get('id')!r}: {e}") from None


def build_overlays(cfg: Mapping[str, Any]) -> List[OverlayConfig]:
    entries = cfg.get("overlays") or []
    overlays = [build_overlay(e) for e in entries]
    ids = [o.id for o in overlays]
    dupes = sorted({i for i in ids if ids.count(i) > 1})
    if dupes:
        raise ValueError(f"Duplicate overlay ids: {dupes}")
    return overlays


__all__ = [
    "AnchorType",
    "OverlayConfig",
    "EyeSpanOverlay",
    "HeadTopOverlay",
    "FaceBottomOverlay",
    "build_overlay",
    "build_overlays",
]
