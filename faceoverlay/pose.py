"""Landmark-to-pose resolution.

Maps one face's landmarks and one overlay configuration to an anchor pose
(anchor point, roll, render width). Rotation is modelled as 2D roll about
the view axis only:
  - Axes: X right, Y down (pixel space), Z relative depth
  - roll = atan2(dy, dx) of the eye line, plus the overlay's rotation offset

Missing landmarks and degenerate geometry are expected outcomes and come back
as `PoseResult(success=False, reason=...)`; nothing here raises.
"""

from __future__ import annotations

import math
from typing import Optional, Tuple

import numpy as np

from .keypoints import first_present
from .overlays import EyeSpanOverlay, FaceBottomOverlay, HeadTopOverlay, OverlayConfig, WidthRef
from .types import Face, Landmark, PoseResult

# HeadTop placement, as fractions of forehead-to-chin height
HEAD_LIFT = 0.4
HEAD_SETBACK = 0.35
# Width fallbacks, as multiples of the eye distance
HEAD_WIDTH_PER_EYE_SPAN = 1.5
BOTTOM_WIDTH_PER_EYE_SPAN = 1.2

_EPS = 1e-9


def _fail(reason: str) -> PoseResult:
    return PoseResult(success=False, reason=reason)


def _distance(a: Landmark, b: Landmark) -> float:
    """Screen-space (x, y) distance."""
    return float(math.hypot(b.x - a.x, b.y - a.y))


def _midpoint(a: Landmark, b: Landmark) -> np.ndarray:
    return (a.as_array() + b.as_array()) / 2.0


def _roll(left: Landmark, right: Landmark, offset: float) -> float:
    return float(math.atan2(right.y - left.y, right.x - left.x) + offset)


def _normalize(v: np.ndarray) -> Optional[np.ndarray]:
    n = float(np.linalg.norm(v))
    if n < _EPS:
        return None
    return v / n


def _eyes(face: Face, cfg) -> Tuple[Optional[Landmark], Optional[Landmark]]:
    return first_present(face, cfg.left_eye), first_present(face, cfg.right_eye)


def _width_from_ref(face: Face, ref: Optional[WidthRef]) -> Optional[float]:
    if ref is None:
        return None
    a = first_present(face, ref[0])
    b = first_present(face, ref[1])
    if a is None or b is None:
        return None
    return _distance(a, b)


def _success(anchor: np.ndarray, roll: float, width: float, scale: float) -> PoseResult:
    width = width * scale
    if not width > _EPS:
        return _fail("zero_width")
    return PoseResult(success=True, anchor=np.asarray(anchor, dtype=np.float64), roll=roll, render_width=float(width))


def resolve_eye_span(face: Face, cfg: EyeSpanOverlay) -> PoseResult:
    left, right = _eyes(face, cfg)
    if left is None:
        return _fail("missing:left_eye")
    if right is None:
        return _fail("missing:right_eye")
    return _success(
        _midpoint(left, right),
        _roll(left, right, cfg.rotation_offset),
        _distance(left, right),
        cfg.scale,
    )


def resolve_head_top(face: Face, cfg: HeadTopOverlay) -> PoseResult:
    forehead = first_present(face, cfg.forehead)
    if forehead is None:
        return _fail("missing:forehead")
    chin = first_present(face, cfg.chin)
    if chin is None:
        return _fail("missing:chin")
    left, right = _eyes(face, cfg)
    if left is None:
        return _fail("missing:left_eye")
    if right is None:
        return _fail("missing:right_eye")

    face_height = _distance(forehead, chin)
    top = forehead.as_array()
    forward = _normalize(top - _midpoint(left, right))
    if forward is None:
        return _fail("degenerate:forward")
    up = _normalize(top - chin.as_array())
    if up is None:
        return _fail("degenerate:up")

    # Above and behind the forehead point; the head top itself is not sampled
    anchor = top + up * face_height * HEAD_LIFT - forward * face_height * HEAD_SETBACK

    width = _width_from_ref(face, cfg.width_ref)
    if width is None:
        width = _distance(left, right) * HEAD_WIDTH_PER_EYE_SPAN
    return _success(anchor, _roll(left, right, cfg.rotation_offset), width, cfg.scale)


def resolve_face_bottom(face: Face, cfg: FaceBottomOverlay) -> PoseResult:
    bottom = first_present(face, cfg.bottom)
    if bottom is None:
        return _fail("missing:bottom")
    left, right = _eyes(face, cfg)
    have_eyes = left is not None and right is not None

    width = _width_from_ref(face, cfg.width_ref)
    if width is None:
        if not have_eyes:
            return _fail("missing:width")
        width = _distance(left, right) * BOTTOM_WIDTH_PER_EYE_SPAN

    roll = _roll(left, right, cfg.rotation_offset) if have_eyes else float(cfg.rotation_offset)
    return _success(bottom.as_array(), roll, width, cfg.scale)


_RESOLVERS = {
    EyeSpanOverlay: resolve_eye_span,
    HeadTopOverlay: resolve_head_top,
    FaceBottomOverlay: resolve_face_bottom,
}


def resolve_pose(face: Face, cfg: OverlayConfig) -> PoseResult:
    """Resolve where to draw `cfg` on `face` for this frame."""
    resolver = _RESOLVERS.get(type(cfg))
    if resolver is None:
        return _fail(f"unsupported:{type(cfg).__name__}")
    return resolver(face, cfg)


__all__ = [
    "resolve_pose",
    "resolve_eye_span",
    "resolve_head_top",
    "resolve_face_bottom",
]
