"""Display-only layer: countdown digits, flash and frozen still.

Drawn on a copy of the surface pixels, so none of it ends up in a capture.
"""

from __future__ import annotations

import numpy as np
import cv2

from .types import CapturePhase, CaptureState

COUNTDOWN_ALPHA = 0.7


def draw_countdown(image: np.ndarray, remaining: int) -> np.ndarray:
    h, w = image.shape[:2]
    text = str(remaining)
    font = cv2.FONT_HERSHEY_SIMPLEX
    scale = h / 80.0
    thickness = max(2, int(scale * 2))
    (tw, th), _ = cv2.getTextSize(text, font, scale, thickness)
    layer = image.copy()
    cv2.putText(layer, text, ((w - tw) // 2, (h + th) // 2), font, scale, (255, 255, 255), thickness, cv2.LINE_AA)
    return cv2.addWeighted(layer, COUNTDOWN_ALPHA, image, 1.0 - COUNTDOWN_ALPHA, 0.0)


def compose_display(live: np.ndarray, state: CaptureState) -> np.ndarray:
    """Return the image to show for this tick given the capture state."""
    if state.flash:
        return np.full_like(live, 255)
    if state.phase is CapturePhase.FROZEN and state.snapshot is not None:
        return state.snapshot.copy()
    if state.phase is CapturePhase.COUNTING_DOWN and state.remaining:
        return draw_countdown(live, state.remaining)
    return live.copy()


__all__ = ["compose_display", "draw_countdown"]
