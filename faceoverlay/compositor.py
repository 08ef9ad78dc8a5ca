"""Drawing surface and overlay compositor.

`CanvasSurface` gives a canvas-style API (save/restore, translate, rotate,
scale, draw_image) over a BGR uint8 array. The current transform is a 3x3
affine matrix in canvas coordinates, where pixel (i, j) covers
[i, i+1) x [j, j+1). Images are warped with cv2.warpAffine and alpha-blended.
"""

from __future__ import annotations

import abc
import logging
import math
from typing import List, Tuple

import numpy as np
import cv2

from .overlays import OverlayConfig
from .types import PoseResult

logger = logging.getLogger(__name__)

Color = Tuple[int, int, int]


class DrawSurface(abc.ABC):
    @property
    @abc.abstractmethod
    def width(self) -> int: ...

    @property
    @abc.abstractmethod
    def height(self) -> int: ...

    @abc.abstractmethod
    def fill(self, color: Color) -> None: ...

    @abc.abstractmethod
    def save(self) -> None: ...

    @abc.abstractmethod
    def restore(self) -> None: ...

    @abc.abstractmethod
    def translate(self, dx: float, dy: float) -> None: ...

    @abc.abstractmethod
    def rotate(self, radians: float) -> None: ...

    @abc.abstractmethod
    def scale(self, sx: float, sy: float) -> None: ...

    @abc.abstractmethod
    def draw_image(self, image: np.ndarray, x: float, y: float, w: float, h: float) -> None: ...

    @abc.abstractmethod
    def snapshot(self) -> np.ndarray: ...


def _translation(dx: float, dy: float) -> np.ndarray:
    return np.array([[1.0, 0.0, dx], [0.0, 1.0, dy], [0.0, 0.0, 1.0]])


def _split_alpha(image: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Return (bgr uint8, alpha float32 in [0, 1]) for gray, BGR or BGRA input."""
    if image.ndim == 2:
        bgr = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
        return bgr, np.ones(image.shape[:2], dtype=np.float32)
    if image.shape[2] == 4:
        return np.ascontiguousarray(image[:, :, :3]), image[:, :, 3].astype(np.float32) / 255.0
    return np.ascontiguousarray(image), np.ones(image.shape[:2], dtype=np.float32)


class CanvasSurface(DrawSurface):
    def __init__(self, width: int, height: int, background: Color = (255, 255, 255)):
        if width <= 0 or height <= 0:
            raise ValueError("Surface size must be positive")
        self.pixels = np.empty((int(height), int(width), 3), dtype=np.uint8)
        self.pixels[:] = background
        self._ctm = np.eye(3)
        self._stack: List[np.ndarray] = []

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def transform(self) -> np.ndarray:
        return self._ctm.copy()

    @property
    def depth(self) -> int:
        """Number of saved transforms awaiting restore."""
        return len(self._stack)

    def apply(self, x: float, y: float) -> Tuple[float, float]:
        """Map a point from the current local frame to canvas coordinates."""
        p = self._ctm @ np.array([x, y, 1.0])
        return float(p[0]), float(p[1])

    def fill(self, color: Color) -> None:
        self.pixels[:] = color

    def save(self) -> None:
        self._stack.append(self._ctm.copy())

    def restore(self) -> None:
        if not self._stack:
            raise RuntimeError("restore() without matching save()")
        self._ctm = self._stack.pop()

    def translate(self, dx: float, dy: float) -> None:
        self._ctm = self._ctm @ _translation(dx, dy)

    def rotate(self, radians: float) -> None:
        c, s = math.cos(radians), math.sin(radians)
        self._ctm = self._ctm @ np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])

    def scale(self, sx: float, sy: float) -> None:
        self._ctm = self._ctm @ np.diag([sx, sy, 1.0])

    def draw_image(self, image: np.ndarray, x: float, y: float, w: float, h: float) -> None:
        ih, iw = image.shape[:2]
        if w <= 0 or h <= 0 or iw == 0 or ih == 0:
            return
        place = np.array([[w / iw, 0.0, x], [0.0, h / ih, y], [0.0, 0.0, 1.0]])
        # Source pixel centres sit at +0.5; destination indices at -0.5
        M = _translation(-0.5, -0.5) @ self._ctm @ place @ _translation(0.5, 0.5)

        corners = M @ np.array([[-0.5, iw - 0.5, -0.5, iw - 0.5], [-0.5, -0.5, ih - 0.5, ih - 0.5], [1, 1, 1, 1]])
        x0 = max(int(math.floor(corners[0].min())) - 1, 0)
        y0 = max(int(math.floor(corners[1].min())) - 1, 0)
        x1 = min(int(math.ceil(corners[0].max())) + 2, self.width)
        y1 = min(int(math.ceil(corners[1].max())) + 2, self.height)
        if x0 >= x1 or y0 >= y1:
            return

        M_roi = (_translation(-x0, -y0) @ M)[:2]
        size = (x1 - x0, y1 - y0)
        bgr, alpha = _split_alpha(image)
        fg = cv2.warpAffine(bgr, M_roi, size, flags=cv2.INTER_LINEAR, borderMode=cv2.BORDER_REPLICATE)
        a = cv2.warpAffine(alpha, M_roi, size, flags=cv2.INTER_LINEAR, borderMode=cv2.BORDER_REPLICATE)
        # Coverage: destination pixel centres that land inside the image rect
        inside = cv2.warpAffine(
            np.ones((ih, iw), dtype=np.float32), M_roi, size, flags=cv2.INTER_NEAREST, borderMode=cv2.BORDER_CONSTANT, borderValue=0
        )
        a = (a * inside)[:, :, None]

        roi = self.pixels[y0:y1, x0:x1].astype(np.float32)
        out = fg.astype(np.float32) * a + roi * (1.0 - a)
        self.pixels[y0:y1, x0:x1] = np.clip(out + 0.5, 0, 255).astype(np.uint8)

    def snapshot(self) -> np.ndarray:
        return self.pixels.copy()


def draw_overlay(surface: DrawSurface, image: np.ndarray, pose: PoseResult, cfg: OverlayConfig) -> None:
    """Draw `image` centred on the resolved pose.

    The surface transform is restored before returning, whether or not the
    draw succeeded. Warp failures are logged and the overlay is skipped.
    """
    surface.save()
    try:
        ih, iw = image.shape[:2]
        width = float(pose.render_width)
        height = width * (ih / iw)
        x_off = width * cfg.x_offset if cfg.x_offset else 0.0
        y_off = height * cfg.y_offset
        surface.translate(float(pose.anchor[0]) + x_off, float(pose.anchor[1]))
        surface.rotate(float(pose.roll))
        if cfg.flip_horizontal:
            surface.scale(-1.0, 1.0)
        surface.draw_image(image, -width / 2.0, -height / 2.0 + y_off, width, height)
    except (cv2.error, ValueError) as e:
        logger.warning("Failed to draw overlay %s (%s)", cfg.id, e)
    finally:
        surface.restore()


def draw_mirrored(surface: DrawSurface, frame: np.ndarray, width: float, height: float) -> None:
    """Draw `frame` flipped horizontally and scaled to (width, height)."""
    surface.save()
    try:
        surface.translate(width, 0.0)
        surface.scale(-1.0, 1.0)
        surface.draw_image(frame, 0.0, 0.0, width, height)
    finally:
        surface.restore()


__all__ = [
    "DrawSurface",
    "CanvasSurface",
    "draw_overlay",
    "draw_mirrored",
]
