from __future__ import annotations

from concurrent.futures import Future
from typing import Dict, List, Optional, Sequence

import numpy as np
import pytest

from faceoverlay.compositor import CanvasSurface
from faceoverlay.types import Face, Landmark

NUM_LANDMARKS = 478


def make_face(points: Dict[int, Sequence[float]], n: int = NUM_LANDMARKS) -> Face:
    """Face of `n` slots where only `points` are present."""
    lms: List[Optional[Landmark]] = [None] * n
    for idx, p in points.items():
        lms[idx] = Landmark(*[float(v) for v in p])
    return Face(tuple(lms))


def solid_image(w: int, h: int, bgr=(0, 0, 255), alpha: Optional[int] = 255) -> np.ndarray:
    if alpha is None:
        img = np.zeros((h, w, 3), dtype=np.uint8)
        img[:] = bgr
        return img
    img = np.zeros((h, w, 4), dtype=np.uint8)
    img[:, :, :3] = bgr
    img[:, :, 3] = alpha
    return img


def resolved(value=None, exc: Optional[BaseException] = None) -> Future:
    fut: Future = Future()
    if exc is not None:
        fut.set_exception(exc)
    else:
        fut.set_result(value)
    return fut


class ManualClock:
    def __init__(self, t: float = 0.0):
        self.t = t

    def __call__(self) -> float:
        return self.t

    def set(self, t: float) -> None:
        self.t = t


class RecordingSurface(CanvasSurface):
    """CanvasSurface that logs every call and the transform at each draw."""

    def __init__(self, width: int = 320, height: int = 240, background=(0, 0, 0)):
        super().__init__(width, height, background)
        self.ops: List[tuple] = []
        self.draws: List[dict] = []

    def fill(self, color):
        self.ops.append(("fill", tuple(color)))
        super().fill(color)

    def save(self):
        self.ops.append(("save",))
        super().save()

    def restore(self):
        self.ops.append(("restore",))
        super().restore()

    def translate(self, dx, dy):
        self.ops.append(("translate", dx, dy))
        super().translate(dx, dy)

    def rotate(self, radians):
        self.ops.append(("rotate", radians))
        super().rotate(radians)

    def scale(self, sx, sy):
        self.ops.append(("scale", sx, sy))
        super().scale(sx, sy)

    def draw_image(self, image, x, y, w, h):
        self.ops.append(("draw_image", image.shape))
        self.draws.append(
            {
                "image": image,
                "rect": (x, y, w, h),
                "center": self.apply(x + w / 2.0, y + h / 2.0),
                "transform": self.transform,
            }
        )
        super().draw_image(image, x, y, w, h)


class StaticFrameSource:
    def __init__(self, frame: Optional[np.ndarray]):
        self.frame = frame
        self.released = False

    def read(self):
        return self.frame

    def release(self):
        self.released = True


class FakeDetector:
    """Hands out queued futures, or a fresh pending one when the queue is empty."""

    def __init__(self, futures: Sequence[Future] = ()):
        self.queue: List[Future] = list(futures)
        self.calls: List[dict] = []
        self.closed = False

    def estimate_faces(self, frame, mirrored=True):
        self.calls.append({"shape": frame.shape, "mirrored": mirrored})
        if self.queue:
            return self.queue.pop(0)
        return Future()

    def close(self):
        self.closed = True


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def eye_face() -> Face:
    # Default MediaPipe eye candidates: left 249, right 7
    return make_face({249: (100, 120), 7: (140, 120)})
