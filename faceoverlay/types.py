from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple
import numpy as np


@dataclass(frozen=True)
class Landmark:
    # Pixel-space x, y; z is relative depth and may be absent
    x: float
    y: float
    z: Optional[float] = None

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z or 0.0], dtype=np.float64)


@dataclass(frozen=True)
class Face:
    # Fixed-length, index-stable landmark sequence; holes are None
    landmarks: Tuple[Optional[Landmark], ...]

    def __len__(self) -> int:
        return len(self.landmarks)

    def get(self, index: int) -> Optional[Landmark]:
        if index < 0 or index >= len(self.landmarks):
            return None
        return self.landmarks[index]

    @classmethod
    def from_points(cls, points: Sequence[Optional[Sequence[float]]]) -> "Face":
        lms = []
        for p in points:
            if p is None:
                lms.append(None)
            elif len(p) >= 3:
                lms.append(Landmark(float(p[0]), float(p[1]), float(p[2])))
            else:
                lms.append(Landmark(float(p[0]), float(p[1])))
        return cls(tuple(lms))

    @classmethod
    def from_array(cls, arr: np.ndarray) -> "Face":
        """Build a face from an (N, 2) or (N, 3) array of pixel coordinates."""
        arr = np.asarray(arr, dtype=np.float64)
        if arr.ndim != 2 or arr.shape[1] not in (2, 3):
            raise ValueError("Landmark array must have shape (N, 2) or (N, 3)")
        return cls.from_points(arr.tolist())


@dataclass
class PoseResult:
    success: bool
    anchor: Optional[np.ndarray] = None  # shape (3,)
    roll: Optional[float] = None  # radians about the view axis
    render_width: Optional[float] = None  # pixels
    reason: Optional[str] = None


class CapturePhase(str, Enum):
    IDLE = "idle"
    COUNTING_DOWN = "counting_down"
    FROZEN = "frozen"


@dataclass(frozen=True)
class CaptureState:
    phase: CapturePhase = CapturePhase.IDLE
    remaining: Optional[int] = None
    flash: bool = False
    snapshot: Optional[np.ndarray] = None

    @property
    def is_frozen(self) -> bool:
        return self.phase is CapturePhase.FROZEN


IDLE = CaptureState()
