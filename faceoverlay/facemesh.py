from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

try:
    import cv2
    import mediapipe as mp
except Exception as e:  # pragma: no cover - environment import guard
    cv2 = None  # type: ignore
    mp = None  # type: ignore

from .types import Face, Landmark

logger = logging.getLogger(__name__)


@dataclass
class FaceMeshConfig:
    refine_landmarks: bool = True
    max_faces: int = 2
    min_detection_confidence: float = 0.5
    min_tracking_confidence: float = 0.5

    @classmethod
    def from_cfg(cls, cfg: dict) -> "FaceMeshConfig":
        mp_cfg = cfg.get("mediapipe", {})
        return cls(
            refine_landmarks=bool(mp_cfg.get("refine_landmarks", True)),
            max_faces=int(mp_cfg.get("max_faces", 2)),
            min_detection_confidence=float(mp_cfg.get("min_detection_confidence", 0.5)),
            min_tracking_confidence=float(mp_cfg.get("min_tracking_confidence", 0.5)),
        )


def landmarks_to_face(lms, width: int, height: int) -> Face:
    """Convert one MediaPipe landmark list from normalized to pixel space.

    z is scaled by the frame width, matching MediaPipe's depth convention.
    """
    return Face(tuple(Landmark(pt.x * width, pt.y * height, getattr(pt, "z", 0.0) * width) for pt in lms.landmark))


class MediaPipeLandmarkSource:
    """Asynchronous face landmark source backed by MediaPipe FaceMesh.

    Estimates run one at a time on a private worker thread (FaceMesh is not
    thread-safe); callers get a Future and never block the frame loop.

    Usage:
        with MediaPipeLandmarkSource(FaceMeshConfig()) as det:
            fut = det.estimate_faces(frame, mirrored=True)
    """

    def __init__(self, cfg: Optional[FaceMeshConfig] = None):
        if mp is None or cv2 is None:
            raise ImportError("mediapipe and opencv-python must be installed to use MediaPipeLandmarkSource")
        self.cfg = cfg or FaceMeshConfig()
        self._mesh = None
        self._executor: Optional[ThreadPoolExecutor] = None

    def __enter__(self):
        self._ensure_open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _ensure_open(self):
        if self._mesh is None:
            self._mesh = mp.solutions.face_mesh.FaceMesh(
                static_image_mode=False,
                refine_landmarks=self.cfg.refine_landmarks,
                max_num_faces=self.cfg.max_faces,
                min_detection_confidence=self.cfg.min_detection_confidence,
                min_tracking_confidence=self.cfg.min_tracking_confidence,
            )
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="facemesh")

    def _detect(self, frame_bgr: np.ndarray, mirrored: bool) -> List[Face]:
        assert self._mesh is not None
        if mirrored:
            frame_bgr = cv2.flip(frame_bgr, 1)
        # Convert BGR -> RGB as required by MediaPipe
        img_rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
        results = self._mesh.process(img_rgb)
        if not results or not results.multi_face_landmarks:
            return []
        height, width = frame_bgr.shape[:2]
        return [landmarks_to_face(flm, width, height) for flm in results.multi_face_landmarks]

    def estimate_faces(self, frame: np.ndarray, mirrored: bool = True) -> "Future[List[Face]]":
        self._ensure_open()
        assert self._executor is not None
        return self._executor.submit(self._detect, frame.copy(), mirrored)

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True, cancel_futures=True)
            self._executor = None
        if self._mesh is not None:
            self._mesh.close()
            self._mesh = None


__all__ = ["MediaPipeLandmarkSource", "FaceMeshConfig", "landmarks_to_face"]
