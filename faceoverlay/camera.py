from __future__ import annotations

import logging
from typing import Optional

import numpy as np
import cv2

logger = logging.getLogger(__name__)


class CameraFrameSource:
    """Latest-frame reader over cv2.VideoCapture.

    `read()` returns a BGR frame or None when the device has nothing to give.
    """

    def __init__(self, index: int = 0, width: Optional[int] = None, height: Optional[int] = None):
        self.index = index
        self._cap = cv2.VideoCapture(index)
        if not self._cap.isOpened():
            raise RuntimeError(f"Camera {index} could not be opened")
        if width:
            self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, int(width))
        if height:
            self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, int(height))
        logger.info(
            "Camera %s opened at %dx%d",
            index,
            int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()

    def read(self) -> Optional[np.ndarray]:
        if self._cap is None:
            return None
        ok, frame = self._cap.read()
        if not ok or frame is None:
            return None
        return frame

    def release(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None


__all__ = ["CameraFrameSource"]
