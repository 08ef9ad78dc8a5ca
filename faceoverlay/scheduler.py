"""Per-frame render pipeline.

One tick: clear -> mirrored camera frame -> issue an async face estimate ->
composite overlays for every estimate that has resolved by now -> watermark.
Estimates are `concurrent.futures.Future` objects and are never awaited; a
result is drawn on whichever tick first sees it done, so overlays may lag the
video under load. Rejected estimates simply contribute no overlays.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

import numpy as np

from .compositor import Color, DrawSurface, draw_mirrored, draw_overlay
from .loader import OverlayAssets
from .overlays import OverlayConfig
from .pose import resolve_pose
from .types import Face

logger = logging.getLogger(__name__)

Rect = Tuple[float, float, float, float]
FrameSize = Tuple[int, int]


class FrameSource(Protocol):
    def read(self) -> Optional[np.ndarray]: ...


class LandmarkSource(Protocol):
    def estimate_faces(self, frame: np.ndarray, mirrored: bool = True) -> "Future[List[Face]]": ...


@dataclass
class TickReport:
    frame_drawn: bool = False
    requests_issued: int = 0
    results_drawn: int = 0
    overlays_drawn: int = 0
    failed_requests: int = 0
    watermark_drawn: bool = False


class RenderLoop:
    def __init__(
        self,
        frame_source: FrameSource,
        surface: DrawSurface,
        overlays: Sequence[OverlayConfig],
        assets: OverlayAssets,
        detector: Optional[LandmarkSource] = None,
        background: Color = (255, 255, 255),
        watermark_rect: Optional[Rect] = None,
        surface_size: Optional[Tuple[int, int]] = None,
        detect_mirrored: bool = True,
        coalesce: bool = False,
        max_in_flight: Optional[int] = 2,
    ):
        missing = [o.id for o in overlays if o.id not in assets.images]
        if missing:
            raise ValueError(f"No preloaded image for overlays: {missing}")
        self.frame_source = frame_source
        self.surface = surface
        self.overlays = list(overlays)
        self.assets = assets
        self.detector = detector
        self.background = background
        self.watermark_rect = watermark_rect
        if surface_size is None:
            surface_size = (surface.width, surface.height)
        self.surface_size = surface_size
        self.detect_mirrored = detect_mirrored
        self.coalesce = coalesce
        if max_in_flight is not None and max_in_flight < 1:
            raise ValueError("max_in_flight must be >= 1 or None")
        self.max_in_flight = max_in_flight
        self._pending: List[Tuple[Future, FrameSize]] = []
        self.ticks = 0

    @property
    def in_flight(self) -> int:
        return len(self._pending)

    def _unresolved(self) -> int:
        return sum(1 for fut, _ in self._pending if not fut.done())

    def _issue(self, frame: np.ndarray) -> bool:
        if self.max_in_flight is not None and self._unresolved() >= self.max_in_flight:
            return False
        try:
            fut = self.detector.estimate_faces(frame, mirrored=self.detect_mirrored)
        except Exception as e:
            logger.debug("Face estimate request failed to start (%s)", e)
            return False
        fh, fw = frame.shape[:2]
        self._pending.append((fut, (fw, fh)))
        return True

    def _drain_resolved(self, report: TickReport) -> List[Tuple[List[Face], FrameSize]]:
        done = [(fut, size) for fut, size in self._pending if fut.done()]
        if not done:
            return []
        self._pending = [p for p in self._pending if p not in done]
        results: List[Tuple[List[Face], FrameSize]] = []
        for fut, size in done:
            if fut.cancelled():
                report.failed_requests += 1
                continue
            exc = fut.exception()
            if exc is not None:
                logger.debug("Face estimate rejected (%s)", exc)
                report.failed_requests += 1
                continue
            results.append((list(fut.result() or []), size))
        if self.coalesce and len(results) > 1:
            results = results[-1:]
        return results

    def _composite(self, faces: List[Face], frame_size: FrameSize) -> int:
        """Draw every overlay for `faces`, whose landmarks are in frame pixels."""
        fw, fh = frame_size
        sw, sh = self.surface_size
        drawn = 0
        self.surface.save()
        try:
            # Same mapping draw_mirrored gives the video: frame pixels -> surface
            self.surface.scale(sw / fw, sh / fh)
            for face in faces:
                for cfg in self.overlays:
                    pose = resolve_pose(face, cfg)
                    if not pose.success:
                        continue
                    try:
                        draw_overlay(self.surface, self.assets.images[cfg.id], pose, cfg)
                    except Exception as e:
                        logger.warning("Overlay %s skipped (%s)", cfg.id, e)
                        continue
                    drawn += 1
        finally:
            self.surface.restore()
        return drawn

    def tick(self) -> TickReport:
        report = TickReport()
        width, height = self.surface_size

        self.surface.fill(self.background)

        frame = self.frame_source.read()
        if frame is not None:
            draw_mirrored(self.surface, frame, width, height)
            report.frame_drawn = True
            if self.detector is not None and self._issue(frame):
                report.requests_issued = 1

        for faces, frame_size in self._drain_resolved(report):
            report.results_drawn += 1
            report.overlays_drawn += self._composite(faces, frame_size)

        if self.assets.watermark is not None and self.watermark_rect is not None:
            x, y, w, h = self.watermark_rect
            self.surface.draw_image(self.assets.watermark, x, y, w, h)
            report.watermark_drawn = True

        self.ticks += 1
        return report

    def run(self, fps: float = 30.0, on_tick: Optional[Callable[[TickReport], bool]] = None) -> None:
        """Tick at up to `fps` until `on_tick` returns False."""
        period = 1.0 / fps if fps and fps > 0 else 0.0
        logger.info("Render loop started (%.1f fps target)", fps)
        try:
            while True:
                start = time.monotonic()
                report = self.tick()
                if on_tick is not None and on_tick(report) is False:
                    break
                remaining = period - (time.monotonic() - start)
                if remaining > 0:
                    time.sleep(remaining)
        finally:
            logger.info("Render loop stopped after %d ticks", self.ticks)

    def close(self) -> None:
        for fut, _ in self._pending:
            fut.cancel()
        self._pending.clear()
        for res in (self.detector, self.frame_source):
            closer = getattr(res, "close", None) or getattr(res, "release", None)
            if closer is not None:
                closer()


__all__ = ["FrameSource", "LandmarkSource", "TickReport", "RenderLoop"]
