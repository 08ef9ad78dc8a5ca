"""Captured still hand-off.

Encodes a snapshot as a JPEG data URI and, on a background worker, writes it
to an optional local folder as `<epoch-ms>.jpg` and POSTs
`{"imgBase64": <data uri>}` to an optional HTTP endpoint. Failures are logged
and never reach the caller.
"""

from __future__ import annotations
import base64
import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, Optional

import cv2
import numpy as np
import requests

from .utils import ensure_dir

logger = logging.getLogger(__name__)

DATA_URI_PREFIX = "data:image/jpeg;base64,"


def encode_jpeg(image: np.ndarray, quality: int = 92) -> bytes:
    ok, buf = cv2.imencode(".jpg", image, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise ValueError("JPEG encoding failed")
    return buf.tobytes()


def to_data_uri(jpeg: bytes) -> str:
    return DATA_URI_PREFIX + base64.b64encode(jpeg).decode("ascii")


def from_data_uri(uri: str) -> bytes:
    if not uri.startswith(DATA_URI_PREFIX):
        raise ValueError("Not a base64 JPEG data URI")
    return base64.b64decode(uri[len(DATA_URI_PREFIX):])


def build_payload(image: np.ndarray, quality: int = 92) -> Dict[str, Any]:
    return {"imgBase64": to_data_uri(encode_jpeg(image, quality))}


class SnapshotSaver:
    def __init__(
        self,
        endpoint: Optional[str] = None,
        output_dir: Optional[str | Path] = None,
        timeout: float = 10.0,
        quality: int = 92,
        session: Optional[requests.Session] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.endpoint = endpoint or None
        self.output_dir = Path(output_dir) if output_dir else None
        self.timeout = timeout
        self.quality = quality
        self.session = session or requests.Session()
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="snapshot-save")
        self._owns_executor = executor is None

    def __call__(self, snapshot: np.ndarray) -> Optional[Future]:
        return self.save(snapshot)

    def save(self, snapshot: np.ndarray) -> Optional[Future]:
        """Schedule the hand-off and return its future (for callers that care)."""
        image = snapshot.copy()
        try:
            return self._executor.submit(self._run, image)
        except RuntimeError as e:
            logger.warning("Snapshot save not scheduled (%s)", e)
            return None

    def _run(self, image: np.ndarray) -> Dict[str, Any]:
        result: Dict[str, Any] = {"file": None, "uploaded": None}
        try:
            jpeg = encode_jpeg(image, self.quality)
        except (ValueError, cv2.error) as e:
            logger.warning("Failed to encode snapshot (%s)", e)
            return result
        if self.output_dir is not None:
            result["file"] = self._write_local(jpeg)
        if self.endpoint:
            result["uploaded"] = self._upload(to_data_uri(jpeg))
        return result

    def _write_local(self, jpeg: bytes) -> Optional[str]:
        try:
            ensure_dir(self.output_dir)
            dest = self.output_dir / f"{int(time.time() * 1000)}.jpg"
            dest.write_bytes(jpeg)
            logger.info("Saved still: %s", dest)
            return str(dest)
        except OSError as e:
            logger.warning("Failed to write still to %s (%s)", self.output_dir, e)
            return None

    def _upload(self, data_uri: str) -> Optional[str]:
        try:
            resp = self.session.post(self.endpoint, json={"imgBase64": data_uri}, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.warning("Upload failed. (%s)", e)
            return None
        try:
            body = resp.json()
        except ValueError:
            body = {}
        name = body.get("file") if isinstance(body, dict) else None
        logger.info("Uploaded: %s", name)
        return name or ""

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True)


__all__ = [
    "DATA_URI_PREFIX",
    "encode_jpeg",
    "to_data_uri",
    "from_data_uri",
    "build_payload",
    "SnapshotSaver",
]
