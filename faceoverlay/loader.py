"""Overlay image preloading.

- Unicode-safe decoding via OpenCV (imdecode) with an imread fallback,
  keeping the alpha channel (IMREAD_UNCHANGED).
- All-or-nothing: the first image that fails to decode aborts the batch.
- Decoded images are bound by overlay id, with the watermark kept separate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np
import cv2
from tqdm import tqdm

from .overlays import OverlayConfig

logger = logging.getLogger(__name__)


class AssetLoadError(RuntimeError):
    pass


@dataclass
class OverlayAssets:
    images: Dict[str, np.ndarray] = field(default_factory=dict)
    watermark: Optional[np.ndarray] = None


def _imread_unicode(path: Path) -> Optional[np.ndarray]:
    try:
        data = np.fromfile(str(path), dtype=np.uint8)
    except OSError:
        return None
    if data.size == 0:
        return None
    img = cv2.imdecode(data, cv2.IMREAD_UNCHANGED)
    if img is None:
        # Fallback to standard imread
        img = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
    return img


def _resolve(ref: str | Path, base_dir: Optional[str | Path]) -> Path:
    p = Path(ref)
    if base_dir is not None and not p.is_absolute():
        p = Path(base_dir) / p
    return p


def preload_images(refs: Sequence[str | Path], base_dir: Optional[str | Path] = None) -> List[np.ndarray]:
    """Decode every reference, one-to-one with input order."""
    images: List[np.ndarray] = []
    for ref in tqdm(refs, desc="Preloading", unit="img", leave=False, disable=len(refs) < 2):
        p = _resolve(ref, base_dir)
        img = _imread_unicode(p)
        if img is None or img.size == 0:
            raise AssetLoadError(f"Failed to load {p}")
        logger.debug("Loaded %s (%dx%d)", p, img.shape[1], img.shape[0])
        images.append(img)
    return images


def load_assets(
    overlays: Iterable[OverlayConfig],
    watermark: Optional[str | Path] = None,
    base_dir: Optional[str | Path] = None,
) -> OverlayAssets:
    overlays = list(overlays)
    refs: List[str | Path] = [o.image for o in overlays]
    if watermark:
        refs.append(watermark)
    images = preload_images(refs, base_dir)
    assets = OverlayAssets(
        images={o.id: img for o, img in zip(overlays, images)},
        watermark=images[-1] if watermark else None,
    )
    logger.info("Preloaded %d overlay image(s)%s", len(assets.images), " and watermark" if watermark else "")
    return assets


__all__ = ["AssetLoadError", "OverlayAssets", "preload_images", "load_assets"]
