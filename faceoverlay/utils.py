from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Sequence, Tuple

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Chatty below WARNING; the booth logs its own upload outcome
QUIET_LOGGERS = ("urllib3", "PIL")


def _level_of(level: str | int) -> int:
    if isinstance(level, int):
        return level
    lvl = logging.getLevelName(str(level).upper())
    return lvl if isinstance(lvl, int) else logging.INFO


def setup_logging(level: str | int = "INFO") -> None:
    """Configure root logging for the booth.

    `level` is a level name or number; unknown names fall back to INFO.
    """
    logging.basicConfig(level=_level_of(level), format=LOG_FORMAT)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def ensure_dir(path: str | os.PathLike) -> Path:
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return p


def parse_color(value: str | Sequence[int]) -> Tuple[int, int, int]:
    """Parse a BGR triple or a small set of color names."""
    named = {"white": (255, 255, 255), "black": (0, 0, 0), "gray": (128, 128, 128)}
    if isinstance(value, str):
        key = value.strip().lower()
        if key not in named:
            raise ValueError(f"Unknown color name: {value!r}")
        return named[key]
    vals = tuple(int(v) for v in value)
    if len(vals) != 3 or any(v < 0 or v > 255 for v in vals):
        raise ValueError(f"Color must be three 0-255 values: {value!r}")
    return vals  # type: ignore[return-value]
