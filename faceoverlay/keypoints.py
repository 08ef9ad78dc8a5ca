from __future__ import annotations

from typing import Dict, Iterable, Optional, Sequence, Tuple, Union

from .types import Face, Landmark


# MediaPipe FaceMesh landmark indices, ordered by preference.
# Eye roles follow the mirrored display: "left" is the viewer's left.
LANDMARK_GROUPS: Dict[str, Tuple[int, ...]] = {
    "left_eye": (249, 33, 130),
    "right_eye": (7, 263, 359),
    "forehead": (10, 151, 9),
    "chin": (152, 175, 199),
    "upper_lip": (0, 13, 164),
    "lower_lip": (17, 14),
    "nose_tip": (1, 4),
    "left_cheek": (234, 93, 127),
    "right_cheek": (454, 323, 356),
    "left_mouth": (61, 78),
    "right_mouth": (291, 308),
}

Candidates = Union[str, int, Iterable[int]]


def first_present(face: Face, candidates: Sequence[int]) -> Optional[Landmark]:
    """Return the first landmark of `candidates` present in `face`, else None."""
    return next((lm for lm in map(face.get, candidates) if lm is not None), None)


def candidates_of(value: Candidates) -> Tuple[int, ...]:
    """Normalize a candidate list given as a group name, a single index or indices."""
    if isinstance(value, str):
        if value not in LANDMARK_GROUPS:
            raise ValueError(f"Unknown landmark group: {value!r}")
        return LANDMARK_GROUPS[value]
    if isinstance(value, bool):
        raise ValueError("Landmark candidates must be indices, not booleans")
    if isinstance(value, int):
        value = (value,)
    idxs = tuple(int(i) for i in value)
    if any(i < 0 for i in idxs):
        raise ValueError(f"Landmark indices must be non-negative: {idxs}")
    return idxs


__all__ = [
    "LANDMARK_GROUPS",
    "first_present",
    "candidates_of",
]
