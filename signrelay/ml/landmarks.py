from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

import numpy as np

# -------------------------
# Layout of one frame vector
# -------------------------

POSE_POINTS = 33
POSE_DIM = 4                      # x, y, z, visibility
HAND_POINTS = 21
HAND_DIM = 3                      # x, y, z

POSE_SIZE = POSE_POINTS * POSE_DIM        # 132
HAND_SIZE = HAND_POINTS * HAND_DIM        # 63
FRAME_SIZE = POSE_SIZE + 2 * HAND_SIZE    # 258

POSE_SLICE = slice(0, POSE_SIZE)
LEFT_HAND_SLICE = slice(POSE_SIZE, POSE_SIZE + HAND_SIZE)
RIGHT_HAND_SLICE = slice(POSE_SIZE + HAND_SIZE, FRAME_SIZE)


@dataclass(frozen=True)
class KeypointObservation:
    """
    One detector tick. Each part is None when the detector lost it.

    A part may be a list of points, or a landmark-list wrapper with `.landmark`
    (MediaPipe solutions). A point may be an object with x/y/z[/visibility]
    attributes, a mapping with the same keys, or a plain (x, y, z[, v]) sequence.
    """
    pose: Optional[Any] = None
    left_hand: Optional[Any] = None
    right_hand: Optional[Any] = None

    @classmethod
    def empty(cls) -> "KeypointObservation":
        return cls()


def landmark_list(lm: Any) -> Optional[Sequence[Any]]:
    """Unwraps `.landmark` containers; None stays None."""
    if lm is None:
        return None
    if isinstance(lm, (list, tuple, np.ndarray)):
        return lm
    inner = getattr(lm, "landmark", None)
    if inner is not None:
        return inner
    return None


def _point_value(point: Any, key: str, idx: int) -> float:
    if isinstance(point, Mapping):
        value = point.get(key)
    elif isinstance(point, (list, tuple, np.ndarray)):
        value = point[idx] if idx < len(point) else None
    else:
        value = getattr(point, key, None)
    return 0.0 if value is None else float(value)


_KEYS = ("x", "y", "z", "visibility")


def flatten_part(lm: Any, n_points: int, dim: int) -> np.ndarray:
    """
    Flattens up to `n_points` points into n_points*dim values.
    Missing parts give zeros; short parts are zero padded, long ones truncated.
    """
    out = np.zeros((n_points, dim), dtype=np.float32)
    points = landmark_list(lm)
    if points is None:
        return out.reshape(-1)

    for i, point in enumerate(points):
        if i >= n_points:
            break
        for j in range(dim):
            out[i, j] = _point_value(point, _KEYS[j], j)

    return out.reshape(-1)


def normalize_observation(observation: Optional[KeypointObservation]) -> np.ndarray:
    """KeypointObservation -> (258,) float32: [pose 33x4 | left 21x3 | right 21x3]."""
    if observation is None:
        return np.zeros(FRAME_SIZE, dtype=np.float32)

    return np.concatenate([
        flatten_part(observation.pose, POSE_POINTS, POSE_DIM),
        flatten_part(observation.left_hand, HAND_POINTS, HAND_DIM),
        flatten_part(observation.right_hand, HAND_POINTS, HAND_DIM),
    ])
