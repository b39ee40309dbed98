from collections import deque
from typing import Optional

import numpy as np

from .landmarks import FRAME_SIZE


class TemporalSmoother:
    def __init__(self, window: int = 5):
        self.window = window
        self._frames = deque(maxlen=window)

    def reset(self):
        self._frames.clear()

    def __len__(self) -> int:
        return len(self._frames)

    def smooth(self, frame: np.ndarray) -> np.ndarray:
        """
        frame: np.ndarray of shape (258,)
        Returns the element-wise mean over the frames currently held.
        While the window fills up the divisor is the current size, not `window`.
        """
        self._frames.append(np.asarray(frame, dtype=np.float32))
        return np.mean(np.stack(self._frames, axis=0), axis=0)


class SequenceWindower:
    def __init__(self, length: int = 60, frame_size: int = FRAME_SIZE):
        self.length = length
        self.frame_size = frame_size

        self._frames = []

    def reset(self):
        self._frames = []

    @property
    def count(self) -> int:
        return len(self._frames)

    @property
    def progress(self) -> float:
        return self.count / self.length

    def push(self, frame: np.ndarray) -> Optional[np.ndarray]:
        """
        Returns a (T, 258) float32 sequence every `length` frames, else None.
        A partial tail is never emitted.
        """
        frame = np.asarray(frame)
        if frame.shape != (self.frame_size,):
            raise ValueError(f"expected a frame of shape ({self.frame_size},), got {frame.shape}")
        self._frames.append(frame)

        if len(self._frames) < self.length:
            return None

        data = np.stack(self._frames, axis=0).astype(np.float32)
        self._frames = []
        return data
