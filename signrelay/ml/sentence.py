from __future__ import annotations

from collections import deque
from typing import Deque, List, Optional

NOTHING_LABEL = "nothing"
IDLE_PREDICTION = "..."


class SentenceAssembler:
    """
    Turns the classifier's per-window labels into a sentence.

    A single sign spans several overlapping windows, so the classifier repeats
    itself. A label is appended only if it is absent from the previous
    `history_size - 1` labels (the history minus the entry just pushed).
    """
    def __init__(
        self,
        history_size: int = 5,
        nothing_label: str = NOTHING_LABEL,
        idle_prediction: str = IDLE_PREDICTION,
        clear_resets_history: bool = False,
    ):
        self.nothing_label = nothing_label
        self.idle_prediction = idle_prediction
        self.clear_resets_history = clear_resets_history

        self.history: Deque[str] = deque(maxlen=history_size)
        self._words: List[str] = []
        self.prediction: str = idle_prediction

    @property
    def sentence(self) -> str:
        return " ".join(self._words)

    @property
    def words(self) -> List[str]:
        return list(self._words)

    def on_prediction(self, label: str) -> Optional[str]:
        """Returns the word appended to the sentence, or None."""
        self.prediction = label

        if label == self.nothing_label:
            return None

        self.history.append(label)
        prior = list(self.history)[:-1]
        if label in prior:
            return None

        self._words.append(label)
        return label

    def clear(self) -> None:
        self._words.clear()
        self.prediction = self.idle_prediction
        # history survives by default: a cleared word is still suppressed
        if self.clear_resets_history:
            self.history.clear()
