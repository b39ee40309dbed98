from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional, Protocol

from gtts import gTTS

logger = logging.getLogger("signrelay.speech")


class Speaker(Protocol):
    def speak(self, text: str) -> Optional[str]: ...


class GTTSSpeaker:
    """Synthesizes the sentence to an mp3 file; playback is left to the UI."""

    def __init__(self, lang: str = "tl", out_dir: str = "speech"):
        self.lang = lang
        self.out_dir = Path(out_dir)

    def speak(self, text: str) -> str:
        self.out_dir.mkdir(parents=True, exist_ok=True)
        path = self.out_dir / f"sentence_{int(time.time() * 1000)}.mp3"
        gTTS(text=text, lang=self.lang).save(str(path))
        logger.info("sentence synthesized to %s", path)
        return str(path)


def speak_sentence(sentence: str, speaker: Speaker) -> Optional[str]:
    """Never calls the speaker for an empty sentence; returns None in that case."""
    if not sentence or not sentence.strip():
        return None
    return speaker.speak(sentence)
