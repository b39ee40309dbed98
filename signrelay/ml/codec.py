import json
import logging
from typing import Optional

import numpy as np

logger = logging.getLogger("signrelay.codec")

FRAME_SEQUENCE = "frame_sequence"


def encode_sequence(sequence: np.ndarray) -> str:
    """(T, 258) -> {"type": "frame_sequence", "landmarks": [[...], ...]}"""
    data = np.asarray(sequence, dtype=np.float32)
    if data.ndim != 2:
        raise ValueError(f"expected a (T, F) sequence, got shape {data.shape}")
    return json.dumps({"type": FRAME_SEQUENCE, "landmarks": data.tolist()})


def decode_prediction(raw) -> Optional[str]:
    """
    Inbound message -> predicted label, or None when the message should be ignored
    (bad JSON, not an object, no/empty/non-string "prediction").
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("classifier message is not utf-8, ignored")
            return None

    try:
        msg = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("classifier message is not valid JSON, ignored")
        return None

    if not isinstance(msg, dict):
        return None

    word = msg.get("prediction")
    if not isinstance(word, str) or not word:
        return None
    return word
