from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

ENV_PREFIX = "SIGNRELAY_"


@dataclass(frozen=True)
class Settings:
    classifier_url: str = "wss://localhost:8000/ws"
    sequence_length: int = 60
    smooth_frames: int = 5
    history_size: int = 5
    nothing_label: str = "nothing"
    idle_prediction: str = "..."
    # clear() keeps the repeat history unless this is switched on
    clear_resets_history: bool = False
    database_url: str = "sqlite:///signrelay.db"
    speech_lang: str = "tl"
    speech_dir: str = "speech"
    reconnect_delay_s: float = 2.0
    verify_tls: bool = True
    debug: bool = False


def _coerce(name: str, raw: Any, target: type) -> Any:
    if target is bool:
        if isinstance(raw, bool):
            return raw
        value = str(raw).strip().lower()
        if value in {"1", "true", "yes", "on"}:
            return True
        if value in {"0", "false", "no", "off", ""}:
            return False
        raise ValueError(f"{name}: expected a boolean, got {raw!r}")
    try:
        return target(raw)
    except (TypeError, ValueError) as e:
        raise ValueError(f"{name}: expected {target.__name__}, got {raw!r}") from e


def _validate(settings: Settings) -> Settings:
    for name in ("sequence_length", "smooth_frames", "history_size"):
        if getattr(settings, name) < 1:
            raise ValueError(f"{name} must be >= 1")
    if settings.reconnect_delay_s < 0:
        raise ValueError("reconnect_delay_s must be >= 0")
    if not settings.classifier_url.startswith(("ws://", "wss://")):
        raise ValueError(f"classifier_url must be a ws:// or wss:// url: {settings.classifier_url}")
    return settings


def _load_yaml(path: Path) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: config root must be a mapping")
    return data


def load_settings(config_path: Optional[str] = None, **overrides: Any) -> Settings:
    """
    Builds Settings from, in increasing priority:
      1) dataclass defaults
      2) YAML file (argument or env SIGNRELAY_CONFIG)
      3) env SIGNRELAY_<KEY> (a .env file is loaded first)
      4) keyword overrides
    """
    load_dotenv()

    types = {f.name: type(f.default) for f in fields(Settings)}
    values: dict[str, Any] = {}

    path = config_path or os.getenv(f"{ENV_PREFIX}CONFIG", "").strip()
    if path:
        p = Path(path).expanduser()
        if not p.exists():
            raise FileNotFoundError(f"config file not found: {p}")
        for key, raw in _load_yaml(p).items():
            if key not in types:
                raise ValueError(f"{p}: unknown config key {key!r}")
            values[key] = _coerce(key, raw, types[key])

    for name, target in types.items():
        raw = os.getenv(ENV_PREFIX + name.upper())
        if raw is not None:
            values[name] = _coerce(name, raw, target)

    for name, raw in overrides.items():
        if name not in types:
            raise ValueError(f"unknown setting {name!r}")
        values[name] = _coerce(name, raw, types[name])

    return _validate(replace(Settings(), **values))
