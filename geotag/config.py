from __future__ import annotations

import logging
import os
from dataclasses import dataclass


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        logging.warning("Invalid %s=%s, using %s", name, raw, default)
        return default
    if value <= 0:
        logging.warning("Invalid %s=%s, using %s", name, raw, default)
        return default
    return value


@dataclass(frozen=True, slots=True)
class Settings:
    exiftool_path: str = "exiftool"
    exiftool_timeout: float = 30.0
    exiftool_probe_timeout: float = 10.0


def load_settings() -> Settings:
    return Settings(
        exiftool_path=_env_str("EXIFTOOL_PATH", "exiftool"),
        exiftool_timeout=_env_float("EXIFTOOL_TIMEOUT", 30.0),
        exiftool_probe_timeout=_env_float("EXIFTOOL_PROBE_TIMEOUT", 10.0),
    )


__all__ = ["Settings", "load_settings"]
