# flowguard/config.py
from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_MAX_SCAN_DEPTH = 64
DEFAULT_MAX_INPUT_BYTES = 10 * 1024 * 1024  # soft guideline, matches upload limit


def _env_int(key: str, default: int) -> int:
    """Read a positive int from env, fallback to default on absence or garbage."""
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


@dataclass(frozen=True)
class AnalyzerConfig:
    """Tunables for one analysis run."""
    max_scan_depth: int = DEFAULT_MAX_SCAN_DEPTH
    max_input_bytes: int = DEFAULT_MAX_INPUT_BYTES

    @classmethod
    def from_env(cls) -> "AnalyzerConfig":
        return cls(
            max_scan_depth=_env_int("FLOWGUARD_MAX_SCAN_DEPTH", DEFAULT_MAX_SCAN_DEPTH),
            max_input_bytes=_env_int("FLOWGUARD_MAX_INPUT_BYTES", DEFAULT_MAX_INPUT_BYTES),
        )


DEFAULT_CONFIG = AnalyzerConfig()
