from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in {"1", "true", "yes", "on"}


@dataclass(slots=True)
class EnvConfig:
    noninteractive: bool
    extra_protected: tuple[str, ...]
    skip_format: bool
    log_level: str
    http_timeout: float


def _log_level() -> str:
    level = os.getenv("AGENTPACK_LOG_LEVEL", "WARNING").strip().upper()
    if level not in LOG_LEVELS:
        raise ValueError(f"AGENTPACK_LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {level!r}")
    return level


def _http_timeout() -> float:
    raw = os.getenv("AGENTPACK_HTTP_TIMEOUT", "30").strip()
    try:
        timeout = float(raw)
    except ValueError:
        raise ValueError(f"AGENTPACK_HTTP_TIMEOUT must be a number of seconds, got {raw!r}") from None
    if not timeout > 0:
        raise ValueError(f"AGENTPACK_HTTP_TIMEOUT must be positive, got {raw!r}")
    return timeout


def load_env() -> EnvConfig:
    load_dotenv()
    extra = os.getenv("AGENTPACK_EXTRA_PROTECTED", "")
    return EnvConfig(
        noninteractive=_flag("AGENTPACK_NONINTERACTIVE") or bool(os.getenv("CI")),
        extra_protected=tuple(p.strip() for p in extra.split(",") if p.strip()),
        skip_format=_flag("AGENTPACK_SKIP_FORMAT"),
        log_level=_log_level(),
        http_timeout=_http_timeout(),
    )
