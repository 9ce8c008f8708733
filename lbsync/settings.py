from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Input
    config_path: str = "config.json"

    # Control plane
    api_timeout_s: int = 10
    server_attempts: int = 3

    # Exit policy: treat exhausted server registrations as a failed run.
    strict: bool = False

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            config_path=os.getenv("LBSYNC_CONFIG_PATH", cls.config_path),
            api_timeout_s=max(1, _env_int("LBSYNC_API_TIMEOUT_S", cls.api_timeout_s)),
            server_attempts=max(1, _env_int("LBSYNC_SERVER_ATTEMPTS", cls.server_attempts)),
            strict=_env_bool("LBSYNC_STRICT", cls.strict),
            log_level=os.getenv("LBSYNC_LOG_LEVEL", cls.log_level).strip().upper(),
        )
