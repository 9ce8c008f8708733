from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

_LEVELS = {"INFO": logging.INFO, "WARN": logging.WARNING, "ERROR": logging.ERROR}

logger = logging.getLogger("lbsync")


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def level_number(name: str) -> int:
    """Numeric level for a level name; unknown names map to INFO."""
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level_number(level),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )


@dataclass(frozen=True)
class Event:
    level: str
    message: str
    server: str | None = None
    ts: str = field(default_factory=utc_now)

    def to_dict(self) -> dict:
        return asdict(self)


class EventLog:
    """Run journal. Every entry is also emitted on the `lbsync` logger."""

    def __init__(self) -> None:
        self.events: list[Event] = []

    def log(self, level: str, message: str, server: str | None = None) -> Event:
        ev = Event(level=level, message=message, server=server)
        self.events.append(ev)
        text = f"[{server}] {message}" if server else message
        logger.log(_LEVELS.get(level, logging.INFO), text)
        return ev

    def info(self, message: str, server: str | None = None) -> Event:
        return self.log("INFO", message, server)

    def warn(self, message: str, server: str | None = None) -> Event:
        return self.log("WARN", message, server)

    def error(self, message: str, server: str | None = None) -> Event:
        return self.log("ERROR", message, server)
