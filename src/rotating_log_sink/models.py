"""Dataclass models for log events and per-sink state.

``LogEvent`` is what the host runtime hands to a sink.  ``SinkState`` is
owned by exactly one :class:`~rotating_log_sink.sink.Sink` and is never
shared between threads.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, BinaryIO, Optional, Union

if TYPE_CHECKING:
    from rotating_log_sink.config import SinkConfig


class Level(enum.IntEnum):
    """Severity levels, totally ordered from least to most severe."""

    DEBUG = 10
    INFO = 20
    NOTICE = 25
    WARNING = 30
    ERROR = 40
    CRITICAL = 50
    ALERT = 60
    EMERGENCY = 70

    @classmethod
    def parse(cls, value: Union[str, int, "Level"]) -> "Level":
        """Resolve a level name, member, or stdlib ``logging`` number.

        Numbers between two members resolve to the lower member, so a
        custom ``logging`` level of 35 is treated as ``WARNING``.

        Raises
        ------
        ValueError
            If *value* names no level or is below ``DEBUG``.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            name = value.strip().upper()
            if name == "WARN":
                name = "WARNING"
            try:
                return cls[name]
            except KeyError:
                raise ValueError(f"Unknown log level: {value!r}") from None
        if isinstance(value, int) and not isinstance(value, bool):
            candidates = [member for member in cls if member <= value]
            if not candidates:
                raise ValueError(f"Log level {value} is below {cls.DEBUG.name}")
            return candidates[-1]
        raise ValueError(f"Unsupported log level type: {type(value).__name__}")

    @classmethod
    def from_logging(cls, levelno: int) -> "Level":
        """Map a stdlib ``LogRecord.levelno``, clamping anything below DEBUG."""
        if levelno < logging.DEBUG:
            return cls.DEBUG
        return cls.parse(levelno)

    @property
    def label(self) -> str:
        return self.name.lower()


@dataclass
class LogEvent:
    """One log event as delivered by the host runtime.

    ``message`` is *chardata*: text, bytes, or a nested list of those and
    integer code points.  It may contain ill-formed text; the write path
    sanitizes it when encoding fails.
    """

    level: Level
    message: Any
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class LogFile:
    """An open append handle plus the path it was opened for."""

    path: str
    handle: BinaryIO

    def close(self) -> None:
        try:
            self.handle.close()
        except OSError:
            pass


@dataclass
class SinkState:
    """Mutable rotation state for a single sink.

    ``directory`` is the resolved form of ``config.directory``.
    """

    config: SinkConfig
    directory: Optional[str] = None
    current_date: Optional[date] = None
    current_generation: int = 0
    current_path: Optional[str] = None
    log_file: Optional[LogFile] = None

    def close_file(self) -> None:
        """Close and forget the open handle, if any."""
        if self.log_file is not None:
            self.log_file.close()
            self.log_file = None
