"""Single-threaded state owner for one named sink.

Lifecycle::

    UNCONFIGURED → (configure) → CONFIGURED → (stop) → STOPPED

A :class:`Sink` is not thread-safe.  It is meant to be driven by exactly
one thread at a time, normally a :class:`~rotating_log_sink.actor.SinkActor`
mailbox worker.
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Mapping, Optional, Union

from rotating_log_sink.clock import SystemClock
from rotating_log_sink.config import SinkConfig
from rotating_log_sink.filter import EventFilter
from rotating_log_sink.formatter import compile_format, format_event, take_metadata
from rotating_log_sink.models import LogEvent, SinkState
from rotating_log_sink.output import write_event
from rotating_log_sink.paths import next_generation, path, resolve_directory
from rotating_log_sink.rotation import next_check_delay, rotate_by_date

logger = logging.getLogger(__name__)


class SinkStatus(enum.Enum):
    """States in the sink lifecycle."""

    UNCONFIGURED = "UNCONFIGURED"
    CONFIGURED = "CONFIGURED"
    STOPPED = "STOPPED"


class SinkStoppedError(RuntimeError):
    """Raised when a stopped sink is asked to configure or answer a query."""


class Sink:
    """Rotation and write state for one log stream.

    Parameters
    ----------
    name:
        Sink identifier, used only in diagnostics.
    clock:
        Source of local time; defaults to :class:`SystemClock`.
    """

    def __init__(self, name: str, clock: Any = None) -> None:
        self.name = name
        self._clock = clock or SystemClock()
        self._status = SinkStatus.UNCONFIGURED
        self._options = SinkConfig()
        self._state: Optional[SinkState] = None
        self._filter = EventFilter()
        self._compiled: Any = None

    @property
    def status(self) -> SinkStatus:
        return self._status

    @property
    def config(self) -> SinkConfig:
        """The options currently in effect (defaults before configuration)."""
        return self._options

    # ── messages ────────────────────────────────────────────────────

    def configure(
        self,
        options: Union[SinkConfig, Mapping[str, Any], None] = None,
        **changes: Any,
    ) -> SinkConfig:
        """Merge new options over the stored ones and restart rotation state.

        The generation is rescanned from disk for the (possibly new)
        directory and filename, so an existing file for today is never
        appended to after a reconfiguration.

        Raises
        ------
        SinkStoppedError
            If the sink has been stopped.
        ValueError
            If an option is unknown or invalid.  The previous configuration
            stays in effect.
        """
        self._ensure_running()
        if isinstance(options, SinkConfig):
            config = options.merge_options(changes)
        else:
            config = self._options.merge_options({**(options or {}), **changes})

        compiled = compile_format(config.format)
        directory = resolve_directory(config.directory)
        today = self._clock.today()
        generation = next_generation(directory, config.filename, today)

        if self._state is not None:
            self._state.close_file()
        self._state = SinkState(
            config=config,
            directory=directory,
            current_date=today,
            current_generation=generation,
            current_path=path(directory, config.filename, today, generation),
        )
        self._options = config
        self._compiled = compiled
        self._filter = EventFilter(config.level, config.metadata_filter)
        self._set_status(SinkStatus.CONFIGURED)
        logger.debug("Sink %s configured, active path %s", self.name, self._state.current_path)
        return config

    def handle_event(self, event: LogEvent) -> None:
        """Filter, rotate if needed, and append *event*.  Never raises; failures drop the event."""
        if self._status is not SinkStatus.CONFIGURED:
            logger.debug("Sink %s is %s, dropping event", self.name, self._status.value)
            return
        if not self._filter.accepts(event):
            return
        write_event(self._state, event, self._render)

    def handle_date_rotate(self) -> float:
        """Run the midnight check and return seconds until the next one."""
        now = self._clock.now()
        if self._status is SinkStatus.CONFIGURED:
            rotate_by_date(self._state, now.date())
            current = self._state.current_date
        else:
            current = now.date()
        return next_check_delay(current, now)

    def first_check_delay(self) -> float:
        """Seconds from now until the first midnight check."""
        now = self._clock.now()
        return next_check_delay(now.date(), now)

    def stop(self) -> None:
        """Close the active file; the sink accepts nothing afterwards."""
        if self._state is not None:
            self._state.close_file()
        self._set_status(SinkStatus.STOPPED)

    # ── queries ─────────────────────────────────────────────────────

    def path(self) -> Optional[str]:
        """The path the next event will be written to, or ``None``."""
        self._ensure_running()
        return self._state.current_path if self._state else None

    def path_for_generation(self, generation: int) -> Optional[str]:
        """Path of *generation* for the sink's current date."""
        self._ensure_running()
        if self._state is None:
            return None
        return path(
            self._state.directory,
            self._state.config.filename,
            self._state.current_date,
            generation,
        )

    # ── helpers ─────────────────────────────────────────────────────

    def _render(self, event: LogEvent) -> list:
        metadata = take_metadata(event.metadata, self._state.config.metadata)
        return format_event(self._compiled, event, metadata)

    def _ensure_running(self) -> None:
        if self._status is SinkStatus.STOPPED:
            raise SinkStoppedError(f"Sink {self.name!r} is stopped")

    def _set_status(self, new: SinkStatus) -> None:
        old = self._status
        self._status = new
        if old is not new:
            logger.info("Sink %s state: %s → %s", self.name, old.value, new.value)
