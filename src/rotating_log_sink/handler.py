"""Bridge from the stdlib ``logging`` runtime into a sink actor.

Attach a :class:`SinkHandler` to any logger; each record becomes a
:class:`~rotating_log_sink.models.LogEvent` cast to the actor's mailbox.
Values passed through ``extra=`` become event metadata::

    handler = SinkHandler.start("app", directory="logs", rotate={"max_bytes": 10_000_000, "keep": 5})
    logging.getLogger().addHandler(handler)
    logging.getLogger("billing").info("charged", extra={"user_id": 13})

Records emitted by this package's own loggers are ignored, so sink
diagnostics never loop back into a sink.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from rotating_log_sink.actor import SinkActor
from rotating_log_sink.models import Level, LogEvent
from rotating_log_sink.sink import SinkStoppedError

_PACKAGE_LOGGER = __name__.partition(".")[0]

_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}

_exc_formatter = logging.Formatter()


def record_to_event(record: logging.LogRecord) -> LogEvent:
    """Convert a ``LogRecord`` into a :class:`LogEvent`."""
    message = record.getMessage()
    if record.exc_info:
        message = f"{message}\n{_exc_formatter.formatException(record.exc_info)}"
    elif record.exc_text:
        message = f"{message}\n{record.exc_text}"
    if record.stack_info:
        message = f"{message}\n{record.stack_info}"

    metadata = {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_ATTRS and not key.startswith("_")
    }
    return LogEvent(
        level=Level.from_logging(record.levelno),
        message=message,
        timestamp=datetime.fromtimestamp(record.created),
        metadata=metadata,
    )


class SinkHandler(logging.Handler):
    """A :class:`logging.Handler` that delivers records to a :class:`SinkActor`.

    Parameters
    ----------
    actor:
        The running actor to deliver to.
    level:
        Handler-level threshold, applied by ``logging`` before the sink's own
        ``level`` option.
    owns_actor:
        Stop *actor* when the handler is closed.
    """

    def __init__(self, actor: SinkActor, level: int = logging.NOTSET, owns_actor: bool = False) -> None:
        super().__init__(level)
        self.actor = actor
        self._owns_actor = owns_actor

    @classmethod
    def start(cls, name: str, clock: Any = None, level: int = logging.NOTSET, **options: Any) -> "SinkHandler":
        """Start a new actor for sink *name* and return a handler owning it."""
        actor = SinkActor(name, clock=clock)
        actor.start(options)
        return cls(actor, level=level, owns_actor=True)

    def emit(self, record: logging.LogRecord) -> None:
        if record.name == _PACKAGE_LOGGER or record.name.startswith(_PACKAGE_LOGGER + "."):
            return
        try:
            self.actor.log(record_to_event(record))
        except Exception:
            self.handleError(record)

    def flush(self, timeout: Optional[float] = None) -> None:
        """Wait until the actor has written everything emitted so far."""
        try:
            self.actor.flush(timeout)
        except SinkStoppedError:
            pass

    def close(self) -> None:
        try:
            if self._owns_actor:
                self.actor.stop()
        finally:
            super().close()
