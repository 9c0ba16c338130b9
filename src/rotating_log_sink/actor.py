"""Mailbox actors that serialize all work for a sink onto one thread.

Every interaction with a sink (log event, reconfigure, path query, the
midnight date check) is a message in that sink's mailbox, processed to
completion before the next one is taken.  The sink's state is therefore
only ever touched by its worker thread and needs no locking.

The midnight check is a deadline kept by the worker loop itself and
checked before each message, so it fires with or without log traffic
and without a separate timer thread.

:class:`SinkRegistry` maps sink names to actors.  Sinks share nothing; a
failure in one never reaches another or the caller that logged.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from concurrent.futures import Future
from typing import Any, Callable, Mapping, Optional, Union

from rotating_log_sink.config import SinkConfig
from rotating_log_sink.models import LogEvent
from rotating_log_sink.sink import Sink, SinkStoppedError

logger = logging.getLogger(__name__)

_Message = tuple[Callable[..., Any], tuple, dict, Optional[Future]]


class SinkActor:
    """One sink, one worker thread, one mailbox.

    Parameters
    ----------
    name:
        Sink identifier.
    clock:
        Local time source passed to the underlying :class:`Sink`.
    """

    def __init__(self, name: str, clock: Any = None) -> None:
        self.name = name
        self._sink = Sink(name, clock)
        self._mailbox: "queue.Queue[_Message]" = queue.Queue()
        self._check_at: Optional[float] = None
        self._closed = False
        self._running = False
        self._thread = threading.Thread(
            target=self._run, name=f"log-sink-{name}", daemon=True
        )

    # ── lifecycle ───────────────────────────────────────────────────

    def start(self, options: Union[SinkConfig, Mapping[str, Any], None] = None) -> SinkConfig:
        """Start the worker, apply *options*, and schedule the first date check."""
        self._running = True
        self._thread.start()
        return self.call(self._init, options)

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Close the sink after already-queued messages and end the worker."""
        if self._closed:
            return
        if not self._thread.is_alive():
            self._sink.stop()
            self._closed = True
            return
        try:
            self.call(self._shutdown)
        finally:
            self._closed = True
        self._thread.join(timeout)

    @property
    def alive(self) -> bool:
        return self._thread.is_alive()

    # ── messages ────────────────────────────────────────────────────

    def cast(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        """Queue a message without waiting; silently ignored once stopped."""
        if self._closed:
            return
        self._mailbox.put((fn, args, kwargs, None))

    def call(self, fn: Callable[..., Any], *args: Any, timeout: Optional[float] = None, **kwargs: Any) -> Any:
        """Queue a message and wait for its result, re-raising its exception.

        Raises
        ------
        SinkStoppedError
            If the actor has been stopped.
        """
        if self._closed:
            raise SinkStoppedError(f"Sink {self.name!r} is stopped")
        future: Future = Future()
        self._mailbox.put((fn, args, kwargs, future))
        return future.result(timeout)

    def log(self, event: LogEvent) -> None:
        """Deliver *event*.  Fire-and-forget: never blocks on I/O, never raises."""
        self.cast(self._sink.handle_event, event)

    def configure(self, options: Union[SinkConfig, Mapping[str, Any], None] = None, **changes: Any) -> SinkConfig:
        return self.call(self._sink.configure, options, **changes)

    def path(self) -> Optional[str]:
        return self.call(self._sink.path)

    def path_for_generation(self, generation: int) -> Optional[str]:
        return self.call(self._sink.path_for_generation, generation)

    def check_date(self) -> None:
        """Run the date check now instead of waiting for midnight."""
        self.call(self._date_check)

    def flush(self, timeout: Optional[float] = None) -> None:
        """Block until every message queued before this call has been handled."""
        if not self._closed:
            self.call(_noop, timeout=timeout)

    # ── worker ──────────────────────────────────────────────────────

    def _init(self, options: Union[SinkConfig, Mapping[str, Any], None]) -> SinkConfig:
        config = self._sink.configure(options)
        self._check_at = time.monotonic() + self._sink.first_check_delay()
        return config

    def _shutdown(self) -> None:
        self._sink.stop()
        self._running = False

    def _date_check(self) -> None:
        delay = self._sink.handle_date_rotate()
        self._check_at = time.monotonic() + delay

    def _run(self) -> None:
        while self._running:
            timeout = None
            if self._check_at is not None:
                timeout = self._check_at - time.monotonic()
                if timeout <= 0:
                    self._check_at = None
                    self._dispatch((self._date_check, (), {}, None))
                    continue
            try:
                message = self._mailbox.get(timeout=timeout)
            except queue.Empty:
                continue
            self._dispatch(message)

        self._drain()

    def _dispatch(self, message: _Message) -> None:
        fn, args, kwargs, future = message
        try:
            result = fn(*args, **kwargs)
        except Exception as exc:
            if future is None:
                logger.exception("Sink %s failed handling %s", self.name, getattr(fn, "__name__", fn))
            else:
                future.set_exception(exc)
        else:
            if future is not None:
                future.set_result(result)

    def _drain(self) -> None:
        """Fail callers still waiting on messages that arrived after stop."""
        while True:
            try:
                _fn, _args, _kwargs, future = self._mailbox.get_nowait()
            except queue.Empty:
                return
            if future is not None:
                future.set_exception(SinkStoppedError(f"Sink {self.name!r} is stopped"))


def _noop() -> None:
    return None


class SinkRegistry:
    """Named sinks, each behind its own :class:`SinkActor`.

    Options given for a name are remembered after the sink is removed, so
    adding it again starts from the last configuration.  The registry lock
    protects only the name → actor map, never sink state.
    """

    def __init__(self, clock: Any = None) -> None:
        self._clock = clock
        self._actors: dict[str, SinkActor] = {}
        self._options: dict[str, SinkConfig] = {}
        self._starting: set[str] = set()
        self._lock = threading.Lock()

    def add(self, name: str, options: Union[SinkConfig, Mapping[str, Any], None] = None, **changes: Any) -> SinkActor:
        """Start a sink called *name*.

        Raises
        ------
        ValueError
            If a sink with that name is already running, or an option is invalid.
        """
        with self._lock:
            if name in self._actors or name in self._starting:
                raise ValueError(f"Sink {name!r} is already present")
            stored = self._options.get(name, SinkConfig())
            if isinstance(options, SinkConfig):
                config = options.merge_options(changes)
            else:
                config = stored.merge_options({**(options or {}), **changes})
            self._starting.add(name)

        # Starting scans the sink's directory; other sinks must not wait on it.
        actor = SinkActor(name, clock=self._clock)
        try:
            actor.start(config)
        except Exception:
            actor.stop()
            with self._lock:
                self._starting.discard(name)
            raise

        with self._lock:
            self._starting.discard(name)
            self._actors[name] = actor
            self._options[name] = config
        return actor

    def configure(self, name: str, options: Union[Mapping[str, Any], None] = None, **changes: Any) -> SinkConfig:
        config = self.get(name).configure(options, **changes)
        with self._lock:
            self._options[name] = config
        return config

    def remove(self, name: str) -> None:
        with self._lock:
            actor = self._actors.pop(name)
        actor.stop()

    def get(self, name: str) -> SinkActor:
        with self._lock:
            try:
                return self._actors[name]
            except KeyError:
                raise KeyError(f"No sink named {name!r}") from None

    def log(self, name: str, event: LogEvent) -> None:
        """Deliver *event* to sink *name*; unknown names are ignored."""
        with self._lock:
            actor = self._actors.get(name)
        if actor is not None:
            actor.log(event)

    def names(self) -> list[str]:
        with self._lock:
            return list(self._actors)

    def stop_all(self) -> None:
        with self._lock:
            actors = list(self._actors.values())
            self._actors.clear()
        for actor in actors:
            actor.stop()

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._actors
