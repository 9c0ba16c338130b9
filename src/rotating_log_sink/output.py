"""Write path: append a formatted event to the sink's active file.

``write_event`` never raises.  The handle is opened lazily, checked
against the file currently on disk before every append, and replaced
when the file was rotated, moved, or deleted underneath it::

    no path configured          → no-op
    no handle                   → mkdir -p + open for append (failure: drop)
    rotated / file gone         → close, reopen at the active path
    formatter raises            → drop
    encode or append fails      → reopen, sanitize, retry once (failure: drop)

Files are opened in binary append mode and flushed after each event, so
size checks always see everything written so far.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Callable

from rotating_log_sink.models import LogEvent, LogFile, SinkState
from rotating_log_sink.rotation import rotate_by_size
from rotating_log_sink.sanitize import MAX_CODE_POINT, sanitize

logger = logging.getLogger(__name__)

# Opening, rotating and finding the file gone again can repeat only if the
# filesystem keeps changing under us; stop after a few rounds.
_MAX_OPEN_ATTEMPTS = 3

Renderer = Callable[[LogEvent], Any]


def open_log(path: str) -> LogFile:
    """Create parent directories and open *path* for binary append.

    Raises
    ------
    OSError
        If the directory cannot be created or the file cannot be opened.
    """
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    handle = open(path, "ab")
    logger.info("Opened log file: %s", path)
    return LogFile(path=path, handle=handle)


def encode_chardata(data: Any) -> bytes:
    """Encode chardata as strict UTF-8.

    Raises
    ------
    UnicodeError
        If any piece holds ill-formed text.
    TypeError
        If a piece is not chardata at all.
    ValueError
        If an integer piece is not a Unicode code point.
    """
    if isinstance(data, str):
        return data.encode("utf-8")
    if isinstance(data, (bytes, bytearray)):
        bytes(data).decode("utf-8")
        return bytes(data)
    if isinstance(data, (list, tuple)):
        return b"".join(_encode_piece(piece) for piece in data)
    raise TypeError(f"Not chardata: {type(data).__name__}")


def _encode_piece(piece: Any) -> bytes:
    if isinstance(piece, int) and not isinstance(piece, bool):
        if not 0 <= piece <= MAX_CODE_POINT:
            raise ValueError(f"Code point out of range: {piece}")
        return chr(piece).encode("utf-8")
    return encode_chardata(piece)


def write_event(state: SinkState, event: LogEvent, render: Renderer) -> SinkState:
    """Append *event* to the active file of *state*, rotating first if needed."""
    for _ in range(_MAX_OPEN_ATTEMPTS):
        if state.current_path is None:
            return state

        if state.log_file is None:
            try:
                state.log_file = open_log(state.current_path)
            except OSError as exc:
                logger.warning("Cannot open %s, dropping event: %s", state.current_path, exc)
                return state

        generation = state.current_generation
        rotate_by_size(state)
        if (
            state.current_generation != generation
            or state.log_file.path != state.current_path
            or not os.path.exists(state.current_path)
        ):
            state.close_file()
            continue

        try:
            chardata = render(event)
        except Exception:
            logger.exception("Formatter failed for %s, dropping event", state.current_path)
            return state
        _append(state, chardata)
        return state

    logger.warning("Gave up writing to %s: file keeps changing", state.current_path)
    return state


def _append(state: SinkState, chardata: Any) -> None:
    try:
        payload = encode_chardata(chardata)
    except (ValueError, TypeError) as exc:
        logger.debug("Ill-formed text in event, sanitizing: %s", exc)
    else:
        try:
            _write(state.log_file, payload)
            return
        except (OSError, ValueError) as exc:
            logger.warning("Write to %s failed, retrying: %s", state.current_path, exc)

    state.close_file()
    try:
        state.log_file = open_log(state.current_path)
        _write(state.log_file, encode_chardata(sanitize(chardata)))
    except (OSError, ValueError, TypeError) as exc:
        logger.warning("Dropped event for %s after retry: %s", state.current_path, exc)
        state.close_file()


def _write(log_file: LogFile, payload: bytes) -> None:
    log_file.handle.write(payload)
    log_file.handle.flush()
