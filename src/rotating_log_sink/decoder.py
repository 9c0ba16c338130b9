"""Decode NDJSON lines into log events.

Line format::

    {"level": "info", "message": "...", "timestamp": "2024-05-01T12:00:00",
     "metadata": {"user_id": 13}, "sink": "audit"}

Only ``message`` is required.  Decoding pipeline::

    raw line
      │
      ├─ blank                         → None
      ├─ not UTF-8                     → sanitized, then parsed
      ├─ JSON parse failure            → MalformedLine(code="parse_error")
      ├─ not an object / no message    → MalformedLine(code="missing_fields")
      ├─ bad level/timestamp/metadata  → MalformedLine(code="invalid_field")
      └─ valid                         → RoutedEvent
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Union

import orjson

from rotating_log_sink.models import Level, LogEvent
from rotating_log_sink.sanitize import sanitize

# Maximum characters of a raw line preserved in a malformed record.
MAX_RAW_PREVIEW = 256


@dataclass
class RoutedEvent:
    """A decoded event and the sink it asked for (``None`` = default sink)."""

    event: LogEvent
    sink: Optional[str] = None


@dataclass
class MalformedLine:
    """A line that could not be turned into an event."""

    code: str
    message: str
    raw: str


def decode_event(raw: str | bytes) -> Union[RoutedEvent, MalformedLine, None]:
    """Decode a single NDJSON line.

    Parameters
    ----------
    raw:
        One line of input, with or without its trailing newline.

    Returns
    -------
    RoutedEvent
        For a well-formed event object.
    MalformedLine
        When the line cannot be parsed or fails structural checks.
    None
        For blank lines.
    """
    data = sanitize(raw).encode("utf-8") if isinstance(raw, str) else bytes(raw)
    data = data.strip()
    if not data:
        return None

    # Step 1: parse JSON, repairing ill-formed UTF-8 first
    try:
        obj = orjson.loads(sanitize(data))
    except orjson.JSONDecodeError as exc:
        return _malformed("parse_error", str(exc), data)

    # Step 2: structural checks
    if not isinstance(obj, dict) or not isinstance(obj.get("message"), str):
        return _malformed("missing_fields", "Event must be an object with a string message", data)

    # Step 3: field conversion
    try:
        level = Level.parse(obj.get("level", "info"))
        timestamp = _parse_timestamp(obj.get("timestamp"))
        metadata = obj.get("metadata") or {}
        if not isinstance(metadata, dict):
            raise ValueError("metadata must be an object")
        sink = obj.get("sink")
        if sink is not None and not isinstance(sink, str):
            raise ValueError("sink must be a string")
    except ValueError as exc:
        return _malformed("invalid_field", str(exc), data)

    return RoutedEvent(
        event=LogEvent(level=level, message=obj["message"], timestamp=timestamp, metadata=metadata),
        sink=sink,
    )


# ── helpers ─────────────────────────────────────────────────────────


def _parse_timestamp(value: Any) -> datetime:
    """ISO-8601 → naive local datetime; missing → now."""
    if value is None:
        return datetime.now()
    if not isinstance(value, str):
        raise ValueError("timestamp must be an ISO-8601 string")
    ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if ts.tzinfo is not None:
        ts = ts.astimezone().replace(tzinfo=None)
    return ts


def _malformed(code: str, message: str, raw: bytes) -> MalformedLine:
    """Build a :class:`MalformedLine` with a truncated preview."""
    preview = raw.decode("utf-8", errors="replace")
    if len(preview) > MAX_RAW_PREVIEW:
        preview = preview[:MAX_RAW_PREVIEW]
    return MalformedLine(code=code, message=message, raw=preview)
