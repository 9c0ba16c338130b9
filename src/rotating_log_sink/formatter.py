"""Render log events through ``$token`` templates.

Supported tokens::

    $time      HH:MM:SS.mmm of the event timestamp
    $date      YYYY-MM-DD of the event timestamp
    $level     lowercase level name
    $levelpad  spaces padding the level name to five characters
    $message   the event message, untouched
    $metadata  ``key=value `` for every selected metadata pair
    $node      host name

Rendering produces chardata (a flat list of text pieces and the raw
message) rather than bytes; encoding happens in the write path so
ill-formed messages can be caught there.
"""

from __future__ import annotations

import re
import socket
from typing import Any, Callable, Iterable, Mapping, Union

from rotating_log_sink.models import LogEvent

TOKENS = frozenset({"time", "date", "level", "levelpad", "message", "metadata", "node"})

_TOKEN_RE = re.compile(r"\$(\w+)")

_LEVEL_WIDTH = 5


class Token(str):
    """A template placeholder, distinguished from literal text by type."""


Compiled = Union[tuple, Callable[..., Any]]


def compile_format(template: Union[str, Callable[..., Any]]) -> Compiled:
    """Split *template* into literal text and :class:`Token` parts.

    Callables are returned unchanged and later called as
    ``template(event, metadata_pairs)``.

    Raises
    ------
    ValueError
        If the template names an unknown token.
    """
    if callable(template):
        return template

    parts: list[str] = []
    pos = 0
    for match in _TOKEN_RE.finditer(template):
        name = match.group(1)
        if name not in TOKENS:
            raise ValueError(f"Unknown format token ${name} in {template!r}")
        if match.start() > pos:
            parts.append(template[pos:match.start()])
        parts.append(Token(name))
        pos = match.end()
    if pos < len(template):
        parts.append(template[pos:])
    return tuple(parts)


def take_metadata(metadata: Mapping[str, Any], keys: Union[str, Iterable[str]]) -> list[tuple[str, Any]]:
    """Select metadata pairs: ``"all"`` keeps everything, otherwise *keys* in order."""
    if keys == "all":
        return list(metadata.items())
    return [(key, metadata[key]) for key in keys if key in metadata]


def format_event(compiled: Compiled, event: LogEvent, metadata: list[tuple[str, Any]]) -> list:
    """Render *event* into a chardata list."""
    if callable(compiled):
        rendered = compiled(event, metadata)
        return rendered if isinstance(rendered, list) else [rendered]

    out: list = []
    for part in compiled:
        if not isinstance(part, Token):
            out.append(part)
        elif part == "message":
            out.append(event.message)
        elif part == "metadata":
            out.extend(_render_metadata(metadata))
        elif part == "time":
            ts = event.timestamp
            out.append(f"{ts:%H:%M:%S}.{ts.microsecond // 1000:03d}")
        elif part == "date":
            out.append(f"{event.timestamp:%Y-%m-%d}")
        elif part == "level":
            out.append(event.level.label)
        elif part == "levelpad":
            out.append(" " * max(0, _LEVEL_WIDTH - len(event.level.label)))
        elif part == "node":
            out.append(socket.gethostname())
    return out


def _render_metadata(pairs: list[tuple[str, Any]]) -> list:
    out: list = []
    for key, value in pairs:
        if value is None:
            continue
        out.extend((f"{key}=", _render_value(value), " "))
    return out


def _render_value(value: Any) -> Any:
    if isinstance(value, (str, bytes, bytearray)):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return repr(value)
