"""Replace ill-formed text in chardata while keeping its shape.

Chardata is what a formatted log line is made of::

    str | bytes | bytearray | list/tuple of (chardata | int code point)

Every well-formed unit is copied through; every ill-formed unit becomes
one :data:`REPLACEMENT` marker.  Values outside that closed set are
replaced wholesale.
"""

from __future__ import annotations

from typing import Any

REPLACEMENT = "\ufffd"
REPLACEMENT_BYTES = REPLACEMENT.encode("utf-8")

MAX_CODE_POINT = 0x10FFFF


def sanitize(value: Any) -> Any:
    """Return *value* with every ill-formed text unit replaced.

    >>> sanitize(b"hi\\xe9")
    b'hi\\xef\\xbf\\xbd'
    >>> sanitize(["hi", 233, [b"\\xff"]])
    ['hi', 233, [b'\\xef\\xbf\\xbd']]
    >>> sanitize(1)
    '\\ufffd'
    """
    if isinstance(value, str):
        return _sanitize_str(value)
    if isinstance(value, (bytes, bytearray)):
        return _sanitize_bytes(value)
    if isinstance(value, (list, tuple)):
        items = [_sanitize_item(item) for item in value]
        return items if isinstance(value, list) else tuple(items)
    return REPLACEMENT


def _sanitize_item(item: Any) -> Any:
    # Inside a sequence a bare integer is a code point, not a stray value.
    if isinstance(item, int) and not isinstance(item, bool) and 0 <= item <= MAX_CODE_POINT:
        return item
    return sanitize(item)


def _sanitize_str(text: str) -> str:
    # Lone surrogates are the only units a str can hold that UTF-8 rejects.
    if not any(0xD800 <= ord(ch) <= 0xDFFF for ch in text):
        return text
    return "".join(
        REPLACEMENT if 0xD800 <= ord(ch) <= 0xDFFF else ch for ch in text
    )


def _sanitize_bytes(data: bytes | bytearray) -> bytes | bytearray:
    try:
        data.decode("utf-8")
    except UnicodeDecodeError:
        pass
    else:
        return data

    out = bytearray()
    i = 0
    end = len(data)
    while i < end:
        width = _sequence_width(data[i])
        chunk = data[i:i + width]
        if width and len(chunk) == width:
            try:
                chunk.decode("utf-8")
            except UnicodeDecodeError:
                pass
            else:
                out += chunk
                i += width
                continue
        out += REPLACEMENT_BYTES
        i += 1

    return out if isinstance(data, bytearray) else bytes(out)


def _sequence_width(lead: int) -> int:
    """Length of the UTF-8 sequence a lead byte announces, 0 if it is not a lead."""
    if lead < 0x80:
        return 1
    if 0xC2 <= lead <= 0xDF:
        return 2
    if 0xE0 <= lead <= 0xEF:
        return 3
    if 0xF0 <= lead <= 0xF4:
        return 4
    return 0
