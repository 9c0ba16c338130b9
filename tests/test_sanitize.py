"""Tests for the sanitize module."""

import pytest

from rotating_log_sink.sanitize import REPLACEMENT, REPLACEMENT_BYTES, sanitize


def test_non_chardata_is_replaced() -> None:
    assert sanitize(1) == REPLACEMENT
    assert sanitize(None) == REPLACEMENT
    assert sanitize(3.5) == REPLACEMENT


def test_invalid_byte_replaced_in_place() -> None:
    assert sanitize("hí".encode() + b"\xe9") == "hí".encode() + REPLACEMENT_BYTES


def test_each_invalid_byte_gets_one_marker() -> None:
    # A truncated three-byte sequence is two ill-formed units.
    assert sanitize(b"a\xe2\x82b") == b"a" + REPLACEMENT_BYTES * 2 + b"b"


def test_overlong_and_surrogate_encodings_rejected() -> None:
    assert sanitize(b"\xc0\xaf") == REPLACEMENT_BYTES * 2
    assert sanitize(b"\xed\xa0\x80") == REPLACEMENT_BYTES * 3


def test_valid_multibyte_passes_through() -> None:
    text = "ßﾪȢ €𝄞".encode()
    assert sanitize(text) == text


def test_bytearray_stays_bytearray() -> None:
    result = sanitize(bytearray(b"ok\xff"))
    assert isinstance(result, bytearray)
    assert result == bytearray(b"ok" + REPLACEMENT_BYTES)


def test_lone_surrogate_in_str() -> None:
    assert sanitize("hi\udce9") == "hi" + REPLACEMENT


def test_list_tail_replaced() -> None:
    assert sanitize(["hi", None]) == ["hi", REPLACEMENT]


def test_code_point_in_list_passes_through() -> None:
    assert sanitize([233, "hi"]) == [233, "hi"]


def test_nested_empty_lists() -> None:
    assert sanitize([[]]) == [[]]


def test_nested_shape_preserved() -> None:
    value = ["a", [b"\xff", ["ok", 0x1F600]], ("t", b"\xfe")]
    assert sanitize(value) == ["a", [REPLACEMENT_BYTES, ["ok", 0x1F600]], ("t", REPLACEMENT_BYTES)]


def test_out_of_range_code_point_replaced() -> None:
    assert sanitize([0x110000, -1]) == [REPLACEMENT, REPLACEMENT]


@pytest.mark.parametrize(
    "value",
    ["plain", b"bytes \xc3\xa9", ["a", [b"b", 99]], b"bad\xff", "bad\udc80", [b"\xfe", 2.0]],
)
def test_idempotent(value) -> None:
    once = sanitize(value)
    assert sanitize(once) == once


def test_valid_text_returned_unchanged() -> None:
    data = b"already fine"
    assert sanitize(data) is data


def test_trailing_code_point_passes_through() -> None:
    assert sanitize(["hi", 233]) == ["hi", 233]
