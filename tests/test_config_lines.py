from __future__ import annotations

import pytest

from candy_cli.config_lines import (
    ConfigDecodeError,
    ConfigLine,
    OutOfBoundsError,
    config_uuid,
    decode_utf8,
    iter_config_items,
    record_window,
    unpack_config_item,
)
from candy_cli.project_constants import CONFIG_ARRAY_START, CONFIG_LINE_SIZE
from tests.account_helpers import config_bytes


def _printable_buffer(size: int) -> bytes:
    return bytes(32 + (i % 95) for i in range(size))


def test_layout_constants_match_program_arithmetic() -> None:
    assert CONFIG_ARRAY_START == 32 + 4 + 6 + 4 + 10 + 2 + 1 + 4 + 5 * 34 + 8 + 1 + 1 + 4
    assert CONFIG_ARRAY_START == 247
    assert CONFIG_LINE_SIZE == 240


def test_record_window_offsets() -> None:
    assert record_window(0) == (251, 491)
    assert record_window(2) == (731, 971)


def test_unpack_matches_manual_extraction() -> None:
    data = _printable_buffer(record_window(2)[1])
    for index in range(3):
        start, _ = record_window(index)
        line = unpack_config_item(index, data)
        assert line.name == data[start + 4 : start + 36].decode("ascii")
        assert line.uri == data[start + 40 : start + 240].decode("ascii")
        assert len(line.name) == 32
        assert len(line.uri) == 200


def test_unpack_preserves_nul_padding() -> None:
    start, end = record_window(0)
    data = bytearray(end)
    data[start + 4 : start + 7] = b"ABC"
    line = unpack_config_item(0, bytes(data))
    assert line.name == "ABC" + "\x00" * 29
    assert line.uri == "\x00" * 200


def test_unpack_exact_length_buffer_is_in_bounds() -> None:
    _, end = record_window(1)
    assert unpack_config_item(1, bytes(end)) == ConfigLine("\x00" * 32, "\x00" * 200)


def test_unpack_out_of_bounds() -> None:
    _, end = record_window(1)
    with pytest.raises(OutOfBoundsError):
        unpack_config_item(1, bytes(end - 1))
    with pytest.raises(OutOfBoundsError):
        unpack_config_item(0, b"")
    with pytest.raises(OutOfBoundsError):
        unpack_config_item(-1, bytes(end))


def test_out_of_bounds_is_a_decode_error() -> None:
    assert issubclass(OutOfBoundsError, ConfigDecodeError)
    assert issubclass(ConfigDecodeError, ValueError)


def test_iter_config_items_skips_out_of_bounds_records() -> None:
    data = config_bytes("abcdef", [("One", "u1"), ("Two", "u2")])
    items = list(iter_config_items(data, 5))
    assert [i for i, _ in items] == [0, 1]
    assert items[1][1].name.rstrip("\x00") == "Two"
    assert items[1][1].uri.rstrip("\x00") == "u2"


def test_config_uuid() -> None:
    data = config_bytes("Xy12Ab", [])
    assert config_uuid(data) == "Xy12Ab"
    with pytest.raises(OutOfBoundsError):
        config_uuid(data[:49])


@pytest.mark.parametrize(
    "text",
    [
        "plain ascii",
        "café ñ",
        "€ 中文",
        "\U0001f600 ape #1 \U0001f34c",
        "mixed aé€\U0001f600",
    ],
)
def test_decode_utf8_round_trip(text: str) -> None:
    assert decode_utf8(text.encode("utf-8")) == text
    assert decode_utf8(text.encode("utf-8"), strict=True) == text


def test_decode_utf8_four_byte_sequence_is_one_character() -> None:
    out = decode_utf8(b"\xf0\x9f\x98\x80")
    assert out == "\U0001f600"
    assert len(out) == 1


def test_decode_utf8_accepts_lists_of_ints() -> None:
    assert decode_utf8([0x41, 0xC3, 0xA9]) == "Aé"


def test_decode_utf8_does_not_validate_continuation_bytes() -> None:
    # 0x41 is not a continuation byte; only its low six bits are used.
    assert decode_utf8(b"\xc3\x41") == "Á"
    with pytest.raises(ConfigDecodeError):
        decode_utf8(b"\xc3\x41", strict=True)


def test_decode_utf8_truncated_sequence_reads_zeros() -> None:
    assert decode_utf8(b"\xe2\x82") == "₀"
    with pytest.raises(ConfigDecodeError):
        decode_utf8(b"\xe2\x82", strict=True)


def test_decode_utf8_stray_continuation_byte_consumes_three_more() -> None:
    # A lone 0x80 takes the four-byte path and yields an unpaired surrogate.
    assert decode_utf8(b"\x80\x00\x00\x00Z") == "\uffc0\udc00Z"
    with pytest.raises(ConfigDecodeError):
        decode_utf8(b"\x80\x00\x00\x00Z", strict=True)
