from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, List, Sequence, Tuple

from .project_constants import (
    CONFIG_ARRAY_START,
    CONFIG_LINE_SIZE,
    CONFIG_UUID_LEN,
    CONFIG_UUID_OFFSET,
    NAME_END,
    NAME_START,
    URI_END,
    URI_START,
)

log = logging.getLogger(__name__)


class ConfigDecodeError(ValueError):
    pass


class OutOfBoundsError(ConfigDecodeError):
    pass


@dataclass(frozen=True)
class ConfigLine:
    name: str
    uri: str


def _byte_at(data: Sequence[int], i: int, strict: bool) -> int:
    if i < len(data):
        return data[i]
    if strict:
        raise ConfigDecodeError(f"Truncated UTF-8 sequence at byte {i}")
    return 0


def _continuation(data: Sequence[int], i: int, strict: bool) -> int:
    b = _byte_at(data, i, strict)
    if strict and not 0x80 <= b <= 0xBF:
        raise ConfigDecodeError(f"Invalid UTF-8 continuation byte 0x{b:02x} at {i}")
    return b


def decode_utf8(data: Sequence[int], strict: bool = False) -> str:
    """
    Decode a byte window the way the candy machine tooling always has.

    The default mode does not validate continuation bytes and reads missing
    trailing bytes as zero, so malformed input yields garbage instead of an
    error. Code points above the BMP are produced as UTF-16 surrogate pairs;
    well-formed pairs are folded back into a single character, unpaired ones
    stay in the result as lone surrogates.

    strict=True rejects bad lead bytes, bad continuation bytes and truncated
    sequences with ConfigDecodeError.
    """
    units: List[int] = []
    i = 0
    n = len(data)
    while i < n:
        value = data[i]
        if value < 0x80:
            units.append(value)
        elif 0xBF < value < 0xE0:
            b1 = _continuation(data, i + 1, strict)
            units.append(((value & 0x1F) << 6) | (b1 & 0x3F))
            i += 1
        elif 0xDF < value < 0xF0:
            b1 = _continuation(data, i + 1, strict)
            b2 = _continuation(data, i + 2, strict)
            units.append(((value & 0x0F) << 12) | ((b1 & 0x3F) << 6) | (b2 & 0x3F))
            i += 2
        else:
            if strict and not 0xF0 <= value <= 0xF4:
                raise ConfigDecodeError(f"Invalid UTF-8 lead byte 0x{value:02x} at {i}")
            b1 = _continuation(data, i + 1, strict)
            b2 = _continuation(data, i + 2, strict)
            b3 = _continuation(data, i + 3, strict)
            char_code = (
                ((value & 0x07) << 18)
                | ((b1 & 0x3F) << 12)
                | ((b2 & 0x3F) << 6)
                | (b3 & 0x3F)
            ) - 0x10000
            units.append(((char_code >> 10) | 0xD800) & 0xFFFF)
            units.append(((char_code & 0x3FF) | 0xDC00) & 0xFFFF)
            i += 3
        i += 1

    raw = "".join(chr(u) for u in units)
    # Fold surrogate pairs into real code points; lone surrogates pass through.
    return raw.encode("utf-16-le", "surrogatepass").decode("utf-16-le", "surrogatepass")


def record_window(index: int) -> Tuple[int, int]:
    start = CONFIG_ARRAY_START + 4 + CONFIG_LINE_SIZE * index
    return start, start + CONFIG_LINE_SIZE


def unpack_config_item(index: int, data: bytes, strict: bool = False) -> ConfigLine:
    """
    Config line `index` of a config account.
    Line layout: u32 len | name(32) | u32 len | uri(200)
    """
    if index < 0:
        raise OutOfBoundsError(f"Negative config line index {index}")
    start, end = record_window(index)
    if len(data) < end:
        raise OutOfBoundsError(
            f"Config line {index} needs bytes [{start}, {end}), buffer has {len(data)}"
        )

    line = data[start:end]
    name = decode_utf8(line[NAME_START:NAME_END], strict=strict)
    uri = decode_utf8(line[URI_START:URI_END], strict=strict)
    return ConfigLine(name=name, uri=uri)


def iter_config_items(
    data: bytes, count: int, strict: bool = False
) -> Iterator[Tuple[int, ConfigLine]]:
    for i in range(count):
        try:
            yield i, unpack_config_item(i, data, strict=strict)
        except ConfigDecodeError as e:
            log.debug("Skipping config line %d: %s", i, e)


def config_uuid(data: bytes) -> str:
    end = CONFIG_UUID_OFFSET + CONFIG_UUID_LEN
    if len(data) < end:
        raise OutOfBoundsError(f"Config account too short for uuid: {len(data)} bytes")
    return data[CONFIG_UUID_OFFSET:end].decode("utf-8", errors="replace")
