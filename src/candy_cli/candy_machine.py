from __future__ import annotations

import hashlib
import logging
import re
import struct
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterable, Iterator, Optional, Tuple

import base58

from .config_lines import ConfigDecodeError, config_uuid, iter_config_items

log = logging.getLogger(__name__)


class AccountDecodeError(RuntimeError):
    pass


class AccountMissingError(RuntimeError):
    pass


def account_discriminator(name: str) -> bytes:
    return hashlib.sha256(f"account:{name}".encode()).digest()[:8]


def instruction_discriminator(name: str) -> bytes:
    return hashlib.sha256(f"global:{name}".encode()).digest()[:8]


CANDY_MACHINE_DISCRIMINATOR = account_discriminator("CandyMachine")


def candy_machine_filters() -> list:
    """getProgramAccounts filter selecting CandyMachine accounts only."""
    return [
        {
            "memcmp": {
                "offset": 0,
                "bytes": base58.b58encode(CANDY_MACHINE_DISCRIMINATOR).decode("ascii"),
            }
        }
    ]


@dataclass(frozen=True)
class CandyMachine:
    address: str
    authority: str
    wallet: str
    token_mint: Optional[str]
    config: str
    uuid: str
    price: int
    items_available: int
    go_live_date: Optional[int]
    items_redeemed: int
    bump: int


class _Reader:
    def __init__(self, data: bytes, offset: int = 0) -> None:
        self.data = data
        self.offset = offset

    def take(self, n: int) -> bytes:
        end = self.offset + n
        if end > len(self.data):
            raise AccountDecodeError(
                f"Account data too short: need {end} bytes, have {len(self.data)}"
            )
        out = self.data[self.offset : end]
        self.offset = end
        return out

    def unpack(self, fmt: str):
        return struct.unpack(fmt, self.take(struct.calcsize(fmt)))[0]

    def pubkey(self) -> str:
        return base58.b58encode(self.take(32)).decode("ascii")

    def option(self, read):
        return read() if self.unpack("<B") else None

    def string(self) -> str:
        length = self.unpack("<I")
        return self.take(length).decode("utf-8", errors="replace")


def parse_candy_machine(address: str, data: bytes) -> CandyMachine:
    """
    Anchor account layout (after the 8-byte discriminator):
    authority(32) | wallet(32) | Option<Pubkey> token_mint | config(32)
    | uuid: String | price: u64 | items_available: u64
    | go_live_date: Option<i64> | items_redeemed: u64 | bump: u8
    """
    if data[:8] != CANDY_MACHINE_DISCRIMINATOR:
        raise AccountDecodeError(f"{address} is not a candy machine account")

    r = _Reader(data, 8)
    authority = r.pubkey()
    wallet = r.pubkey()
    token_mint = r.option(r.pubkey)
    config = r.pubkey()
    uuid = r.string()
    price = r.unpack("<Q")
    items_available = r.unpack("<Q")
    go_live_date = r.option(lambda: r.unpack("<q"))
    items_redeemed = r.unpack("<Q")
    bump = r.unpack("<B")

    return CandyMachine(
        address=address,
        authority=authority,
        wallet=wallet,
        token_mint=token_mint,
        config=config,
        uuid=uuid,
        price=price,
        items_available=items_available,
        go_live_date=go_live_date,
        items_redeemed=items_redeemed,
        bump=bump,
    )


def live_date(cm: CandyMachine) -> Optional[datetime]:
    if cm.go_live_date is None:
        return None
    return datetime.fromtimestamp(cm.go_live_date, tz=timezone.utc)


def is_sold_out(cm: CandyMachine) -> bool:
    return cm.items_redeemed >= cm.items_available


@dataclass(frozen=True)
class SearchMatch:
    candy_machine: CandyMachine
    index: int
    name: str
    uri: str


def search_config_lines(
    candy_machines: Iterable[CandyMachine],
    configs_by_uuid: Dict[str, bytes],
    pattern: str,
) -> Iterator[SearchMatch]:
    """
    Yields every config line whose name matches `pattern`.
    Config accounts are keyed by uuid, which the program sets to the first
    six characters of the config address.
    """
    regex = re.compile(pattern)
    for cm in candy_machines:
        config = configs_by_uuid.get(cm.config[:6])
        if not config:
            log.debug("No config account for candy machine %s", cm.address)
            continue

        for i, line in iter_config_items(config, cm.items_available):
            if regex.search(line.name):
                yield SearchMatch(candy_machine=cm, index=i, name=line.name, uri=line.uri)


def index_configs_by_uuid(
    configs: Iterable[Tuple[str, Optional[bytes]]],
) -> Dict[str, bytes]:
    out: Dict[str, bytes] = {}
    for address, data in configs:
        if not data:
            log.debug("Config account %s missing", address)
            continue
        try:
            out[config_uuid(data)] = data
        except ConfigDecodeError as e:
            log.debug("Skipping config %s: %s", address, e)
    return out
