from __future__ import annotations

import hashlib
import struct
from typing import List

import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from candy_cli.candy_machine import parse_candy_machine
from candy_cli.mint import (
    ASSOCIATED_TOKEN_PROGRAM,
    SYSTEM_PROGRAM,
    TOKEN_METADATA_PROGRAM,
    TOKEN_PROGRAM,
    MintAttempt,
    build_mint_instructions,
    get_master_edition,
    get_metadata,
    get_token_wallet,
    initialize_mint_ix,
    mint_to_ix,
)
from candy_cli.project_constants import CANDY_MACHINE_PROGRAM_ID, MINT_LAYOUT_SPAN
from tests.account_helpers import candy_machine_bytes

PROGRAM = Pubkey.from_string(CANDY_MACHINE_PROGRAM_ID)


def _cm(address: Pubkey):
    return parse_candy_machine(str(address), candy_machine_bytes())


def test_pdas_use_published_seeds() -> None:
    owner = Keypair().pubkey()
    mint = Keypair().pubkey()
    assert get_metadata(mint) == Pubkey.find_program_address(
        [b"metadata", bytes(TOKEN_METADATA_PROGRAM), bytes(mint)], TOKEN_METADATA_PROGRAM
    )[0]
    assert get_master_edition(mint) == Pubkey.find_program_address(
        [b"metadata", bytes(TOKEN_METADATA_PROGRAM), bytes(mint), b"edition"],
        TOKEN_METADATA_PROGRAM,
    )[0]
    assert get_token_wallet(owner, mint) == Pubkey.find_program_address(
        [bytes(owner), bytes(TOKEN_PROGRAM), bytes(mint)], ASSOCIATED_TOKEN_PROGRAM
    )[0]
    assert get_metadata(mint) != get_master_edition(mint)


def test_initialize_mint_data_layout() -> None:
    mint = Keypair().pubkey()
    authority = Keypair().pubkey()
    ix = initialize_mint_ix(mint, 0, authority, authority)
    assert ix.program_id == TOKEN_PROGRAM
    assert ix.data == bytes([0, 0]) + bytes(authority) + b"\x01" + bytes(authority)
    assert len(initialize_mint_ix(mint, 0, authority).data) == 67
    assert ix.accounts[0].pubkey == mint
    assert ix.accounts[0].is_writable


def test_mint_to_data_layout() -> None:
    ix = mint_to_ix(Keypair().pubkey(), Keypair().pubkey(), Keypair().pubkey(), 1)
    assert ix.data == bytes([7]) + struct.pack("<Q", 1)
    assert ix.accounts[2].is_signer


def test_build_mint_instructions_order_and_accounts() -> None:
    cm = _cm(Keypair().pubkey())
    payer = Keypair().pubkey()
    mint = Keypair().pubkey()

    ixs = build_mint_instructions(PROGRAM, cm, payer, mint, 1461600)
    assert [ix.program_id for ix in ixs] == [
        SYSTEM_PROGRAM,
        TOKEN_PROGRAM,
        ASSOCIATED_TOKEN_PROGRAM,
        TOKEN_PROGRAM,
        PROGRAM,
    ]

    create = ixs[0]
    assert struct.unpack("<Q", create.data[4:12])[0] == 1461600
    assert struct.unpack("<Q", create.data[12:20])[0] == MINT_LAYOUT_SPAN

    mint_nft = ixs[4]
    assert mint_nft.data == hashlib.sha256(b"global:mint_nft").digest()[:8]
    keys = [m.pubkey for m in mint_nft.accounts]
    assert len(keys) == 14
    assert keys[0] == Pubkey.from_string(cm.config)
    assert keys[1] == Pubkey.from_string(cm.address)
    assert keys[2] == payer
    assert keys[3] == Pubkey.from_string(cm.wallet)
    assert keys[4] == get_metadata(mint)
    assert keys[5] == mint
    assert keys[8] == get_master_edition(mint)
    assert mint_nft.accounts[2].is_signer and mint_nft.accounts[2].is_writable


class FakeRpc:
    def __init__(self) -> None:
        self.sent: List[bytes] = []
        self.fail_next = 0

    def get_minimum_balance_for_rent_exemption(self, space: int) -> int:
        assert space == MINT_LAYOUT_SPAN
        return 1461600

    def get_latest_blockhash(self) -> str:
        return str(Hash.new_unique())

    def send_transaction(self, tx_bytes: bytes) -> str:
        self.sent.append(tx_bytes)
        if self.fail_next:
            self.fail_next -= 1
            raise RuntimeError("Blockhash not found")
        return f"sig{len(self.sent)}"


def test_mint_attempt_signs_and_submits_with_one_mint_keypair() -> None:
    rpc = FakeRpc()
    rpc.fail_next = 1
    payer = Keypair()
    attempt = MintAttempt(rpc, _cm(Keypair().pubkey()), payer, CANDY_MACHINE_PROGRAM_ID)
    mint_before = attempt.mint.pubkey()

    with pytest.raises(RuntimeError):
        attempt()
    assert attempt() == "sig2"
    assert attempt.mint.pubkey() == mint_before
    assert len(rpc.sent) == 2
    assert all(bytes(payer.pubkey()) in raw and bytes(mint_before) in raw for raw in rpc.sent)


def test_build_transaction_is_signed_by_payer_and_mint() -> None:
    payer = Keypair()
    mint = Keypair()
    attempt = MintAttempt(FakeRpc(), _cm(Keypair().pubkey()), payer, CANDY_MACHINE_PROGRAM_ID, mint=mint)

    tx = attempt.build_transaction(str(Hash.new_unique()), 1461600)
    signers = tx.message.account_keys[: tx.message.header.num_required_signatures]
    assert set(signers) == {payer.pubkey(), mint.pubkey()}
    tx.verify()
