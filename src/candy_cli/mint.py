from __future__ import annotations

import logging
import struct
from typing import List, Optional

from solders.hash import Hash
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.system_program import CreateAccountParams, create_account
from solders.transaction import Transaction

from .candy_machine import CandyMachine, instruction_discriminator
from .project_constants import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    MINT_LAYOUT_SPAN,
    SYSTEM_PROGRAM_ID,
    SYSVAR_CLOCK_PUBKEY,
    SYSVAR_RENT_PUBKEY,
    TOKEN_METADATA_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
)
from .rpc import RpcClient

log = logging.getLogger(__name__)

TOKEN_PROGRAM = Pubkey.from_string(TOKEN_PROGRAM_ID)
ASSOCIATED_TOKEN_PROGRAM = Pubkey.from_string(ASSOCIATED_TOKEN_PROGRAM_ID)
TOKEN_METADATA_PROGRAM = Pubkey.from_string(TOKEN_METADATA_PROGRAM_ID)
SYSTEM_PROGRAM = Pubkey.from_string(SYSTEM_PROGRAM_ID)
RENT_SYSVAR = Pubkey.from_string(SYSVAR_RENT_PUBKEY)
CLOCK_SYSVAR = Pubkey.from_string(SYSVAR_CLOCK_PUBKEY)

MINT_NFT_DISCRIMINATOR = instruction_discriminator("mint_nft")

# SPL token instruction tags
_INITIALIZE_MINT = 0
_MINT_TO = 7


def get_token_wallet(owner: Pubkey, mint: Pubkey) -> Pubkey:
    return Pubkey.find_program_address(
        [bytes(owner), bytes(TOKEN_PROGRAM), bytes(mint)],
        ASSOCIATED_TOKEN_PROGRAM,
    )[0]


def get_metadata(mint: Pubkey) -> Pubkey:
    return Pubkey.find_program_address(
        [b"metadata", bytes(TOKEN_METADATA_PROGRAM), bytes(mint)],
        TOKEN_METADATA_PROGRAM,
    )[0]


def get_master_edition(mint: Pubkey) -> Pubkey:
    return Pubkey.find_program_address(
        [b"metadata", bytes(TOKEN_METADATA_PROGRAM), bytes(mint), b"edition"],
        TOKEN_METADATA_PROGRAM,
    )[0]


def initialize_mint_ix(
    mint: Pubkey,
    decimals: int,
    mint_authority: Pubkey,
    freeze_authority: Optional[Pubkey] = None,
) -> Instruction:
    data = bytes([_INITIALIZE_MINT, decimals]) + bytes(mint_authority)
    if freeze_authority is None:
        data += bytes(33)
    else:
        data += b"\x01" + bytes(freeze_authority)
    metas = [
        AccountMeta(pubkey=mint, is_signer=False, is_writable=True),
        AccountMeta(pubkey=RENT_SYSVAR, is_signer=False, is_writable=False),
    ]
    return Instruction(program_id=TOKEN_PROGRAM, data=data, accounts=metas)


def create_associated_token_account_ix(
    ata: Pubkey, payer: Pubkey, owner: Pubkey, mint: Pubkey
) -> Instruction:
    metas = [
        AccountMeta(pubkey=payer, is_signer=True, is_writable=True),
        AccountMeta(pubkey=ata, is_signer=False, is_writable=True),
        AccountMeta(pubkey=owner, is_signer=False, is_writable=False),
        AccountMeta(pubkey=mint, is_signer=False, is_writable=False),
        AccountMeta(pubkey=SYSTEM_PROGRAM, is_signer=False, is_writable=False),
        AccountMeta(pubkey=TOKEN_PROGRAM, is_signer=False, is_writable=False),
        AccountMeta(pubkey=RENT_SYSVAR, is_signer=False, is_writable=False),
    ]
    return Instruction(program_id=ASSOCIATED_TOKEN_PROGRAM, data=b"", accounts=metas)


def mint_to_ix(mint: Pubkey, destination: Pubkey, authority: Pubkey, amount: int) -> Instruction:
    data = bytes([_MINT_TO]) + struct.pack("<Q", amount)
    metas = [
        AccountMeta(pubkey=mint, is_signer=False, is_writable=True),
        AccountMeta(pubkey=destination, is_signer=False, is_writable=True),
        AccountMeta(pubkey=authority, is_signer=True, is_writable=False),
    ]
    return Instruction(program_id=TOKEN_PROGRAM, data=data, accounts=metas)


def mint_nft_ix(
    program_id: Pubkey,
    cm: CandyMachine,
    payer: Pubkey,
    mint: Pubkey,
) -> Instruction:
    # Account order follows the program's MintNFT context.
    metas = [
        AccountMeta(pubkey=Pubkey.from_string(cm.config), is_signer=False, is_writable=False),
        AccountMeta(pubkey=Pubkey.from_string(cm.address), is_signer=False, is_writable=True),
        AccountMeta(pubkey=payer, is_signer=True, is_writable=True),
        AccountMeta(pubkey=Pubkey.from_string(cm.wallet), is_signer=False, is_writable=True),
        AccountMeta(pubkey=get_metadata(mint), is_signer=False, is_writable=True),
        AccountMeta(pubkey=mint, is_signer=False, is_writable=True),
        AccountMeta(pubkey=payer, is_signer=True, is_writable=False),  # mint authority
        AccountMeta(pubkey=payer, is_signer=True, is_writable=False),  # update authority
        AccountMeta(pubkey=get_master_edition(mint), is_signer=False, is_writable=True),
        AccountMeta(pubkey=TOKEN_METADATA_PROGRAM, is_signer=False, is_writable=False),
        AccountMeta(pubkey=TOKEN_PROGRAM, is_signer=False, is_writable=False),
        AccountMeta(pubkey=SYSTEM_PROGRAM, is_signer=False, is_writable=False),
        AccountMeta(pubkey=RENT_SYSVAR, is_signer=False, is_writable=False),
        AccountMeta(pubkey=CLOCK_SYSVAR, is_signer=False, is_writable=False),
    ]
    return Instruction(program_id=program_id, data=MINT_NFT_DISCRIMINATOR, accounts=metas)


def build_mint_instructions(
    program_id: Pubkey,
    cm: CandyMachine,
    payer: Pubkey,
    mint: Pubkey,
    rent_lamports: int,
) -> List[Instruction]:
    token = get_token_wallet(payer, mint)
    return [
        create_account(
            CreateAccountParams(
                from_pubkey=payer,
                to_pubkey=mint,
                lamports=rent_lamports,
                space=MINT_LAYOUT_SPAN,
                owner=TOKEN_PROGRAM,
            )
        ),
        initialize_mint_ix(mint, 0, payer, payer),
        create_associated_token_account_ix(token, payer, payer, mint),
        mint_to_ix(mint, token, payer, 1),
        mint_nft_ix(program_id, cm, payer, mint),
    ]


class MintAttempt:
    """
    One mint_nft submission per call. The mint keypair is generated once
    and reused by every retry; rent and blockhash are fetched per attempt.
    """

    def __init__(
        self,
        rpc: RpcClient,
        cm: CandyMachine,
        payer: Keypair,
        program_id: str,
        mint: Optional[Keypair] = None,
    ) -> None:
        self.rpc = rpc
        self.cm = cm
        self.payer = payer
        self.program_id = Pubkey.from_string(program_id)
        self.mint = mint or Keypair()

    def build_transaction(self, blockhash: str, rent_lamports: int) -> Transaction:
        instructions = build_mint_instructions(
            self.program_id,
            self.cm,
            self.payer.pubkey(),
            self.mint.pubkey(),
            rent_lamports,
        )
        recent = Hash.from_string(blockhash)
        msg = Message.new_with_blockhash(instructions, self.payer.pubkey(), recent)
        tx = Transaction.new_unsigned(msg)
        tx.sign([self.payer, self.mint], recent)
        return tx

    def __call__(self) -> str:
        rent = self.rpc.get_minimum_balance_for_rent_exemption(MINT_LAYOUT_SPAN)
        blockhash = self.rpc.get_latest_blockhash()
        tx = self.build_transaction(blockhash, rent)
        log.debug("Submitting mint %s for %s", self.mint.pubkey(), self.cm.address)
        return self.rpc.send_transaction(bytes(tx))
