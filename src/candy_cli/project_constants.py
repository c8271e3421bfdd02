"""
Immutable parameters of the candy machine v1 program and its wire format.

Layout numbers are defined by the on-chain program and are kept as the
program's field-by-field arithmetic.
"""

# Program ids (MAINNET)
CANDY_MACHINE_PROGRAM_ID = "cndyAnrLdpjq1Ssp1z8xxDsB8dxe7u4HL5Nxi2K5WXZ"
TOKEN_METADATA_PROGRAM_ID = "metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s"
TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
ASSOCIATED_TOKEN_PROGRAM_ID = "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL"
SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"
SYSVAR_RENT_PUBKEY = "SysvarRent111111111111111111111111111111111"
SYSVAR_CLOCK_PUBKEY = "SysvarC1ock11111111111111111111111111111111"

# Start of the config line array inside a config account
CONFIG_ARRAY_START = (
    32  # authority
    + 4
    + 6  # uuid + u32 len
    + 4
    + 10  # u32 len + symbol
    + 2  # seller fee basis points
    + 1
    + 4
    + 5 * 34  # optional + u32 len + actual vec
    + 8  # max supply
    + 1  # is mutable
    + 1  # retain authority
    + 4  # max number of lines
)

# u32 len + name + u32 len + uri
CONFIG_LINE_SIZE = 4 + 32 + 4 + 200

# Windows inside one config line
NAME_START, NAME_END = 4, 36
URI_START, URI_END = 40, 240

# Config account: discriminator(8) | authority(32) | u32 len | uuid(6)
CONFIG_UUID_OFFSET = 8 + 32 + 4
CONFIG_UUID_LEN = 6

# SPL token mint account size
MINT_LAYOUT_SPAN = 82

# getMultipleAccounts pacing (public RPC rate limits)
CONFIG_FETCH_CHUNK_SIZE = 99
CONFIG_FETCH_SLEEP_S = 1.0

# Mint scheduler defaults
DEFAULT_POLL_INTERVAL_MS = 500
DEFAULT_LOOKAHEAD_MS = 500

DEFAULT_KEYPAIR_PATH = "~/.config/solana/id.json"
