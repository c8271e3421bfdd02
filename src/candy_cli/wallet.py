from __future__ import annotations

import json

from solders.keypair import Keypair


def load_keypair(path: str) -> Keypair:
    """Loads a Solana CLI keypair file (JSON array of 64 ints)."""
    with open(path, "r", encoding="utf-8") as f:
        raw = f.read()

    try:
        secret = json.loads(raw)
    except json.JSONDecodeError as e:
        raise RuntimeError(f"Keypair file {path} is not valid JSON: {e}") from e

    if not isinstance(secret, list) or len(secret) != 64:
        raise RuntimeError(f"Keypair file {path} must contain a JSON array of 64 bytes.")

    try:
        return Keypair.from_bytes(bytes(secret))
    except (TypeError, ValueError) as e:
        raise RuntimeError(f"Keypair file {path} holds an invalid secret key: {e}") from e
