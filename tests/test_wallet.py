from __future__ import annotations

import json

import pytest
from solders.keypair import Keypair

from candy_cli.wallet import load_keypair


def test_load_keypair_from_cli_json(tmp_path) -> None:
    kp = Keypair()
    path = tmp_path / "id.json"
    path.write_text(json.dumps(list(bytes(kp))), encoding="utf-8")

    loaded = load_keypair(str(path))
    assert loaded.pubkey() == kp.pubkey()


def test_load_keypair_rejects_bad_json(tmp_path) -> None:
    path = tmp_path / "id.json"
    path.write_text("not json", encoding="utf-8")
    with pytest.raises(RuntimeError, match="not valid JSON"):
        load_keypair(str(path))


def test_load_keypair_rejects_wrong_length(tmp_path) -> None:
    path = tmp_path / "id.json"
    path.write_text(json.dumps([1, 2, 3]), encoding="utf-8")
    with pytest.raises(RuntimeError, match="64 bytes"):
        load_keypair(str(path))


def test_load_keypair_missing_file(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        load_keypair(str(tmp_path / "missing.json"))
