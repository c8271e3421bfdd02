from __future__ import annotations

import base64
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import httpx

log = logging.getLogger(__name__)


class RpcError(RuntimeError):
    pass


def _decode_account_data(value: Optional[Dict[str, Any]]) -> Optional[bytes]:
    # value['data'] is [base64_str, "base64"]
    if not value or not value.get("data"):
        return None
    return base64.b64decode(value["data"][0])


class RpcClient:
    def __init__(
        self,
        rpc_url: str,
        timeout_s: float = 60.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.client = client or httpx.Client(timeout=timeout_s)

    def close(self) -> None:
        self.client.close()

    def _post(self, method: str, params: List[Any]) -> Dict[str, Any]:
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": method,
            "params": params,
        }
        resp = self.client.post(self.rpc_url, json=payload)
        resp.raise_for_status()
        data = resp.json()
        if "error" in data:
            raise RpcError(f"RPC error ({method}): {data['error']}")
        return data

    def get_program_accounts(
        self,
        program_id: str,
        filters: Optional[List[Dict[str, Any]]] = None,
    ) -> List[Tuple[str, bytes]]:
        """Returns (pubkey, raw data) for every account owned by program_id."""
        config: Dict[str, Any] = {"encoding": "base64"}
        if filters:
            config["filters"] = filters
        data = self._post("getProgramAccounts", [program_id, config])
        out: List[Tuple[str, bytes]] = []
        for item in data.get("result", []):
            raw = _decode_account_data(item.get("account"))
            if raw is None:
                continue
            out.append((item["pubkey"], raw))
        return out

    def get_account_info(self, pubkey: str) -> Optional[bytes]:
        data = self._post("getAccountInfo", [pubkey, {"encoding": "base64"}])
        result = data.get("result") or {}
        return _decode_account_data(result.get("value"))

    def get_multiple_accounts(self, pubkeys: Sequence[str]) -> List[Optional[bytes]]:
        if not pubkeys:
            return []
        data = self._post(
            "getMultipleAccounts", [list(pubkeys), {"encoding": "base64"}]
        )
        values = (data.get("result") or {}).get("value") or []
        return [_decode_account_data(v) for v in values]

    def get_multiple_accounts_chunked(
        self,
        pubkeys: Sequence[str],
        chunk_size: int,
        sleep_s: float,
        sleep: Callable[[float], None] = time.sleep,
    ) -> List[Optional[bytes]]:
        """
        getMultipleAccounts in chunks, pausing between requests so public
        endpoints don't rate limit us. Output order matches pubkeys.
        """
        out: List[Optional[bytes]] = []
        for start in range(0, len(pubkeys), chunk_size):
            chunk = pubkeys[start : start + chunk_size]
            log.info("Fetching accounts %d through %d", start, start + len(chunk))
            out.extend(self.get_multiple_accounts(chunk))
            if start + chunk_size < len(pubkeys):
                log.info("Sleeping for %.1f s to avoid rate limit", sleep_s)
                sleep(sleep_s)
        return out

    def get_minimum_balance_for_rent_exemption(self, space: int) -> int:
        data = self._post("getMinimumBalanceForRentExemption", [space])
        return int(data["result"])

    def get_latest_blockhash(self, commitment: str = "finalized") -> str:
        data = self._post("getLatestBlockhash", [{"commitment": commitment}])
        result = data.get("result") or {}
        value = result.get("value") or {}
        if "blockhash" not in value:
            raise RpcError("getLatestBlockhash returned no blockhash.")
        return value["blockhash"]

    def send_transaction(self, tx_bytes: bytes, skip_preflight: bool = False) -> str:
        """Submits a signed, serialized transaction. Returns its signature."""
        tx_b64 = base64.b64encode(tx_bytes).decode("ascii")
        data = self._post(
            "sendTransaction",
            [
                tx_b64,
                {
                    "encoding": "base64",
                    "skipPreflight": skip_preflight,
                    "preflightCommitment": "processed",
                },
            ],
        )
        return str(data["result"])
