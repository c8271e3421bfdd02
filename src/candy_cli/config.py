from __future__ import annotations

import os
from dataclasses import dataclass
from dotenv import load_dotenv

from .project_constants import CANDY_MACHINE_PROGRAM_ID, DEFAULT_KEYPAIR_PATH


@dataclass(frozen=True)
class Settings:
    rpc_url: str
    keypair_path: str
    program_id: str = CANDY_MACHINE_PROGRAM_ID

    @staticmethod
    def from_env(
        rpc_url_override: str | None = None,
        keypair_override: str | None = None,
    ) -> "Settings":
        load_dotenv()

        # --rpc-url wins over RPC_URL.
        rpc_url = rpc_url_override or os.getenv("RPC_URL", "").strip()
        if not rpc_url:
            raise RuntimeError(
                "Missing RPC_URL. Pass --rpc-url, put it in .env or export it."
            )

        keypair_path = (
            keypair_override
            or os.getenv("KEYPAIR_PATH", "").strip()
            or DEFAULT_KEYPAIR_PATH
        )

        program_id = (
            os.getenv("CANDY_MACHINE_PROGRAM_ID", "").strip()
            or CANDY_MACHINE_PROGRAM_ID
        )

        return Settings(
            rpc_url=rpc_url,
            keypair_path=os.path.expanduser(keypair_path),
            program_id=program_id,
        )
