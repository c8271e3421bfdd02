from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime, timezone

from .candy_machine import (
    AccountDecodeError,
    AccountMissingError,
    CandyMachine,
    candy_machine_filters,
    index_configs_by_uuid,
    is_sold_out,
    live_date,
    parse_candy_machine,
    search_config_lines,
)
from .config import Settings
from .mint import MintAttempt
from .project_constants import (
    CONFIG_FETCH_CHUNK_SIZE,
    CONFIG_FETCH_SLEEP_S,
    DEFAULT_LOOKAHEAD_MS,
    DEFAULT_POLL_INTERVAL_MS,
)
from .rpc import RpcClient
from .scheduler import FireMode, ScheduleCancelled, ScheduledAction
from .wallet import load_keypair


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def fetch_candy_machine(rpc: RpcClient, address: str) -> CandyMachine:
    data = rpc.get_account_info(address)
    if data is None:
        raise AccountMissingError(f"Candy machine {address} doesn't exist")
    return parse_candy_machine(address, data)


def cmd_search(args: argparse.Namespace) -> int:
    settings = Settings.from_env(
        rpc_url_override=args.rpc_url, keypair_override=args.keypair
    )
    log = logging.getLogger("search")

    rpc = RpcClient(settings.rpc_url, timeout_s=args.timeout)
    try:
        log.info("Scanning candy machine program...")
        candy_machines = []
        for address, data in rpc.get_program_accounts(
            settings.program_id, filters=candy_machine_filters()
        ):
            try:
                candy_machines.append(parse_candy_machine(address, data))
            except AccountDecodeError as e:
                log.debug("Skipping %s: %s", address, e)

        config_keys = [cm.config for cm in candy_machines]
        log.info("Number of configs %d", len(config_keys))
        config_data = rpc.get_multiple_accounts_chunked(
            config_keys,
            chunk_size=CONFIG_FETCH_CHUNK_SIZE,
            sleep_s=CONFIG_FETCH_SLEEP_S,
        )
    finally:
        rpc.close()

    configs_by_uuid = index_configs_by_uuid(zip(config_keys, config_data))
    log.info("Configs indexed   : %d", len(configs_by_uuid))

    matches = 0
    for match in search_config_lines(candy_machines, configs_by_uuid, args.pattern):
        matches += 1
        print("Match!")
        print(f"Name: {match.name}")
        print(f"Uri: {match.uri}")
        print(f"Candy Machine Public Key: {match.candy_machine.address}")

    log.info("Matches           : %d", matches)
    return 0


def cmd_wen(args: argparse.Namespace) -> int:
    settings = Settings.from_env(
        rpc_url_override=args.rpc_url, keypair_override=args.keypair
    )
    rpc = RpcClient(settings.rpc_url, timeout_s=args.timeout)
    try:
        cm = fetch_candy_machine(rpc, args.candy_machine)
    except AccountMissingError as e:
        print(str(e), file=sys.stderr)
        return 1
    finally:
        rpc.close()

    date = live_date(cm)
    if date is None:
        print(f"Candy machine {args.candy_machine} does not have live date")
    else:
        print(date.astimezone().strftime("%Y-%m-%d %H:%M:%S %Z"))
    return 0


def cmd_mint(args: argparse.Namespace) -> int:
    settings = Settings.from_env(
        rpc_url_override=args.rpc_url, keypair_override=args.keypair
    )
    log = logging.getLogger("mint")
    payer = load_keypair(settings.keypair_path)

    rpc = RpcClient(settings.rpc_url, timeout_s=args.timeout)
    try:
        try:
            cm = fetch_candy_machine(rpc, args.candy_machine)
        except AccountMissingError as e:
            print(str(e), file=sys.stderr)
            return 1

        date = live_date(cm)
        if date is None:
            print(
                f"Candy machine {args.candy_machine} does not have live date yet",
                file=sys.stderr,
            )
            return 1

        print(f"Candy machine live date: {date.astimezone():%Y-%m-%d %H:%M:%S %Z}")
        print(f"Today's date: {datetime.now(timezone.utc).astimezone():%Y-%m-%d %H:%M:%S %Z}")
        print(f"Items available: {cm.items_available}")
        print(f"Items redeemed: {cm.items_redeemed}")

        if is_sold_out(cm):
            print("All items have been redeemed")
            return 0
        if cm.token_mint:
            log.warning("Candy machine %s charges in SPL token %s", cm.address, cm.token_mint)

        action = MintAttempt(rpc, cm, payer, settings.program_id)
        log.info("Mint account      : %s", action.mint.pubkey())
        scheduled = ScheduledAction(
            target=date.timestamp(),
            action=action,
            poll_interval_ms=args.poll_ms,
            lookahead_ms=args.lookahead_ms,
            fire_mode=FireMode(args.fire_mode),
        )
        try:
            tx = scheduled.run()
        except KeyboardInterrupt:
            scheduled.stop()
            raise ScheduleCancelled(
                f"Cancelled after {scheduled.attempts} attempt(s)"
            ) from None
    finally:
        rpc.close()

    print(f"Success! Tx: {tx}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="candy-cli",
        description="Search, inspect and mint from candy machine v1 accounts.",
    )
    p.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    p.add_argument("--rpc-url", "-u", default=None, help="Override RPC URL (else use env).")
    p.add_argument("--timeout", type=float, default=60.0, help="RPC timeout seconds.")
    p.add_argument(
        "--keypair", "-k", default=None, help="Solana wallet keypair file (else use env)."
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    s = sub.add_parser(
        "search", help="Find config lines whose name matches a pattern."
    )
    s.add_argument("pattern", help="Regex used to match config line names.")
    s.set_defaults(func=cmd_search)

    w = sub.add_parser("wen", help="Show a candy machine's live date.")
    w.add_argument("candy_machine", help="Candy machine account to fetch.")
    w.set_defaults(func=cmd_wen)

    m = sub.add_parser(
        "mint", help="Wait for the live date, then mint until it succeeds."
    )
    m.add_argument("candy_machine", help="Candy machine account to mint for.")
    m.add_argument(
        "--poll-ms",
        type=int,
        default=DEFAULT_POLL_INTERVAL_MS,
        help="Milliseconds between clock checks / attempts.",
    )
    m.add_argument(
        "--lookahead-ms",
        type=int,
        default=DEFAULT_LOOKAHEAD_MS,
        help="Offset applied by the early/late fire modes.",
    )
    m.add_argument(
        "--fire-mode",
        choices=[mode.value for mode in FireMode],
        default=FireMode.LATE.value,
        help=(
            "at-target: fire at the live date; early: lookahead before it; "
            "late: lookahead after it (default)."
        ),
    )
    m.set_defaults(func=cmd_mint)

    return p


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    setup_logging(args.verbose)
    raise SystemExit(args.func(args))
