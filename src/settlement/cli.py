"""Settlement CLI — command-line interface for a persisted contract.

Usage:
    python -m settlement.cli init --settings deploy.json
    python -m settlement.cli mint --account alice --amount 5000000
    python -m settlement.cli transfer --sender alice --payee bob --amount 1000000 \\
        --deadline 1900000000 --nonce 0 --value 1000000
    python -m settlement.cli preview --amount 1000000 --payer-pays
    python -m settlement.cli nonce --account alice
    python -m settlement.cli status
    python -m settlement.cli submit --sender owner --json '{"type": "WithdrawAll", "to": "owner"}'

State lives in a data directory (events.jsonl + state.json). Every
command prints JSON and exits 0 on success, 1 on rejection.
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Optional

from settlement.config import DeploymentSettings
from settlement.models.errors import SettlementError
from settlement.models.messages import message_from_dict
from settlement.persistence.event_log import EventLog
from settlement.persistence.state_store import StateStore
from settlement.service import ServiceResult, SettlementService

DEFAULT_DATA = Path("data")

logger = logging.getLogger(__name__)


def _stores(data_dir: Path) -> tuple[EventLog, StateStore]:
    data_dir.mkdir(parents=True, exist_ok=True)
    return (
        EventLog(storage_path=data_dir / "events.jsonl"),
        StateStore(storage_path=data_dir / "state.json"),
    )


def _make_service(data_dir: Path) -> Optional[SettlementService]:
    """Reload the contract from the data directory, or None if absent."""
    state_path = data_dir / "state.json"
    if not state_path.exists():
        print(
            f"No contract in {data_dir}; run 'settlement init' first",
            file=sys.stderr,
        )
        return None
    event_log, state_store = _stores(data_dir)
    return SettlementService(event_log=event_log, state_store=state_store)


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True))


def _report(result: ServiceResult) -> int:
    _emit(dataclasses.asdict(result))
    if result.success:
        return 0
    print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def cmd_init(args: argparse.Namespace) -> int:
    if (args.data_dir / "state.json").exists():
        print(f"Contract already initialized in {args.data_dir}", file=sys.stderr)
        return 1
    try:
        if args.settings is not None:
            settings = DeploymentSettings.from_json(args.settings)
        else:
            settings = DeploymentSettings.from_env(env_file=args.env_file)
    except (OSError, ValueError) as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1
    event_log, state_store = _stores(args.data_dir)
    service = SettlementService(settings, event_log=event_log, state_store=state_store)
    _emit(service.status())
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    service = _make_service(args.data_dir)
    if service is None:
        return 1
    _emit(service.status())
    return 0


def cmd_preview(args: argparse.Namespace) -> int:
    service = _make_service(args.data_dir)
    if service is None:
        return 1
    try:
        quote = service.preview_payment(args.amount, args.payer_pays)
    except SettlementError as e:
        _emit({"success": False, "errors": [e.message], "data": {"code": e.code.value}})
        return 1
    _emit(quote.to_dict())
    return 0


def cmd_nonce(args: argparse.Namespace) -> int:
    service = _make_service(args.data_dir)
    if service is None:
        return 1
    _emit({"account": args.account, "nonce": service.nonce_of(args.account)})
    return 0


def cmd_balance(args: argparse.Namespace) -> int:
    service = _make_service(args.data_dir)
    if service is None:
        return 1
    _emit({"account": args.account, "balance": service.balance_of(args.account)})
    return 0


def cmd_mint(args: argparse.Namespace) -> int:
    service = _make_service(args.data_dir)
    if service is None:
        return 1
    return _report(service.mint(args.account, args.amount))


def cmd_fund(args: argparse.Namespace) -> int:
    service = _make_service(args.data_dir)
    if service is None:
        return 1
    return _report(service.fund(args.sender, args.amount))


def cmd_transfer(args: argparse.Namespace) -> int:
    service = _make_service(args.data_dir)
    if service is None:
        return 1
    result = service.transfer(
        sender=args.sender,
        payer=args.payer,
        payee=args.payee,
        amount=args.amount,
        deadline=args.deadline,
        nonce=args.nonce,
        payer_pays_commission=args.payer_pays,
        partner_wallet=args.partner,
        attached_value=args.value,
        now=args.now,
    )
    return _report(result)


def cmd_set_commission(args: argparse.Namespace) -> int:
    service = _make_service(args.data_dir)
    if service is None:
        return 1
    return _report(service.set_platform_commission_bps(args.sender, args.bps, args.value))


def cmd_withdraw_all(args: argparse.Namespace) -> int:
    service = _make_service(args.data_dir)
    if service is None:
        return 1
    return _report(service.withdraw_all(args.sender, args.to, args.value))


def cmd_register_partner(args: argparse.Namespace) -> int:
    service = _make_service(args.data_dir)
    if service is None:
        return 1
    return _report(service.register_partner_share(args.sender, args.wallet, args.bps))


def cmd_unregister_partner(args: argparse.Namespace) -> int:
    service = _make_service(args.data_dir)
    if service is None:
        return 1
    return _report(service.unregister_partner_share(args.sender, args.wallet))


def cmd_submit(args: argparse.Namespace) -> int:
    service = _make_service(args.data_dir)
    if service is None:
        return 1
    try:
        message = message_from_dict(json.loads(args.json))
    except ValueError as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1
    return _report(service.submit(args.sender, message, args.value, args.now))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="settlement",
        description="Signed-payment settlement engine CLI",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=Path(os.environ.get("SETTLEMENT_DATA_DIR", DEFAULT_DATA)),
        help="Directory holding events.jsonl and state.json (default: data/)",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("SETTLEMENT_LOG_LEVEL", "WARNING"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Logging level (default: WARNING)",
    )
    sub = parser.add_subparsers(dest="command")

    # init
    p_init = sub.add_parser("init", help="Deploy a new contract into the data directory")
    p_init.add_argument("--settings", type=Path, help="JSON deployment settings file")
    p_init.add_argument("--env-file", type=Path, help=".env file with SETTLEMENT_* values")

    # queries
    sub.add_parser("status", help="Show contract status")

    p_preview = sub.add_parser("preview", help="Preview commission for an amount")
    p_preview.add_argument("--amount", type=int, required=True, help="Amount in base units")
    p_preview.add_argument(
        "--payer-pays", action="store_true", help="Commission is added on top of the amount",
    )

    p_nonce = sub.add_parser("nonce", help="Show the next expected nonce for an account")
    p_nonce.add_argument("--account", required=True)

    p_balance = sub.add_parser("balance", help="Show an account balance")
    p_balance.add_argument("--account", required=True)

    # value
    p_mint = sub.add_parser("mint", help="Credit an external account")
    p_mint.add_argument("--account", required=True)
    p_mint.add_argument("--amount", type=int, required=True)

    p_fund = sub.add_parser("fund", help="Top up the contract from an account")
    p_fund.add_argument("--sender", required=True)
    p_fund.add_argument("--amount", type=int, required=True)

    # messages
    p_transfer = sub.add_parser("transfer", help="Settle a payment")
    p_transfer.add_argument("--sender", required=True, help="Authenticated sender")
    p_transfer.add_argument("--payer", help="Declared payer (default: sender)")
    p_transfer.add_argument("--payee", required=True)
    p_transfer.add_argument("--amount", type=int, required=True)
    p_transfer.add_argument("--deadline", type=int, required=True, help="Unix seconds")
    p_transfer.add_argument("--nonce", type=int, required=True)
    p_transfer.add_argument("--payer-pays", action="store_true")
    p_transfer.add_argument("--partner", help="Partner wallet")
    p_transfer.add_argument("--value", type=int, default=0, help="Attached value")
    p_transfer.add_argument("--now", type=int, help="Override the clock (Unix seconds)")

    p_rate = sub.add_parser("set-commission", help="Change the platform commission")
    p_rate.add_argument("--sender", required=True)
    p_rate.add_argument("--bps", type=int, required=True)
    p_rate.add_argument("--value", type=int, default=0)

    p_withdraw = sub.add_parser("withdraw-all", help="Withdraw everything above the reserve")
    p_withdraw.add_argument("--sender", required=True)
    p_withdraw.add_argument("--to", required=True)
    p_withdraw.add_argument("--value", type=int, default=0)

    p_reg = sub.add_parser("register-partner", help="Set a partner's commission share")
    p_reg.add_argument("--sender", required=True)
    p_reg.add_argument("--wallet", required=True)
    p_reg.add_argument("--bps", type=int, required=True, help="Share in bps; 0 removes")

    p_unreg = sub.add_parser("unregister-partner", help="Remove a partner's share")
    p_unreg.add_argument("--sender", required=True)
    p_unreg.add_argument("--wallet", required=True)

    p_submit = sub.add_parser("submit", help="Submit a message in its JSON wire form")
    p_submit.add_argument("--sender", required=True)
    p_submit.add_argument("--json", required=True, help='e.g. {"type": "WithdrawAll", "to": "owner"}')
    p_submit.add_argument("--value", type=int, default=0, help="Attached value")
    p_submit.add_argument("--now", type=int, help="Override the clock (Unix seconds)")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "init": cmd_init,
        "status": cmd_status,
        "preview": cmd_preview,
        "nonce": cmd_nonce,
        "balance": cmd_balance,
        "mint": cmd_mint,
        "fund": cmd_fund,
        "transfer": cmd_transfer,
        "set-commission": cmd_set_commission,
        "withdraw-all": cmd_withdraw_all,
        "register-partner": cmd_register_partner,
        "unregister-partner": cmd_unregister_partner,
        "submit": cmd_submit,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    try:
        return handler(args)
    except ValueError as e:
        # Corrupt or tampered data directory.
        logger.error("Cannot load contract from %s: %s", args.data_dir, e)
        print(f"Failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
