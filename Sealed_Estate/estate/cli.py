"""
CLI entry point for the Sealed Estate record manager.

Usage:
    # List records (optionally filtered by name or beneficiary)
    python -m Sealed_Estate.estate.cli --address 0xa11ce list
    python -m Sealed_Estate.estate.cli --address 0xa11ce list --search carol

    # Create an encrypted record
    python -m Sealed_Estate.estate.cli --address 0xa11ce create \\
        --name "Family house" --beneficiary 0xcarol --condition 3 --amount 250000

    # Reveal (verified on-chain) or peek (local, advisory)
    python -m Sealed_Estate.estate.cli --address 0xa11ce reveal inheritance-...
    python -m Sealed_Estate.estate.cli --address 0xa11ce peek inheritance-...

    # Summary
    python -m Sealed_Estate.estate.cli --address 0xa11ce stats

    # Scripted end-to-end demo
    python -m Sealed_Estate.estate.cli --demo
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from typing import Optional

from Sealed_Estate.prototype import Display, main as run_demo
from Sealed_Estate.fhe_shared import config
from Sealed_Estate.fhe_shared.errors import EstateError
from Sealed_Estate.fhe_shared.types import AssetRecord
from Sealed_Estate.estate.record_store import SOURCE_SEALED
from Sealed_Estate.estate.session import EstateSession

D = Display  # shorthand


def _when(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d %H:%M")


def _print_records(session: EstateSession, records: list[AssetRecord]) -> None:
    if not records:
        print(f"  {D.DIM}No records found{D.RESET}")
        return
    rows = []
    for r in records:
        value, source = session.store.display_value(r.record_id)
        rows.append([
            r.record_id,
            r.name,
            r.beneficiary,
            r.trigger_condition,
            _when(r.timestamp),
            "sealed" if source == SOURCE_SEALED else f"{value} ({source})",
        ])
    D.table(["Id", "Name", "Beneficiary", "Condition", "Created", "Value"], rows, col_width=22)


def _print_stats(session: EstateSession) -> None:
    stats = session.stats()
    D.section("Estate summary")
    D.stat_row("Total assets", stats.total_assets)
    D.stat_row("Verified", stats.verified_assets)
    D.stat_row("Pending verification", stats.pending_verification)
    D.stat_row("Total verified value", stats.total_value)


# ─── Commands ───

async def run_command(args: argparse.Namespace, session: EstateSession) -> int:
    """Execute one parsed command against a set-up session. Returns an exit code."""
    try:
        await session.connect(args.address)

        if args.command == "list":
            _print_records(session, session.records(args.search))

        elif args.command == "create":
            record_id = await session.create_record(
                args.name, args.beneficiary, args.condition, args.amount,
            )
            D.success(f"Created {record_id}")

        elif args.command == "reveal":
            value = await session.reveal_value(args.record_id)
            if value is None:
                record = session.store.get(args.record_id)
                value = record.revealed_value if record is not None else None
                D.arrow(f"Already verified by another party → {value}")
            else:
                D.success(f"{args.record_id} → {value} {D.DIM}(verified on-chain){D.RESET}")

        elif args.command == "peek":
            value = await session.peek_value(args.record_id)
            D.arrow(f"{args.record_id} → {value} {D.DIM}(local decrypt, not verified){D.RESET}")

        elif args.command == "stats":
            _print_stats(session)

        elif args.command == "health":
            h = session.health()
            D.stat_row("Ledger connected", h.ledger_connected)
            D.stat_row("FHE store connected", h.fhe_connected)
            D.stat_row("Records", h.record_count)
            D.stat_row("Ciphertexts", h.ciphertext_count)

    except EstateError as e:
        D.error(str(e))
        return 1
    return 0


async def _run(args: argparse.Namespace) -> int:
    session = EstateSession()
    try:
        await session.setup()
    except EstateError as e:
        D.error(str(e))
        return 1
    try:
        return await run_command(args, session)
    finally:
        await session.teardown()


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Sealed Estate — FHE-encrypted inheritance records",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
examples:
  # List and search
  python -m Sealed_Estate.estate.cli --address 0xa11ce list
  python -m Sealed_Estate.estate.cli --address 0xa11ce list --search carol

  # Create (amount is encrypted before it leaves this process)
  python -m Sealed_Estate.estate.cli --address 0xa11ce create --name Savings \\
      --beneficiary 0xdave --condition 1 --amount 42000

  # Reveal with a decryption proof, or peek locally
  python -m Sealed_Estate.estate.cli --address 0xa11ce reveal <record-id>
  python -m Sealed_Estate.estate.cli --address 0xa11ce peek <record-id>

  # Scripted demo
  python -m Sealed_Estate.estate.cli --demo
        """,
    )
    parser.add_argument("--address", help="Wallet address of the record holder")
    parser.add_argument(
        "--demo",
        action="store_true",
        help="Run the scripted end-to-end demo",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log orchestration details to stderr",
    )

    sub = parser.add_subparsers(dest="command")

    p_list = sub.add_parser("list", help="List records")
    p_list.add_argument("--search", default="", help="Filter by name or beneficiary")

    p_create = sub.add_parser("create", help="Create an encrypted record")
    p_create.add_argument("--name", required=True, help="Asset name")
    p_create.add_argument("--beneficiary", required=True, help="Beneficiary address or label")
    p_create.add_argument(
        "--condition",
        type=int,
        required=True,
        help=f"Trigger condition code ({config.CONDITION_CODE_MIN}-{config.CONDITION_CODE_MAX})",
    )
    p_create.add_argument("--amount", type=int, required=True, help="Amount to encrypt")

    p_reveal = sub.add_parser("reveal", help="Verify and reveal a record's amount")
    p_reveal.add_argument("record_id")

    p_peek = sub.add_parser("peek", help="Decrypt locally (advisory, unverified)")
    p_peek.add_argument("record_id")

    sub.add_parser("stats", help="Show the estate summary")
    sub.add_parser("health", help="Check the ledger and FHE stores")

    return parser.parse_args(argv)


def main() -> None:
    args = parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    if args.demo:
        asyncio.run(run_demo())
        return

    if not args.address or not args.command:
        print(f"{D.RED}Error: --address and a command are required{D.RESET}")
        print(f"\n  Quick start:")
        print(f"    python -m Sealed_Estate.estate.cli --demo")
        print(f"    python -m Sealed_Estate.estate.cli --address 0xa11ce list")
        sys.exit(1)

    sys.exit(asyncio.run(_run(args)))


if __name__ == "__main__":
    main()
