"""
Sealed Estate Prototype Demo — End-to-end 4-phase lifecycle.

Requires Redis 7:
    docker run -d -p 6379:6379 redis:7

Run:
    python -m Sealed_Estate.prototype
"""

import asyncio

from Sealed_Estate.fhe_shared import config
from Sealed_Estate.fhe_shared.errors import InvalidInputError
from Sealed_Estate.fhe_shared.types import AssetRecord, TransactionStatus
from Sealed_Estate.fhe_ledger.connection import close_all, create_fhe_client, create_ledger_client
from Sealed_Estate.estate.record_store import SOURCE_ADVISORY, SOURCE_VERIFIED
from Sealed_Estate.estate.session import EstateSession
from Sealed_Estate.estate.wallet import WalletSession


# ─── ANSI Display Helpers ───

class Display:
    """Terminal formatting with ANSI colors — zero external dependencies."""

    RESET   = "\033[0m"
    BOLD    = "\033[1m"
    DIM     = "\033[2m"

    RED     = "\033[91m"
    GREEN   = "\033[92m"
    YELLOW  = "\033[93m"
    BLUE    = "\033[94m"
    MAGENTA = "\033[95m"
    CYAN    = "\033[96m"
    WHITE   = "\033[97m"

    PHASE_COLORS = {
        "pending": YELLOW,
        "success": GREEN,
        "error":   RED,
    }

    PHASE_ICONS = {
        "pending": "…",
        "success": "✓",
        "error":   "✗",
    }

    @classmethod
    def phase_header(cls, number: int, title: str) -> None:
        line = "═" * 60
        print(f"\n{cls.CYAN}{cls.BOLD}{line}")
        print(f"  PHASE {number} — {title}")
        print(f"{line}{cls.RESET}\n")

    @classmethod
    def arrow(cls, msg: str) -> None:
        print(f"  {cls.BLUE}→{cls.RESET} {msg}")

    @classmethod
    def success(cls, msg: str) -> None:
        print(f"  {cls.GREEN}✓{cls.RESET} {msg}")

    @classmethod
    def error(cls, msg: str) -> None:
        print(f"  {cls.RED}✗{cls.RESET} {msg}")

    @classmethod
    def stat_row(cls, label: str, value, width: int = 28) -> None:
        print(f"  {label:<{width}} {cls.BOLD}{value}{cls.RESET}")

    @classmethod
    def verified_label(cls, verified: bool) -> str:
        if verified:
            return f"{cls.GREEN}{cls.BOLD}VERIFIED{cls.RESET}"
        return f"{cls.YELLOW}{cls.BOLD}PENDING{cls.RESET}"

    @classmethod
    def value_label(cls, value, source: str) -> str:
        if source == SOURCE_VERIFIED:
            return f"{value} {cls.DIM}(verified on-chain){cls.RESET}"
        if source == SOURCE_ADVISORY:
            return f"{value} {cls.DIM}(local decrypt){cls.RESET}"
        return f"{cls.DIM}sealed euint64{cls.RESET}"

    @classmethod
    def status_line(cls, status: TransactionStatus) -> None:
        if not status.visible:
            return
        color = cls.PHASE_COLORS.get(status.phase, cls.WHITE)
        icon = cls.PHASE_ICONS.get(status.phase, "?")
        print(f"    {color}{icon} {status.message}{cls.RESET}")

    @classmethod
    def table(cls, headers: list[str], rows: list[list], col_width: int = 14) -> None:
        header_line = "".join(f"{h:<{col_width}}" for h in headers)
        print(f"\n  {cls.BOLD}{header_line}{cls.RESET}")
        print(f"  {'─' * (col_width * len(headers))}")
        for row in rows:
            cells = []
            for cell in row:
                s = str(cell)
                if len(s) >= col_width:
                    s = s[:col_width - 2] + "…"
                cells.append(f"{s:<{col_width}}")
            print(f"  {''.join(cells)}")
        print()

    @classmethod
    def section(cls, title: str) -> None:
        print(f"\n  {cls.MAGENTA}{cls.BOLD}── {title} ──{cls.RESET}")

    @classmethod
    def banner(cls) -> None:
        print(f"""
{cls.CYAN}{cls.BOLD}
    ╔═══════════════════════════════════════════════════╗
    ║     Sealed Estate — FHE Inheritance Demo          ║
    ║     Encrypted Asset Lifecycle Prototype           ║
    ╚═══════════════════════════════════════════════════╝
{cls.RESET}""")


def record_rows(session: EstateSession, records: list[AssetRecord]) -> list[list]:
    rows = []
    for r in records:
        value, source = session.store.display_value(r.record_id)
        rows.append([
            r.record_id[-14:],
            r.name,
            r.beneficiary,
            r.trigger_condition,
            Display.verified_label(r.is_verified),
            value if value is not None else "sealed",
            source,
        ])
    return rows


# ─── Prototype Logic ───

CREATOR_ADDRESS = "0x00000000000000000000000000000000000a11ce"
OTHER_ADDRESS = "0x0000000000000000000000000000000000000b0b"

ESTATE_PLAN = [
    ("Family house", "0xbeneficiary-carol", 3, 250_000),
    ("Savings", "0xbeneficiary-dave", 1, 42_000),
    ("Art collection", "0xbeneficiary-carol", 2, 9_000),
]


async def phase1_connect(session: EstateSession) -> None:
    """CONNECT: bind wallet → initialize FHE → first refresh."""
    Display.phase_header(1, "CONNECT — Wallet Session & FHE Init")
    records = await session.connect(CREATOR_ADDRESS)
    Display.success(f"Wallet {CREATOR_ADDRESS[:10]}… connected")
    Display.success(f"FHE engine initialized, contract {config.CONTRACT_ADDRESS[:10]}…")
    Display.arrow(f"{len(records)} records on the ledger")


async def phase2_create(session: EstateSession) -> list[str]:
    """CREATE: encrypt each amount → submit → confirm → refresh."""
    Display.phase_header(2, "CREATE — Encrypted Estate Records")

    created = []
    for name, beneficiary, condition, amount in ESTATE_PLAN:
        record_id = await session.create_record(name, beneficiary, condition, amount)
        created.append(record_id)
        Display.success(f"{name:<16} amount=<sealed>  id={record_id[-14:]}")

    Display.section("Rejected before any encryption")
    for bad in (-5, 12.5):
        try:
            await session.create_record("Invalid", "0xnobody", 1, bad)
        except InvalidInputError as e:
            Display.error(str(e))

    Display.table(
        ["Id", "Name", "Beneficiary", "Condition", "Verified", "Value", "Source"],
        record_rows(session, session.records()),
    )
    return created


async def phase3_reveal(session: EstateSession, other: EstateSession, created: list[str]) -> None:
    """REVEAL: local peek → proof handshake → fast path → verified elsewhere."""
    Display.phase_header(3, "REVEAL — Decryption Proof Handshake")

    first, second, third = created

    Display.section("Local decrypt (advisory)")
    await session.peek_value(first)
    shown, source = session.store.display_value(first)
    Display.arrow(f"peek → {Display.value_label(shown, source)}")

    Display.section("Proof handshake")
    value = await session.reveal_value(first)
    shown, source = session.store.display_value(first)
    Display.success(f"reveal → {value}  now {Display.value_label(shown, source)}")

    Display.section("Fast path (already verified)")
    value = await session.reveal_value(first)
    Display.success(f"reveal again → {value} without a second proof")

    Display.section("Verified by another party")
    await other.reveal_value(second)
    value = await session.reveal_value(second)
    Display.arrow(f"reveal → {value}  (read from the contract, no proof needed)")

    Display.arrow(f"{third[-14:]} stays sealed")


async def phase4_stats(session: EstateSession) -> None:
    """STATS: derived summary over the refreshed store."""
    Display.phase_header(4, "STATS — Derived Summary")
    await session.refresh()
    stats = session.stats()
    Display.stat_row("Total assets", stats.total_assets)
    Display.stat_row("Verified", stats.verified_assets)
    Display.stat_row("Pending verification", stats.pending_verification)
    Display.stat_row("Total verified value", stats.total_value)

    Display.table(
        ["Id", "Name", "Beneficiary", "Condition", "Verified", "Value", "Source"],
        record_rows(session, session.records()),
    )


async def main():
    Display.banner()

    # ─── Infrastructure ───
    Display.arrow("Connecting to Redis…")
    ledger_client = create_ledger_client()
    fhe_client = create_fhe_client()

    Display.arrow("Flushing demo databases…")
    ledger_client.flushdb()
    fhe_client.flushdb()
    Display.success("Infrastructure ready\n")

    session = EstateSession(WalletSession(), ledger_client=ledger_client, fhe_client=fhe_client)
    other = EstateSession(WalletSession(), ledger_client=ledger_client, fhe_client=fhe_client)
    session.subscribe_status(Display.status_line)

    try:
        await session.setup()
        await other.setup()
        await other.connect(OTHER_ADDRESS)

        # Phase 1: Connect
        await phase1_connect(session)

        # Phase 2: Create
        created = await phase2_create(session)

        # Phase 3: Reveal
        await phase3_reveal(session, other, created)

        # Phase 4: Stats
        await phase4_stats(session)

        print(f"\n{Display.GREEN}{Display.BOLD}  ══ Demo complete ══{Display.RESET}\n")

    finally:
        await other.teardown()
        await session.teardown()
        close_all(ledger_client, fhe_client)


if __name__ == "__main__":
    asyncio.run(main())
