#!/usr/bin/env python3
"""
Sealed Estate Demo Runner — Preflight checks + prototype execution.

Usage:
    python demo.py              Run the 4-phase estate lifecycle demo
    python demo.py --check      Only run preflight checks, don't start demo
    python demo.py --tests      Run the test suite (fakeredis, no Docker needed)
    python demo.py --serve      Start the HTTP API with uvicorn

Requires:
    - pip install -e ".[test]"
    - Redis 7 for the demo and the API:  docker run -d -p 6379:6379 redis:7
"""

import sys
import argparse
import subprocess
import socket

# ─── ANSI helpers ───

RESET  = "\033[0m"
BOLD   = "\033[1m"
DIM    = "\033[2m"
RED    = "\033[91m"
GREEN  = "\033[92m"
YELLOW = "\033[93m"
CYAN   = "\033[96m"

def ok(msg):   print(f"  {GREEN}✓{RESET} {msg}")
def fail(msg): print(f"  {RED}✗{RESET} {msg}")
def info(msg): print(f"  {CYAN}→{RESET} {msg}")
def warn(msg): print(f"  {YELLOW}!{RESET} {msg}")


# ─── Preflight checks ───

def check_port(host, port, label):
    """Check if a TCP port is accepting connections."""
    try:
        with socket.create_connection((host, port), timeout=2):
            ok(f"{label} is reachable at {host}:{port}")
            return True
    except (ConnectionRefusedError, TimeoutError, OSError):
        fail(f"{label} is NOT reachable at {host}:{port}")
        return False


def check_import(module, label):
    """Check if a Python module can be imported."""
    try:
        __import__(module)
        ok(f"{label} importable")
        return True
    except ImportError as e:
        fail(f"{label} import failed: {e}")
        return False


def preflight(need_redis=True):
    """Run all preflight checks. Returns True if everything passes."""
    print(f"\n{CYAN}{BOLD}  Preflight Checks{RESET}")
    print(f"  {'─' * 40}\n")

    results = []

    # Python packages
    info("Checking Python packages…")
    results.append(check_import("redis", "redis-py"))
    results.append(check_import("nacl", "pynacl"))
    results.append(check_import("fastapi", "fastapi"))
    results.append(check_import("pydantic", "pydantic"))

    for module, label in (("fakeredis", "fakeredis"), ("httpx", "httpx"), ("uvicorn", "uvicorn")):
        try:
            __import__(module)
            ok(f"{label} importable")
        except ImportError:
            warn(f"{label} not found — only needed for tests or --serve")

    print()

    # Infrastructure
    if need_redis:
        info("Checking Redis…")
        from Sealed_Estate.fhe_shared import config
        results.append(check_port(config.REDIS_HOST, config.REDIS_PORT, "Redis"))
        print()

    # Sealed Estate package
    info("Checking Sealed Estate package…")
    results.append(check_import("Sealed_Estate.fhe_shared.fhe_engine", "FheEngine"))
    results.append(check_import("Sealed_Estate.fhe_ledger.contract", "EstateContract"))
    results.append(check_import("Sealed_Estate.estate.session", "EstateSession"))
    results.append(check_import("Sealed_Estate.fhe_server.api", "HTTP API"))

    print()
    all_ok = all(results)
    if all_ok:
        ok(f"{BOLD}All preflight checks passed{RESET}")
    else:
        fail(f"{BOLD}Some checks failed — fix the issues above before running the demo{RESET}")

    print()
    return all_ok


# ─── Test runner ───

def run_tests():
    """Run the test suite package by package."""
    print(f"\n{CYAN}{BOLD}  Running Test Suite{RESET}")
    print(f"  {'─' * 40}\n")

    suites = [
        ("Shared (FHE engine)", "Sealed_Estate/fhe_shared/tests/"),
        ("Ledger (contract)", "Sealed_Estate/fhe_ledger/tests/"),
        ("Estate (orchestrators + session)", "Sealed_Estate/estate/tests/"),
        ("Server (HTTP API)", "Sealed_Estate/fhe_server/tests/"),
    ]

    total_failed = 0

    for label, path in suites:
        print(f"  {BOLD}── {label} ──{RESET}")
        result = subprocess.run(
            [sys.executable, "-m", "pytest", path, "-v", "--tb=short"],
            capture_output=False,
        )

        if result.returncode == 0:
            ok(f"{label}: all passed")
        else:
            fail(f"{label}: some tests failed (exit code {result.returncode})")
            total_failed += 1

        print()

    return total_failed == 0


# ─── Prototype demo ───

def run_demo():
    """Run the 4-phase prototype demo."""
    import asyncio
    from Sealed_Estate.prototype import main
    asyncio.run(main())


def run_server():
    """Serve the HTTP API on localhost:8000."""
    import uvicorn
    uvicorn.run("Sealed_Estate.fhe_server.api:app", host="127.0.0.1", port=8000)


# ─── Entry point ───

def parse_args():
    parser = argparse.ArgumentParser(
        description="Sealed Estate Prototype Demo Runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
examples:
  python demo.py              Run full demo (preflight + 4-phase lifecycle)
  python demo.py --check      Only run preflight checks
  python demo.py --tests      Run the test suite
  python demo.py --all        Run tests first, then demo
  python demo.py --serve      Start the HTTP API on :8000
        """,
    )
    parser.add_argument("--check", action="store_true", help="Only run preflight checks")
    parser.add_argument("--tests", action="store_true", help="Run the test suite")
    parser.add_argument("--all", action="store_true", help="Run tests first, then demo")
    parser.add_argument("--serve", action="store_true", help="Start the HTTP API")
    return parser.parse_args()


def main():
    args = parse_args()

    print(f"""
{CYAN}{BOLD}    ┌─────────────────────────────────────────────────┐
    │   Sealed Estate — FHE Inheritance Records       │
    │   Encrypted Asset Lifecycle Demo Runner         │
    └─────────────────────────────────────────────────┘{RESET}
    """)

    if args.check:
        ok_flag = preflight()
        sys.exit(0 if ok_flag else 1)

    if args.tests:
        preflight(need_redis=False)
        ok_flag = run_tests()
        sys.exit(0 if ok_flag else 1)

    if args.all:
        if not preflight():
            fail("Preflight failed — aborting")
            sys.exit(1)
        if not run_tests():
            fail("Tests failed — aborting demo")
            sys.exit(1)
        print(f"\n{CYAN}{BOLD}  All tests passed — starting demo…{RESET}\n")
        run_demo()
        sys.exit(0)

    if args.serve:
        if not preflight():
            fail("Preflight failed — fix the issues above first")
            sys.exit(1)
        run_server()
        return

    # Default: preflight + demo
    if not preflight():
        fail("Preflight failed — fix the issues above first")
        print(f"\n  {DIM}Hint: docker run -d -p 6379:6379 redis:7{RESET}\n")
        sys.exit(1)

    run_demo()


if __name__ == "__main__":
    main()
