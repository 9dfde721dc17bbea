#!/usr/bin/env python3
"""
Stock ledger management CLI.

Usage:
    python manage.py start       Run migrations and start the API server
    python manage.py migrate     Apply pending database migrations
    python manage.py status      Show applied and pending migrations
    python manage.py verify      Check schema integrity and engine invariants
    python manage.py drain       Drain one batch of the recalc queue now
    python manage.py eod         Run the end-of-day sweep now
"""

import argparse
import asyncio
import subprocess
import sys
from datetime import date
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parent


def cmd_start(args: argparse.Namespace) -> None:
    """Start the API server (the scheduler runs inside it)."""
    uvicorn_cmd = [
        sys.executable, "-m", "uvicorn",
        "stockledger.api.main:app",
        "--host", args.host,
        "--port", str(args.port),
    ]
    if args.reload:
        uvicorn_cmd.append("--reload")

    print(f"Starting server on {args.host}:{args.port}...")
    try:
        subprocess.run(uvicorn_cmd, cwd=str(ROOT_DIR), check=False)
    except KeyboardInterrupt:
        print("\nServer stopped.")


def cmd_migrate(args: argparse.Namespace) -> None:
    """Apply pending migrations."""
    from stockledger.infrastructure.storage.sqlite.migrations.migrator import (
        initialize_database,
    )

    results = asyncio.run(initialize_database(create_backup_before=not args.no_backup))
    if not results:
        print("Database is up to date.")
    for result in results:
        status = "SUCCESS" if result.success else "FAILED"
        print(f"[{status}] v{result.version}: {result.name} ({result.execution_time_ms}ms)")
        if result.error:
            print(f"         Error: {result.error}")


def cmd_status(args: argparse.Namespace) -> None:
    """Show applied and pending migrations."""
    from stockledger.infrastructure.storage.sqlite.migrations import get_migration_status

    status = asyncio.run(get_migration_status())
    print(f"Database exists: {status['exists']}")
    print(f"Current version: {status['current_version'] or 'N/A'}")
    print(f"Applied: {', '.join(status['applied_migrations']) or '-'}")
    print(f"Pending: {', '.join(status['pending_migrations']) or '-'}")


def cmd_verify(args: argparse.Namespace) -> None:
    """Check schema integrity; exits non-zero on any FAIL."""
    from stockledger.infrastructure.storage.sqlite.migrations import verify_schema_integrity

    checks = asyncio.run(verify_schema_integrity())
    for check in checks:
        print(f"[{check['status']}] {check['check']}")
        for key, value in check.items():
            if key not in ("check", "status") and check["status"] != "PASS":
                print(f"       {key}: {value}")
    if any(check["status"] == "FAIL" for check in checks):
        sys.exit(1)


async def _run_job(name: str, target_date: date | None) -> dict:
    from stockledger.application.scheduler import Scheduler
    from stockledger.infrastructure.storage.sqlite import close_pool

    try:
        return await Scheduler().trigger(name, target_date=target_date)
    finally:
        await close_pool()


def cmd_job(args: argparse.Namespace) -> None:
    """Run a scheduler job once in this process."""
    from stockledger.config import configure_logging

    configure_logging()
    target = date.fromisoformat(args.date) if getattr(args, "date", None) else None
    summary = asyncio.run(_run_job(args.job, target))
    for key, value in summary.items():
        print(f"{key}: {value}")


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Stock ledger management CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    # start
    p_start = sub.add_parser("start", help="Start the API server")
    p_start.add_argument("--host", default="0.0.0.0", help="Bind host (default: 0.0.0.0)")
    p_start.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    p_start.add_argument("--reload", action="store_true", help="Reload on code changes")
    p_start.set_defaults(func=cmd_start)

    # migrate
    p_migrate = sub.add_parser("migrate", help="Apply pending migrations")
    p_migrate.add_argument("--no-backup", action="store_true", help="Skip backup before migrations")
    p_migrate.set_defaults(func=cmd_migrate)

    # status / verify
    sub.add_parser("status", help="Show migration status").set_defaults(func=cmd_status)
    sub.add_parser("verify", help="Verify schema integrity").set_defaults(func=cmd_verify)

    # drain
    p_drain = sub.add_parser("drain", help="Drain the recalc queue once")
    p_drain.set_defaults(func=cmd_job, job="drain")

    # eod
    p_eod = sub.add_parser("eod", help="Run the end-of-day sweep once")
    p_eod.add_argument("--date", help="Day to sweep, YYYY-MM-DD (default: yesterday)")
    p_eod.set_defaults(func=cmd_job, job="eod")

    args = parser.parse_args()
    args.func(args)


if __name__ == "__main__":
    main()
