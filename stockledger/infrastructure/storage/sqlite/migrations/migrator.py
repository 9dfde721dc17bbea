"""
Versioned schema migrations for the snapshot database.

Files named vNNN_name.sql in this directory are applied in version order
and recorded in schema_migrations with a checksum. An applied file whose
content later changes stops start-up instead of being silently skipped.
"""

import hashlib
import re
import shutil
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite

from stockledger.config import get_logger, get_settings
from stockledger.core.exceptions import ConfigurationError

logger = get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).parent

_FILENAME = re.compile(r"v(\d+)_(.+)\.sql")

# Tables owned by the engine and the read-side ledger copies it sums
REQUIRED_TABLES = [
    "schema_migrations",
    "stock_daily_snapshots",
    "recalc_queue",
    "job_runs",
    "companies",
    "beginning_balances",
    "incoming_items",
    "outgoing_items",
    "material_usage_items",
    "production_items",
    "adjustment_items",
    "scrap_mutations",
]

# Upserts and queue coalescing rely on these natural keys being unique
REQUIRED_UNIQUE_KEYS = {
    "stock_daily_snapshots": ("company_id", "item_type", "item_code", "snapshot_date"),
    "recalc_queue": ("company_id", "item_type", "item_code", "recalc_date"),
}

_MIGRATIONS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    version TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    checksum TEXT NOT NULL,
    execution_time_ms INTEGER,
    applied_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
)
"""


@dataclass
class MigrationInfo:
    """One migration file on disk."""

    version: str
    name: str
    path: Path
    checksum: str

    @classmethod
    def from_file(cls, path: Path) -> "MigrationInfo":
        match = _FILENAME.fullmatch(path.name)
        if not match:
            raise ValueError(f"Invalid migration filename: {path.name}")

        checksum = hashlib.sha256(path.read_bytes()).hexdigest()[:16]
        return cls(version=match.group(1), name=match.group(2), path=path, checksum=checksum)

    def read_sql(self) -> str:
        return self.path.read_text(encoding="utf-8")


@dataclass
class MigrationResult:
    version: str
    name: str
    success: bool
    execution_time_ms: int
    error: str | None = None


def discover_migrations(directory: Path = MIGRATIONS_DIR) -> list[MigrationInfo]:
    """Migration files in version order; misnamed files are skipped."""
    migrations = []
    for path in sorted(directory.glob("v*.sql")):
        try:
            migrations.append(MigrationInfo.from_file(path))
        except ValueError as e:
            logger.warning("skipping_invalid_migration", path=str(path), error=str(e))
    return migrations


async def get_applied_migrations(conn: aiosqlite.Connection) -> dict[str, str]:
    """Applied versions mapped to the checksum recorded when they ran."""
    try:
        cursor = await conn.execute("SELECT version, checksum FROM schema_migrations")
    except aiosqlite.OperationalError:
        return {}
    return {row[0]: row[1] for row in await cursor.fetchall()}


async def get_current_version(conn: aiosqlite.Connection) -> str | None:
    applied = await get_applied_migrations(conn)
    return max(applied) if applied else None


def pending_migrations(
    discovered: list[MigrationInfo], applied: dict[str, str]
) -> list[MigrationInfo]:
    """
    Migrations not yet applied.

    Raises:
        ConfigurationError: An applied migration file was edited afterwards.
    """
    drifted = [
        m.version
        for m in discovered
        if m.version in applied and applied[m.version] != m.checksum
    ]
    if drifted:
        raise ConfigurationError(
            f"Applied migrations changed on disk: {', '.join(drifted)}",
            code="MIGRATION_CHECKSUM_MISMATCH",
            details={"versions": drifted},
        )
    return [m for m in discovered if m.version not in applied]


async def apply_migration(
    conn: aiosqlite.Connection, migration: MigrationInfo
) -> MigrationResult:
    """Run one migration script and record it."""
    logger.info("applying_migration", version=migration.version, name=migration.name)
    started = time.perf_counter()

    try:
        await conn.executescript(migration.read_sql())
        elapsed = int((time.perf_counter() - started) * 1000)
        await conn.execute(
            """
            INSERT INTO schema_migrations (version, name, checksum, execution_time_ms)
            VALUES (?, ?, ?, ?)
            """,
            (migration.version, migration.name, migration.checksum, elapsed),
        )
        await conn.commit()
    except aiosqlite.Error as e:
        await conn.rollback()
        logger.error(
            "migration_failed", version=migration.version, name=migration.name, error=str(e)
        )
        return MigrationResult(
            version=migration.version,
            name=migration.name,
            success=False,
            execution_time_ms=int((time.perf_counter() - started) * 1000),
            error=str(e),
        )

    logger.info("migration_applied", version=migration.version, execution_time_ms=elapsed)
    return MigrationResult(
        version=migration.version, name=migration.name, success=True, execution_time_ms=elapsed
    )


def create_backup(db_path: Path) -> Path:
    """Copy the database file aside before migrating it."""
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    backup_path = db_path.with_suffix(f".backup_{stamp}.db")
    shutil.copy2(db_path, backup_path)
    logger.info("database_backup_created", backup_path=str(backup_path))
    return backup_path


def restore_backup(db_path: Path, backup_path: Path) -> None:
    shutil.copy2(backup_path, db_path)
    logger.info("database_restored_from_backup", backup_path=str(backup_path))


async def initialize_database(
    db_path: Path | None = None,
    create_backup_before: bool = True,
) -> list[MigrationResult]:
    """
    Bring the database up to the latest schema.

    A backup is taken only when there is something to apply, and removed
    again once every pending migration succeeded. Application stops at the
    first failing migration.

    Returns:
        Results of the migrations that were attempted (empty when up to date).
    """
    db_path = db_path or get_settings().storage.db_path
    db_path.parent.mkdir(parents=True, exist_ok=True)
    existed = db_path.exists()

    results: list[MigrationResult] = []
    backup_path: Path | None = None

    try:
        async with aiosqlite.connect(db_path) as conn:
            await conn.execute("PRAGMA journal_mode=WAL")
            await conn.execute(_MIGRATIONS_TABLE_SQL)
            await conn.commit()

            todo = pending_migrations(discover_migrations(), await get_applied_migrations(conn))
            if not todo:
                logger.debug("database_up_to_date", db_path=str(db_path))
                return results

            if create_backup_before and existed:
                backup_path = create_backup(db_path)

            for migration in todo:
                result = await apply_migration(conn, migration)
                results.append(result)
                if not result.success:
                    break

    except Exception as e:
        logger.error("database_initialization_failed", db_path=str(db_path), error=str(e))
        if backup_path is not None and backup_path.exists():
            restore_backup(db_path, backup_path)
        raise

    if backup_path is not None and all(r.success for r in results):
        backup_path.unlink()

    logger.info(
        "database_initialized",
        db_path=str(db_path),
        applied=[r.version for r in results if r.success],
    )
    return results


run_migrations = initialize_database


async def get_migration_status(db_path: Path | None = None) -> dict[str, Any]:
    db_path = db_path or get_settings().storage.db_path
    discovered = discover_migrations()

    if not db_path.exists():
        return {
            "exists": False,
            "current_version": None,
            "applied_migrations": [],
            "pending_migrations": [m.version for m in discovered],
            "total_migrations": len(discovered),
        }

    async with aiosqlite.connect(db_path) as conn:
        applied = await get_applied_migrations(conn)

    return {
        "exists": True,
        "current_version": max(applied) if applied else None,
        "applied_migrations": sorted(applied),
        "pending_migrations": [m.version for m in discovered if m.version not in applied],
        "total_migrations": len(discovered),
    }


async def _unique_keys(conn: aiosqlite.Connection, table: str) -> set[tuple[str, ...]]:
    keys = set()
    cursor = await conn.execute(f"PRAGMA index_list({table})")
    for index in await cursor.fetchall():
        # (seq, name, unique, origin, partial)
        if not index[2]:
            continue
        info = await conn.execute(f"PRAGMA index_info({index[1]})")
        keys.add(tuple(col[2] for col in await info.fetchall()))
    return keys


async def verify_schema_integrity(db_path: Path | None = None) -> list[dict[str, Any]]:
    """
    Check the file, the tables and the invariants the engine relies on.

    Each check is a dict with "check", "status" (PASS/FAIL/WARN) and
    check-specific fields.
    """
    db_path = db_path or get_settings().storage.db_path
    checks: list[dict[str, Any]] = []

    async with aiosqlite.connect(db_path) as conn:
        cursor = await conn.execute("PRAGMA integrity_check")
        integrity = (await cursor.fetchone())[0]
        checks.append(
            {"check": "integrity", "status": "PASS" if integrity == "ok" else "FAIL", "result": integrity}
        )

        cursor = await conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        existing = {row[0] for row in await cursor.fetchall()}
        missing = [t for t in REQUIRED_TABLES if t not in existing]
        checks.append(
            {"check": "required_tables", "status": "FAIL" if missing else "PASS", "missing": missing}
        )

        for table, key in REQUIRED_UNIQUE_KEYS.items():
            has_key = table in existing and key in await _unique_keys(conn, table)
            checks.append(
                {
                    "check": f"unique_key:{table}",
                    "status": "PASS" if has_key else "FAIL",
                    "columns": list(key),
                }
            )

        if "beginning_balances" in existing:
            cursor = await conn.execute(
                """
                SELECT company_id, item_type, item_code, COUNT(*)
                FROM beginning_balances
                WHERE deleted_at IS NULL
                GROUP BY company_id, item_type, item_code
                HAVING COUNT(*) > 1
                """
            )
            duplicates = [
                {"company_id": r[0], "item_type": r[1], "item_code": r[2], "count": r[3]}
                for r in await cursor.fetchall()
            ]
            # Calculations for these items fail until the duplicates are resolved
            checks.append(
                {
                    "check": "duplicate_beginning_balances",
                    "status": "WARN" if duplicates else "PASS",
                    "items": duplicates,
                }
            )

    return checks
