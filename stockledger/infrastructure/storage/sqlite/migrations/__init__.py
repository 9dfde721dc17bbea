"""Schema migrations for the snapshot database."""

from stockledger.infrastructure.storage.sqlite.migrations.migrator import (
    REQUIRED_TABLES,
    get_migration_status,
    initialize_database,
    run_migrations,
    verify_schema_integrity,
)

__all__ = [
    "REQUIRED_TABLES",
    "initialize_database",
    "run_migrations",
    "get_migration_status",
    "verify_schema_integrity",
]
