"""Forward-only schema migrator for the local SQLite store"""
import logging
import re
import sqlite3
import time
from typing import Iterable, List, Optional

import aiosqlite

from nia.core.exception import InvalidMigrationSequence, MigrationError
from nia.core.type import (
    AppliedMigration,
    Migration,
    MigrationKind,
    MigrationStatus,
)

logger = logging.getLogger(__name__)

LEDGER_TABLE = "_sqlx_migrations"

_COMMENT_PATTERN = re.compile(r"--[^\n]*|/\*.*?\*/", re.DOTALL)

_CREATE_LEDGER_SQL = f"""
CREATE TABLE IF NOT EXISTS {LEDGER_TABLE} (
    version BIGINT PRIMARY KEY,
    description TEXT NOT NULL,
    installed_on TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    success BOOLEAN NOT NULL,
    checksum BLOB NOT NULL,
    execution_time BIGINT NOT NULL
)
"""


def validate_migrations(migrations: Iterable[Migration]) -> None:
    """
    Check that versions are unique, ascending and contiguous.

    Runs before anything touches the store, so a bad registry never leaves a
    half-migrated database behind.

    Raises:
        InvalidMigrationSequence: On a duplicate, decreasing or skipped version,
            or a migration that is not forward-only
    """
    previous: Optional[Migration] = None
    for migration in migrations:
        if migration.kind != MigrationKind.UP:
            raise InvalidMigrationSequence(
                f"Migration {migration} is not a forward migration"
            )
        if previous is not None:
            if migration.version == previous.version:
                raise InvalidMigrationSequence(
                    f"Duplicate migration version {migration.version}: "
                    f"'{previous.description}' and '{migration.description}'"
                )
            if migration.version < previous.version:
                raise InvalidMigrationSequence(
                    f"Migration {migration} is listed after {previous}"
                )
            if migration.version != previous.version + 1:
                raise InvalidMigrationSequence(
                    f"Gap between migration {previous} and {migration}"
                )
        previous = migration


def split_statements(script: str) -> List[str]:
    """Split a SQL script into individual statements

    A ';' only ends a statement when sqlite agrees the text so far is
    complete, so semicolons inside literals and trigger bodies stay put.
    """
    statements = []
    buffer = ""
    parts = script.split(";")
    for part in parts[:-1]:
        buffer += part + ";"
        if sqlite3.complete_statement(buffer):
            if not _is_blank(buffer):
                statements.append(buffer.strip())
            buffer = ""
    buffer += parts[-1]
    if not _is_blank(buffer):
        statements.append(buffer.strip())
    return statements


def _is_blank(text: str) -> bool:
    return not _COMMENT_PATTERN.sub("", text).strip(" \t\r\n;")


async def _ledger_exists(conn: aiosqlite.Connection) -> bool:
    result = await conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?",
        (LEDGER_TABLE,)
    )
    return await result.fetchone() is not None


async def _fetch_ledger(conn: aiosqlite.Connection) -> dict:
    result = await conn.execute(
        f"SELECT version, description, checksum, installed_on \
            FROM {LEDGER_TABLE} WHERE success = 1 ORDER BY version ASC"
    )
    rows = await result.fetchall()
    return {
        row[0]: {
            "description": row[1],
            "checksum": bytes(row[2]),
            "installed_on": row[3],
        } for row in rows
    }


async def _check_dirty(conn: aiosqlite.Connection) -> None:
    result = await conn.execute(
        f"SELECT version, description FROM {LEDGER_TABLE} \
            WHERE success = 0 ORDER BY version ASC LIMIT 1"
    )
    row = await result.fetchone()
    if row:
        raise MigrationError(
            row[0], row[1],
            "ledger marks it as partially applied, repair the database "
            "before starting again"
        )


async def _apply_one(
    conn: aiosqlite.Connection,
    migration: Migration
) -> Optional[AppliedMigration]:
    # Lock errors here propagate as-is, the caller reports them
    await conn.execute("BEGIN IMMEDIATE")
    try:
        result = await conn.execute(
            f"SELECT 1 FROM {LEDGER_TABLE} WHERE version = ?",
            (migration.version,)
        )
        if await result.fetchone() is not None:
            await conn.execute("ROLLBACK")
            logger.info(
                f"Migration {migration} was applied concurrently, skipping"
            )
            return None

        started = time.perf_counter_ns()
        for statement in split_statements(migration.sql):
            await conn.execute(statement)
        execution_time = time.perf_counter_ns() - started

        await conn.execute(
            f"INSERT INTO {LEDGER_TABLE} \
                (version, description, success, checksum, execution_time) \
                    VALUES (?, ?, 1, ?, ?)",
            (
                migration.version,
                migration.description,
                migration.checksum,
                execution_time,
            )
        )
        await conn.execute("COMMIT")
    except aiosqlite.Error as e:
        if conn.in_transaction:
            await conn.execute("ROLLBACK")
        raise MigrationError(
            migration.version, migration.description, str(e)
        ) from e

    logger.info(
        f"Applied migration {migration} in {execution_time / 1e6:.2f}ms"
    )
    return AppliedMigration(
        version=migration.version,
        description=migration.description,
        checksum=migration.checksum,
        execution_time=execution_time,
    )


async def apply_migrations(
    conn: aiosqlite.Connection,
    migrations: Iterable[Migration]
) -> List[AppliedMigration]:
    """
    Bring the store up to the latest migration in the list.

    Every migration missing from the ledger runs in ascending version order,
    each in its own transaction together with its ledger row. The first
    failure stops the run; nothing after it is attempted.

    Args:
        conn: Connection in autocommit mode (isolation_level=None)
        migrations: The migration registry

    Returns:
        The migrations applied by this call, empty if none were pending

    Raises:
        InvalidMigrationSequence: Registry is malformed, store untouched
        MigrationError: A script failed or the ledger holds a dirty version
        aiosqlite.OperationalError: The write lock could not be taken
    """
    migrations = list(migrations)
    validate_migrations(migrations)

    await conn.execute(_CREATE_LEDGER_SQL)
    await _check_dirty(conn)
    ledger = await _fetch_ledger(conn)

    known = {migration.version: migration for migration in migrations}
    for version, entry in ledger.items():
        migration = known.get(version)
        if migration is None:
            logger.warning(
                f"Ledger has version {version} ({entry['description']}) "
                "which is not in the migration registry"
            )
        elif entry["checksum"] != migration.checksum:
            logger.warning(
                f"Checksum of applied migration {migration} differs "
                "from the registry script"
            )

    applied = []
    for migration in migrations:
        if migration.version in ledger:
            continue
        outcome = await _apply_one(conn, migration)
        if outcome is not None:
            applied.append(outcome)

    if not applied:
        logger.debug("Schema is up to date, no migrations applied")
    return applied


async def migration_status(
    conn: aiosqlite.Connection,
    migrations: Iterable[Migration]
) -> List[MigrationStatus]:
    """Report, per registry entry, whether and when it was applied"""
    ledger = await _fetch_ledger(conn) if await _ledger_exists(conn) else {}
    statuses = []
    for migration in migrations:
        entry = ledger.get(migration.version)
        if entry is None:
            statuses.append(MigrationStatus(
                version=migration.version,
                description=migration.description,
                applied=False,
            ))
            continue
        statuses.append(MigrationStatus(
            version=migration.version,
            description=migration.description,
            applied=True,
            installed_on=str(entry["installed_on"]),
            checksum_matches=entry["checksum"] == migration.checksum,
        ))
    return statuses
