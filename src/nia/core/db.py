import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Iterable, List, Optional

import aiosqlite

from nia.core.exception import StoreUnavailable
from nia.core.migrate import (
    apply_migrations,
    migration_status,
    validate_migrations,
)
from nia.core.type import AppliedMigration, Migration, MigrationStatus
from nia.migrations import MIGRATIONS

logger = logging.getLogger(__name__)


class Store:
    """
    Handle to the local nia.db file.

    Nothing gets a connection until open() has brought the schema up to date.
    """

    def __init__(
        self,
        path: Path | str,
        migrations: Optional[Iterable[Migration]] = None,
        busy_timeout: float = 5.0,
    ):
        self.path = Path(path)
        self.migrations: List[Migration] = list(
            MIGRATIONS if migrations is None else migrations
        )
        self.busy_timeout = busy_timeout
        self._ready = False

    @property
    def is_ready(self) -> bool:
        return self._ready

    async def open(self) -> List[AppliedMigration]:
        """Create the file if needed and apply pending migrations

        Raises:
            InvalidMigrationSequence: Registry is malformed, file untouched
            MigrationError: A migration failed, startup must abort
            StoreUnavailable: File cannot be opened or locked
        """
        validate_migrations(self.migrations)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreUnavailable(self.path, str(e)) from e

        logger.info(f"Opening store at {self.path}")
        async with self._connect() as conn:
            try:
                applied = await apply_migrations(conn, self.migrations)
            except aiosqlite.DatabaseError as e:
                raise StoreUnavailable(self.path, str(e)) from e

        self._ready = True
        logger.info(
            f"Store ready, {len(applied)} migration(s) applied, "
            f"schema at version {self.schema_version}"
        )
        return applied

    @property
    def schema_version(self) -> int:
        return self.migrations[-1].version if self.migrations else 0

    async def status(self) -> List[MigrationStatus]:
        """Migration status of the file, without creating or migrating it"""
        if not self.path.exists():
            return [
                MigrationStatus(
                    version=migration.version,
                    description=migration.description,
                    applied=False,
                ) for migration in self.migrations
            ]
        async with self._connect() as conn:
            return await migration_status(conn, self.migrations)

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        if not self._ready:
            raise StoreUnavailable(
                self.path, "store has not been opened and migrated"
            )
        async with self._connect() as conn:
            yield conn

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        try:
            conn = await aiosqlite.connect(
                self.path,
                timeout=self.busy_timeout,
                isolation_level=None,
            )
        except aiosqlite.Error as e:
            raise StoreUnavailable(self.path, str(e)) from e
        conn.row_factory = aiosqlite.Row
        try:
            try:
                await conn.execute("PRAGMA foreign_keys = ON")
            except aiosqlite.Error as e:
                raise StoreUnavailable(self.path, str(e)) from e
            yield conn
        finally:
            await conn.close()

