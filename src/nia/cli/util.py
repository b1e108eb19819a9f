"""CLI utility functions"""

from datetime import datetime
from typing import List

import click

from nia.config import Settings
from nia.core.db import Store
from nia.core.type import AppliedMigration, MigrationStatus
from nia.utils.click import console


def ensure_home(settings: Settings):
    """Abort unless the nia home directory exists"""
    if not settings.home.is_dir():
        console.print(
            f"[red]Error: Nia home is not initialized: {settings.home}[/red]"
        )
        console.print("Run 'nia init' first")
        raise click.Abort()


def make_store(settings: Settings) -> Store:
    return Store(settings.database_path, busy_timeout=settings.busy_timeout)


async def open_store(settings: Settings) -> List[AppliedMigration]:
    """Open and migrate the configured store, returning applied migrations"""
    return await make_store(settings).open()


async def read_status(settings: Settings) -> List[MigrationStatus]:
    return await make_store(settings).status()


def format_timestamp(value: int | None) -> str:
    if value is None:
        return ""
    # Session times are epoch milliseconds
    return datetime.fromtimestamp(value / 1000).strftime("%Y-%m-%d %H:%M:%S")
