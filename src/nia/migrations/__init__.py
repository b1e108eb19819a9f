"""Versioned schema migrations for nia.db

Each published script lives in ``sql/NNNN_<description>.sql``. Once a version
has shipped its file is frozen; schema changes go into a new, higher version.
"""

import re
from importlib import resources
from typing import List

from nia.core.type import Migration

_FILE_PATTERN = re.compile(r"^(\d+)_(\w+)\.sql$")


def load_migrations(package: str = "nia.migrations.sql") -> List[Migration]:
    """Build a migration registry from the .sql files of a package

    Args:
        package: Dotted name of the package holding the scripts

    Returns:
        Migrations sorted by version
    """
    migrations = []
    for entry in resources.files(package).iterdir():
        match = _FILE_PATTERN.match(entry.name)
        if not match:
            continue
        migrations.append(Migration(
            version=int(match.group(1)),
            description=match.group(2),
            sql=entry.read_text(encoding="utf-8"),
        ))
    return sorted(migrations, key=lambda m: m.version)


MIGRATIONS: List[Migration] = load_migrations()

__all__ = ["MIGRATIONS", "load_migrations"]
