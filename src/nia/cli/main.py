"""Nia CLI entry point"""
from pathlib import Path

import click
from rich.markup import escape
from rich.table import Table

from nia.cli.commands.session import session
from nia.cli.commands.setting import setting
from nia.cli.util import ensure_home, open_store, read_status
from nia.config import DEFAULT_CONFIG, load_settings
from nia.core.command import greet as greet_command
from nia.utils.click import Group, Command, console, run
from nia.utils.logger import setup_logging


@click.group(name="nia", cls=Group)
@click.option(
    "--home",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Nia home directory (default: $NIA_HOME or ~/.nia)",
)
@click.pass_context
def nia(ctx: click.Context, home: Path | None):
    """Nia local session store"""
    settings = load_settings(home)
    ctx.obj = settings
    log_dir = settings.logs_dir if settings.home.is_dir() else None
    setup_logging(log_dir, settings.logging_level)


@nia.command(cls=Command)
@click.pass_obj
def init(settings):
    """initialize the nia home and database"""
    home = settings.home
    if (home / "config.toml").exists():
        console.print(f"[red]Error: Already initialized at {home}[/red]")
        raise click.Abort()

    console.print(f"Initializing Nia home at {home}")
    home.mkdir(parents=True, exist_ok=True)
    settings.logs_dir.mkdir(exist_ok=True)
    (home / "config.toml").write_text(DEFAULT_CONFIG)

    applied = run(open_store(settings))
    console.print(
        f"[green]Database ready at {settings.database_path} "
        f"({len(applied)} migration(s) applied)[/green]"
    )


@nia.command(cls=Command)
@click.pass_obj
def migrate(settings):
    """apply pending schema migrations"""
    ensure_home(settings)
    applied = run(open_store(settings))
    if not applied:
        console.print("Schema is up to date")
        return
    for migration in applied:
        console.print(
            f"[green]Applied {migration.version} "
            f"{migration.description}[/green]"
        )


@nia.command(cls=Command)
@click.pass_obj
def status(settings):
    """show which migrations have been applied"""
    ensure_home(settings)
    statuses = run(read_status(settings))
    table = Table(title=str(settings.database_path))
    table.add_column("Version", justify="right")
    table.add_column("Description")
    table.add_column("Applied")
    table.add_column("Installed on")
    for entry in statuses:
        if not entry.applied:
            applied = "[yellow]pending[/yellow]"
        elif entry.checksum_matches:
            applied = "[green]yes[/green]"
        else:
            applied = "[red]yes (checksum differs)[/red]"
        table.add_row(
            str(entry.version),
            entry.description,
            applied,
            entry.installed_on or "",
        )
    console.print(table)


@nia.command(cls=Command)
@click.argument("name", type=str)
def greet(name: str):
    """print a greeting"""
    console.print(escape(greet_command(name)))


nia.add_command(session)
nia.add_command(setting)


if __name__ == "__main__":
    nia()
