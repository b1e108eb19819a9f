import asyncio
from typing import Any, Coroutine

import click
from rich.console import Console
from rich.markup import escape

from nia.core.exception import NiaException

console = Console()


class Group(click.Group):
    def get_help_option(self, ctx):
        help_option = super().get_help_option(ctx)
        if help_option:
            help_option.help = 'show help for this command'
        return help_option

    def list_commands(self, ctx):
        # Keep registration order in --help
        return list(self.commands)


class Command(click.Command):
    def get_help_option(self, ctx):
        help_option = super().get_help_option(ctx)
        if help_option:
            help_option.help = 'show help for this command'
        return help_option


def run(coro: Coroutine[Any, Any, Any]) -> Any:
    """Run a coroutine, turning store errors into a red message and exit 1"""
    try:
        return asyncio.run(coro)
    except NiaException as e:
        console.print(f"[red]Error: {escape(e.message)}[/red]")
        raise click.Abort()
