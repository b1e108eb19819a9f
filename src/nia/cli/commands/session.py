import click
from rich.markup import escape
from rich.table import Table

from nia.cli.util import ensure_home, format_timestamp, make_store
from nia.core import sessions as repo
from nia.core.type import Speaker
from nia.utils.click import Group, Command, console, run


@click.group(name="session", cls=Group)
def session():
    """browse recorded conversation sessions"""


@session.command(name="list", cls=Command)
@click.option("--limit", type=int, default=None)
@click.pass_obj
def list_(settings, limit: int | None):
    """list sessions, most recent first"""
    ensure_home(settings)

    async def _list():
        store = make_store(settings)
        await store.open()
        return await repo.list_sessions(store, limit=limit)

    sessions = run(_list())
    if not sessions:
        console.print("No sessions recorded")
        return

    table = Table()
    table.add_column("ID", justify="right")
    table.add_column("Started")
    table.add_column("Duration", justify="right")
    table.add_column("Model")
    table.add_column("Cost", justify="right")
    for item in sessions:
        table.add_row(
            str(item.id),
            format_timestamp(item.start_time),
            f"{item.duration_seconds}s",
            item.model,
            f"${item.total_cost:.2f}",
        )
    console.print(table)


@session.command(cls=Command)
@click.argument("session-id", type=int, required=True)
@click.pass_obj
def show(settings, session_id: int):
    """show a session and its transcript"""
    ensure_home(settings)

    async def _show():
        store = make_store(settings)
        await store.open()
        return await repo.get_session_with_messages(store, session_id)

    detail = run(_show())
    if detail is None:
        console.print(f"Session not found: {session_id}", style="red")
        raise click.Abort()

    item = detail.session
    console.print(f"[bold]Session {item.id}[/bold] ({item.model})")
    console.print(
        f"{format_timestamp(item.start_time)} - "
        f"{format_timestamp(item.end_time)} ({item.duration_seconds}s)"
    )
    console.print(
        f"Mic: {item.mic_device or '-'}  Speaker: {item.speaker_device or '-'}"
    )
    console.print("")
    for message in detail.messages:
        style = "cyan" if message.speaker == Speaker.YOU else "magenta"
        console.print(
            f"[{style}]{message.speaker}[/{style}]: {escape(message.text)}"
        )


@session.command(cls=Command)
@click.argument("session-id", type=int, required=True)
@click.pass_obj
def delete(settings, session_id: int):
    """delete a session and all of its messages"""
    ensure_home(settings)

    async def _delete():
        store = make_store(settings)
        await store.open()
        return await repo.delete_session(store, session_id)

    if not run(_delete()):
        console.print(f"Session not found: {session_id}", style="red")
        raise click.Abort()
    console.print(f"Session {session_id} deleted", style="green")


@session.command(cls=Command)
@click.pass_obj
def stats(settings):
    """show totals across all sessions"""
    ensure_home(settings)

    async def _stats():
        store = make_store(settings)
        await store.open()
        return await repo.get_session_stats(store)

    result = run(_stats())
    console.print(f"Sessions: {result.total_sessions}")
    console.print(f"Messages: {result.total_messages}")
    console.print(f"Total duration: {result.total_duration}s")
    console.print(f"Average duration: {result.average_duration:.1f}s")
    console.print(f"Total cost: ${result.total_cost:.2f}")
