import click
from rich.markup import escape

from nia.cli.util import ensure_home, make_store
from nia.core import settings as repo
from nia.utils.click import Group, Command, console, run


@click.group(name="setting", cls=Group)
def setting():
    """read and write application settings"""


@setting.command(cls=Command)
@click.argument("key", type=str, required=True)
@click.pass_obj
def get(settings, key: str):
    """print the value of a setting"""
    ensure_home(settings)

    async def _get():
        store = make_store(settings)
        await store.open()
        return await repo.get_setting(store, key)

    value = run(_get())
    if value is None:
        console.print(f"Setting not found: {key}", style="red")
        raise click.Abort()
    console.print(escape(value))


@setting.command(name="set", cls=Command)
@click.argument("key", type=str, required=True)
@click.argument("value", type=str, required=True)
@click.pass_obj
def set_(settings, key: str, value: str):
    """store a setting, replacing any previous value"""
    ensure_home(settings)

    async def _set():
        store = make_store(settings)
        await store.open()
        await repo.save_setting(store, key, value)

    run(_set())
    console.print(f"Setting saved: {key}", style="green")


@setting.command(name="list", cls=Command)
@click.pass_obj
def list_(settings):
    """print all settings"""
    ensure_home(settings)

    async def _list():
        store = make_store(settings)
        await store.open()
        return await repo.get_all_settings(store)

    values = run(_list())
    for key in sorted(values):
        console.print(f"{escape(key)} = {escape(values[key] or '')}")
