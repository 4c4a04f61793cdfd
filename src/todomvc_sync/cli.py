"""Command-line front end for the TodoMVC client."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Callable, Optional

import click
from rich.console import Console
from rich.table import Table

from .cache import LocalCacheStore
from .config import ConfigModel, get_config, load_config
from .controller import SyncState, TodoController
from .domain import TodoRecord
from .filters import pluralize
from .remote import RemoteSyncClient
from .routing import HashRouter


console = Console()

Action = Callable[[TodoController], None]


class TodoNotFound(Exception):
    """Raised when a todo number does not exist."""
    pass


def get_cache(config: ConfigModel) -> LocalCacheStore:
    """Get the cache store for the configured slot."""
    return LocalCacheStore(config.data_dir, config.storage_key)


async def _run_session(config: ConfigModel, action: Optional[Action], fragment: str = "") -> TodoController:
    remote = None
    if config.api_url:
        remote = RemoteSyncClient(config.api_url, timeout=config.request_timeout)
    try:
        controller = TodoController(get_cache(config), remote, config)
        HashRouter(controller, fragment)
        await controller.start()
        if action is not None:
            action(controller)
        await controller.drain()
        return controller
    finally:
        if remote is not None:
            await remote.aclose()


def run_session(action: Optional[Action] = None, fragment: str = "") -> TodoController:
    """Run ``action`` against a fresh controller and wait for remote work."""
    try:
        return asyncio.run(_run_session(get_config(), action, fragment))
    except TodoNotFound as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


def pick_todo(controller: TodoController, number: int) -> TodoRecord:
    """Return the todo at 1-based ``number`` in the unfiltered list."""
    if number < 1 or number > len(controller.todos):
        raise TodoNotFound(f"No todo #{number} ({len(controller.todos)} in list)")
    return controller.todos[number - 1]


def render(controller: TodoController) -> None:
    """Print the visible todos and the footer."""
    todos = controller.filtered_todos
    if not controller.todos:
        console.print("[dim]Nothing to do.[/dim]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("#", style="dim", justify="right")
    table.add_column("", justify="center")
    table.add_column("Title")
    table.add_column("Sync", style="dim")

    positions = {id(todo): index for index, todo in enumerate(controller.todos, start=1)}
    for todo in todos:
        mark = "[green]✔[/green]" if todo.completed else "○"
        title = f"[strike dim]{todo.title}[/strike dim]" if todo.completed else todo.title
        state = controller.sync_state(todo)
        table.add_row(
            str(positions[id(todo)]),
            mark,
            title,
            "" if state is SyncState.CONFIRMED else state.value,
        )

    console.print(table)
    left = controller.remaining
    console.print(
        f"[bold]{left}[/bold] {pluralize(left)} left  "
        f"[dim]view: {controller.visibility.value}[/dim]"
    )


@click.group()
@click.option("--config", type=click.Path(), help="Path to config file")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.pass_context
def main(ctx, config, verbose):
    """TodoMVC - todos with a local cache and remote sync."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    if config:
        cfg = load_config(Path(config))
    else:
        cfg = get_config()

    level = logging.DEBUG if verbose else getattr(logging, str(cfg.log_level).upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@main.command("list")
@click.argument("fragment", default="")
def list_todos(fragment):
    """Show todos; FRAGMENT is a route such as '#/active'."""
    render(run_session(fragment=fragment))


@main.command()
@click.argument("title")
def add(title):
    """Add a new todo."""
    added = []

    def action(controller):
        controller.set_new_todo(title)
        record = controller.add_todo()
        if record is None:
            console.print("[yellow]Nothing added: title is blank[/yellow]")
        else:
            added.append(record)

    controller = run_session(action)
    if added:
        console.print(f"[green]Added:[/green] {added[0].title}")
    render(controller)


@main.command()
@click.argument("number", type=int)
def toggle(number):
    """Toggle completion of todo NUMBER."""
    render(run_session(lambda c: c.toggle_todo(pick_todo(c, number))))


@main.command("toggle-all")
@click.option("--undo", is_flag=True, help="Mark every todo active instead")
def toggle_all(undo):
    """Mark every todo completed."""
    render(run_session(lambda c: c.set_all_completed(not undo)))


@main.command()
@click.argument("number", type=int)
@click.argument("title")
def edit(number, title):
    """Change the title of todo NUMBER; a blank title removes it."""

    def action(controller):
        record = pick_todo(controller, number)
        controller.edit_todo(record)
        controller.set_title(record, title)
        controller.done_edit(record)

    render(run_session(action))


@main.command()
@click.argument("number", type=int)
def remove(number):
    """Remove todo NUMBER."""
    render(run_session(lambda c: c.remove_todo(pick_todo(c, number))))


@main.command("clear-completed")
def clear_completed():
    """Remove every completed todo."""
    render(run_session(lambda c: c.remove_completed()))


@main.command()
def sync():
    """Fetch todos from the server and refresh the cache."""
    config = get_config()
    if not config.api_url:
        console.print("[yellow]No api_url configured; set TODOMVC_API_URL to sync[/yellow]")
        return
    render(run_session())


@main.command()
@click.confirmation_option(prompt="Clear the local todo cache?")
def reset():
    """Clear the local todo cache."""
    get_cache(get_config()).clear()
    console.print("[green]Local cache cleared[/green]")


if __name__ == "__main__":
    main()
