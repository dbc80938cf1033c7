"""taskbook CLI.

Installed as ``taskbook`` console_script via pipx / pip.
"""

from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path
from typing import Any

import click
from rich.markup import escape
from rich.table import Table

from taskbook import __version__
from taskbook import log
from taskbook.config import DEFAULT_DUE_SOON_DAYS, ENV_USER, Config
from taskbook.context import AppContext, bootstrap
from taskbook.controller import ERR_ASSIGNEE_NOT_FOUND, Response
from taskbook.io_utils import dump_json, write_json
from taskbook.tasks.model import Priority, Task, TaskStatus, available_categories, display_name_for


# ── Custom Click group that handles short command aliases ────────────

class TaskbookGroup(click.Group):
    """Resolve ``ls``, ``rm``, ``done`` etc. to their canonical commands."""

    _ALIASES: dict[str, str] = {
        "ls": "list",
        "new": "add",
        "rm": "delete",
        "done": "toggle",
        "find": "search",
        "edit": "update",
    }

    def get_command(self, ctx: click.Context, cmd_name: str) -> click.Command | None:
        return super().get_command(ctx, self._ALIASES.get(cmd_name, cmd_name))


CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])

DUE_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M", "%Y-%m-%d %H:%M"]

_STATUS_STYLE: dict[str, str] = {
    "pending": "white",
    "in-progress": "cyan",
    "blocked": "magenta",
    "completed": "green",
    "cancelled": "dim",
}

_PRIORITY_STYLE: dict[str, str] = {
    "low": "dim",
    "medium": "white",
    "high": "yellow",
    "urgent": "bold red",
}


@click.group(cls=TaskbookGroup, context_settings=CONTEXT_SETTINGS)
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Where task data is stored (default: $TASKBOOK_DATA_DIR or ~/.taskbook)",
)
@click.option("--namespace", default="", help="Storage namespace inside the data dir")
@click.option("-u", "--user", "username", envvar=ENV_USER, default="", help="Username to act as")
@click.option("--ephemeral", is_flag=True, help="Keep data in memory only (nothing is saved)")
@click.option("--no-demo", is_flag=True, help="Do not create the demo user on first run")
@click.option("-v", "--verbose", is_flag=True, help="Show debug output")
@click.version_option(__version__, prog_name="taskbook")
@click.pass_context
def main(
    ctx: click.Context,
    data_dir: Path | None,
    namespace: str,
    username: str,
    ephemeral: bool,
    no_demo: bool,
    verbose: bool,
) -> None:
    """taskbook: categorized task management from the terminal.

    \b
    EXAMPLES:
      taskbook register alice --full-name "Alice A."
      taskbook -u alice add "Write report" -c work -p high --due 2026-11-01
      taskbook -u alice list --category work
      taskbook -u alice toggle task_1700000000000_abc
      taskbook -u alice stats
      taskbook export -o backup.json
    """
    log.set_verbose(verbose)

    cfg = Config(
        data_dir=data_dir or "",
        namespace=namespace,
        ephemeral=ephemeral,
        create_demo_user=not no_demo,
        verbose=verbose,
    )
    ctx.obj = bootstrap(cfg)
    ctx.meta["username"] = username.strip()


# ── helpers ──────────────────────────────────────────────────────────


def _app(ctx: click.Context) -> AppContext:
    return ctx.find_root().obj


def _require_login(ctx: click.Context) -> AppContext:
    app = _app(ctx)
    username = ctx.find_root().meta.get("username", "")
    if not username:
        log.error(f"No user selected. Pass --user NAME or set {ENV_USER}.")
        sys.exit(1)
    if not app.login(username):
        log.error(f"User tidak ditemukan: {username}")
        sys.exit(1)
    return app


def _finish(response: Response, *, as_json: bool = False) -> Response:
    """Print *response* errors/messages; exit 1 on failure."""
    if as_json:
        click.echo(dump_json(response.to_dict()), nl=False)
        if not response.success:
            sys.exit(1)
        return response
    if not response.success:
        log.error(response.error or "Unknown error")
        sys.exit(1)
    if response.message:
        log.success(response.message)
    return response


def _resolve_task_id(app: AppContext, raw: str) -> str:
    """Accept a full task id or an unambiguous prefix of one."""
    if app.task_repository.find_by_id(raw) is not None:
        return raw
    matches = [t.id for t in app.task_repository.find_all() if t.id.startswith(raw)]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        log.error(f"Ambiguous task id '{raw}' matches {len(matches)} tasks")
        sys.exit(1)
    return raw


def _resolve_assignee(app: AppContext, username: str) -> str | None:
    if not username:
        return None
    user = app.user_repository.find_by_username(username)
    if user is None:
        log.error(ERR_ASSIGNEE_NOT_FOUND)
        sys.exit(1)
    return user.id


def _fmt_date(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "-"


def _fmt_due(task: Task) -> str:
    if task.due_date is None:
        return "-"
    text = task.due_date.strftime("%Y-%m-%d")
    if task.is_overdue:
        return f"[red]{text} (overdue)[/red]"
    days = task.days_until_due
    if days is not None and not task.is_completed and days <= DEFAULT_DUE_SOON_DAYS:
        return f"[yellow]{text} ({days}d)[/yellow]"
    return text


def _task_table(tasks: list[Task], title: str) -> Table:
    table = Table(title=title, title_justify="left", show_lines=False)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Title")
    table.add_column("Category")
    table.add_column("Priority")
    table.add_column("Status")
    table.add_column("Due")
    table.add_column("Tags", style="dim")
    for task in tasks:
        prio = task.priority.value
        status = task.status.value
        table.add_row(
            task.id,
            escape(task.title),
            task.category_display_name,
            f"[{_PRIORITY_STYLE.get(prio, 'white')}]{prio}[/]",
            f"[{_STATUS_STYLE.get(status, 'white')}]{status}[/]",
            _fmt_due(task),
            escape(", ".join(task.tags)),
        )
    return table


def _print_tasks(response: Response, title: str, as_json: bool) -> None:
    _finish(response, as_json=as_json)
    if as_json:
        return
    tasks: list[Task] = response.data or []
    if not tasks:
        log.info("No tasks found.")
        return
    log.console.print(_task_table(tasks, f"{title} ({len(tasks)})"))


# ── users ────────────────────────────────────────────────────────────


@main.command()
@click.argument("username")
@click.option("--email", default="", help="Contact email")
@click.option("--full-name", default="", help="Display name")
@click.pass_context
def register(ctx: click.Context, username: str, email: str, full_name: str) -> None:
    """Register a new user."""
    app = _app(ctx)
    _finish(app.user_controller.register({"username": username, "email": email, "full_name": full_name}))


@main.command()
@click.pass_context
def users(ctx: click.Context) -> None:
    """List registered users."""
    app = _app(ctx)
    response = _finish(app.user_controller.get_all_users())
    table = Table(title=f"Users ({response.count})", title_justify="left")
    table.add_column("Username")
    table.add_column("Name")
    table.add_column("Email", style="dim")
    for user in response.data:
        table.add_row(user.username, user.full_name or "-", user.email or "-")
    log.console.print(table)


# ── tasks ────────────────────────────────────────────────────────────


@main.command()
@click.argument("title")
@click.option("-d", "--description", default="", help="Longer description")
@click.option("-c", "--category", type=click.Choice(available_categories()), default=None)
@click.option("-p", "--priority", type=click.Choice([p.value for p in Priority]), default=None)
@click.option("-s", "--status", type=click.Choice([s.value for s in TaskStatus]), default=None)
@click.option("--due", type=click.DateTime(formats=DUE_FORMATS), default=None, help="Due date (UTC)")
@click.option("-t", "--tag", "tags", multiple=True, help="Tag (repeatable)")
@click.option("--assignee", default="", help="Username to assign the task to")
@click.option("--estimate", type=click.FloatRange(min=0), default=0.0, help="Estimated hours")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_context
def add(
    ctx: click.Context,
    title: str,
    description: str,
    category: str | None,
    priority: str | None,
    status: str | None,
    due: datetime | None,
    tags: tuple[str, ...],
    assignee: str,
    estimate: float,
    as_json: bool,
) -> None:
    """Create a task."""
    app = _require_login(ctx)
    data: dict[str, Any] = {
        "title": title,
        "description": description,
        "category": category,
        "priority": priority,
        "status": status,
        "due_date": due,
        "tags": list(tags),
        "assignee_id": _resolve_assignee(app, assignee),
        "estimated_hours": estimate,
    }
    response = _finish(app.task_controller.create_task(data), as_json=as_json)
    if not as_json:
        log.info(f"id: {response.data.id}")


@main.command(name="list")
@click.option("-s", "--status", type=click.Choice([s.value for s in TaskStatus]), default=None)
@click.option("-p", "--priority", type=click.Choice([p.value for p in Priority]), default=None)
@click.option("-c", "--category", type=click.Choice(available_categories()), default=None)
@click.option("--overdue", is_flag=True, help="Only overdue tasks")
@click.option("-q", "--search", "query", default="", help="Substring of title, description or tag")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_context
def list_tasks(
    ctx: click.Context,
    status: str | None,
    priority: str | None,
    category: str | None,
    overdue: bool,
    query: str,
    as_json: bool,
) -> None:
    """List your tasks, newest first."""
    app = _require_login(ctx)
    filters = {
        "status": status,
        "priority": priority,
        "category": category,
        "overdue": overdue,
        "query": query,
    }
    _print_tasks(app.task_controller.get_tasks(filters), "Tasks", as_json)


@main.command()
@click.argument("task_id")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_context
def show(ctx: click.Context, task_id: str, as_json: bool) -> None:
    """Show one task in full."""
    app = _require_login(ctx)
    response = _finish(app.task_controller.get_task(_resolve_task_id(app, task_id)), as_json=as_json)
    if as_json:
        return
    task: Task = response.data
    owner = app.user_repository.find_by_id(task.owner_id)
    assignee = app.user_repository.find_by_id(task.assignee_id)

    out = log.console
    out.print(f"[bold]{escape(task.title)}[/bold]  [dim]{task.id}[/dim]")
    if task.description:
        out.print(escape(task.description))
    out.print(f"Category:   {task.category_display_name}")
    out.print(f"Priority:   {task.priority.value}")
    out.print(f"Status:     {task.status.value}")
    out.print(f"Due:        {_fmt_due(task)}")
    out.print(f"Owner:      {owner.username if owner else task.owner_id}")
    out.print(f"Assignee:   {assignee.username if assignee else task.assignee_id}")
    out.print(f"Tags:       {escape(', '.join(task.tags)) or '-'}")
    out.print(f"Hours:      {task.actual_hours:g} / {task.estimated_hours:g} estimated")
    out.print(f"Created:    {_fmt_date(task.created_at)}")
    out.print(f"Updated:    {_fmt_date(task.updated_at)}")
    if task.completed_at:
        out.print(f"Completed:  {_fmt_date(task.completed_at)}")
    if task.notes:
        out.print("[bold]Notes:[/bold]")
        for note in task.notes:
            out.print(f"  [dim]{_fmt_date(note.created_at)}[/dim] {escape(note.content)}")


@main.command()
@click.argument("task_id")
@click.option("--title", default=None)
@click.option("-d", "--description", default=None)
@click.option("-c", "--category", type=click.Choice(available_categories()), default=None)
@click.option("-p", "--priority", type=click.Choice([p.value for p in Priority]), default=None)
@click.option("-s", "--status", type=click.Choice([s.value for s in TaskStatus]), default=None)
@click.option("--due", type=click.DateTime(formats=DUE_FORMATS), default=None, help="New due date (UTC)")
@click.option("--clear-due", is_flag=True, help="Remove the due date")
@click.option("--assignee", default=None, help="Username to reassign to")
@click.option("--estimate", type=click.FloatRange(min=0), default=None, help="Estimated hours")
@click.option("--add-tag", default=None)
@click.option("--remove-tag", default=None)
@click.option("-n", "--note", default=None, help="Append a note")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_context
def update(
    ctx: click.Context,
    task_id: str,
    title: str | None,
    description: str | None,
    category: str | None,
    priority: str | None,
    status: str | None,
    due: datetime | None,
    clear_due: bool,
    assignee: str | None,
    estimate: float | None,
    add_tag: str | None,
    remove_tag: str | None,
    note: str | None,
    as_json: bool,
) -> None:
    """Change fields of a task. Only the options given are applied."""
    if due is not None and clear_due:
        raise click.UsageError("Use either --due or --clear-due, not both.")
    app = _require_login(ctx)
    updates: dict[str, Any] = {
        "title": title,
        "description": description,
        "category": category,
        "priority": priority,
        "status": status,
        "due_date": "" if clear_due else due,
        "estimated_hours": estimate,
        "add_tag": add_tag,
        "remove_tag": remove_tag,
        "add_note": note,
    }
    if assignee is not None:
        updates["assignee_id"] = _resolve_assignee(app, assignee) or ""
    _finish(app.task_controller.update_task(_resolve_task_id(app, task_id), updates), as_json=as_json)


@main.command()
@click.argument("task_id")
@click.pass_context
def toggle(ctx: click.Context, task_id: str) -> None:
    """Flip a task between pending and completed."""
    app = _require_login(ctx)
    response = _finish(app.task_controller.toggle_task_status(_resolve_task_id(app, task_id)))
    log.info(f"{response.data.title}: {response.data.status.value}")


@main.command()
@click.argument("task_id")
@click.option("-y", "--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete(ctx: click.Context, task_id: str, yes: bool) -> None:
    """Delete a task you own."""
    app = _require_login(ctx)
    resolved = _resolve_task_id(app, task_id)
    if not yes:
        click.confirm(f"Delete task {resolved}?", abort=True)
    _finish(app.task_controller.delete_task(resolved))


@main.command()
@click.argument("query")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_context
def search(ctx: click.Context, query: str, as_json: bool) -> None:
    """Find tasks by title, description or tag."""
    app = _require_login(ctx)
    _print_tasks(app.task_controller.search_tasks(query), f"Matches for '{escape(query)}'", as_json)


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_context
def stats(ctx: click.Context, as_json: bool) -> None:
    """Task totals and per-category statistics."""
    app = _require_login(ctx)
    totals = _finish(app.task_controller.get_task_stats())
    by_cat = _finish(app.task_controller.get_category_stats())
    if as_json:
        merged = Response.ok({**totals.data, **by_cat.data})
        click.echo(dump_json(merged.to_dict()), nl=False)
        return

    t = totals.data
    log.console.print(
        f"[bold]Total[/bold] {t['total']}   [green]completed[/green] {t['completed']}   "
        f"pending {t['pending']}   [red]overdue[/red] {t['overdue']}"
    )

    table = Table(title="By category", title_justify="left")
    table.add_column("Category")
    table.add_column("Total", justify="right")
    table.add_column("Completed", justify="right")
    table.add_column("Pending", justify="right")
    table.add_column("Overdue", justify="right")
    by_category = by_cat.data["byCategory"]
    ranked = sorted(by_category, key=lambda c: by_category[c]["total"], reverse=True)
    for category in ranked:
        counts = by_category[category]
        if not counts["total"]:
            continue
        table.add_row(
            display_name_for(category),
            str(counts["total"]),
            str(counts["completed"]),
            str(counts["pending"]),
            str(counts["overdue"]),
        )
    log.console.print(table)


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_context
def categories(ctx: click.Context, as_json: bool) -> None:
    """List the available categories."""
    app = _app(ctx)
    response = _finish(app.task_controller.get_available_categories(), as_json=as_json)
    if as_json:
        return
    for item in response.data:
        log.console.print(f"{item['value']:<10} {item['label']}")


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_context
def overdue(ctx: click.Context, as_json: bool) -> None:
    """Open tasks whose due date has passed."""
    app = _require_login(ctx)
    _print_tasks(app.task_controller.get_overdue_tasks(), "Overdue", as_json)


@main.command(name="due-soon")
@click.option("--days", type=click.IntRange(min=0), default=None, help="Look-ahead window in days")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_context
def due_soon(ctx: click.Context, days: int | None, as_json: bool) -> None:
    """Open tasks due within the next few days."""
    app = _require_login(ctx)
    window = app.config.due_soon_days if days is None else days
    _print_tasks(app.task_controller.get_tasks_due_soon(window), f"Due within {window} day(s)", as_json)


@main.command()
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Output file (default: taskbook-<date>.json)")
@click.pass_context
def export(ctx: click.Context, output: Path | None) -> None:
    """Write every stored collection to a JSON file."""
    app = _app(ctx)
    if not hasattr(app.storage, "export_data"):
        log.error(f"{type(app.storage).__name__} does not support export")
        sys.exit(1)
    snapshot = app.storage.export_data()
    if output is None:
        output = Path(f"taskbook-{datetime.now().strftime('%Y-%m-%d')}.json")
    try:
        write_json(output, snapshot)
    except OSError as exc:
        log.error(f"Gagal mengekspor data ke {output}: {exc.strerror or exc}")
        sys.exit(1)
    log.success(f"Data berhasil diekspor: {output}")
