"""CLI command implementations — all commands work through the shared Workspace."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, NoReturn

import click
from rich import box
from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from mailprompt.imap.connection import MailboxConnectionError, check_connection, mailbox_session
from mailprompt.imap.fetcher import list_selectable_folders
from mailprompt.imap.search import FolderError
from mailprompt.imap.types import DEFAULT_FOLDER, DEFAULT_MAX_RESULTS, FetchFilters, ReadStatus
from mailprompt.processing.pipeline import QUERY_ERRORS, QueryRequest
from mailprompt.processing.results import (
    available_flags,
    available_tags,
    combined_content,
    filter_results,
    results_to_csv,
    unify_results,
)
from mailprompt.storage.library import LibraryError

if TYPE_CHECKING:
    from mailprompt.cli.workspace import Workspace
    from mailprompt.imap.types import MailboxCredentials
    from mailprompt.storage.models import QueryHistoryEntry

logger = logging.getLogger(__name__)
console = Console(width=200)

_DATE = click.DateTime(formats=["%Y-%m-%d"])


def _fail(message: str) -> NoReturn:
    console.print(f"[red]{escape(message)}[/red]")
    raise SystemExit(1)


def _credentials(ws: Workspace) -> MailboxCredentials:
    try:
        return ws.settings.credentials()
    except ValueError as exc:
        _fail(str(exc))


# ── test-connection / folders ─────────────────────────────────────────────────


@click.command("test-connection")
@click.pass_obj
def connection_check(ws: Workspace) -> None:
    """Log in to the configured mailbox and log straight out again."""
    result = asyncio.run(check_connection(_credentials(ws)))
    if not result.success:
        _fail(f"Connection failed: {result.error}")
    console.print("[green]Connection OK[/green]")


@click.command()
@click.pass_obj
def folders(ws: Workspace) -> None:
    """List every selectable mail folder."""
    credentials = _credentials(ws)

    async def _list() -> list[str]:
        async with mailbox_session(credentials) as session:
            return await list_selectable_folders(session)

    try:
        paths = asyncio.run(_list())
    except (MailboxConnectionError, FolderError) as exc:
        _fail(str(exc))

    if not paths:
        console.print("[yellow]No selectable folders found.[/yellow]")
        return
    for path in paths:
        console.print(f"  {escape(path)}")
    console.print(f"\n[dim]{len(paths)} folder(s)[/dim]")


# ── run ───────────────────────────────────────────────────────────────────────


@click.command()
@click.option("--prompt", "prompt_text", default=None, help="Prompt text to run.")
@click.option("--saved", "saved_name", default=None, help="Name of a saved prompt to run.")
@click.option("--folder", default=DEFAULT_FOLDER, show_default=True, help="Folder to search.")
@click.option("--all-folders", is_flag=True, help="Search every selectable folder.")
@click.option("--start", "start_date", type=_DATE, default=None, help="Since date (YYYY-MM-DD).")
@click.option("--end", "end_date", type=_DATE, default=None, help="Until date, inclusive.")
@click.option(
    "--status",
    type=click.Choice([s.value for s in ReadStatus]),
    default=ReadStatus.ALL.value,
    show_default=True,
)
@click.option("--subject", default="", help="Subject must contain this text.")
@click.option(
    "--max",
    "max_results",
    type=click.IntRange(min=1),
    default=DEFAULT_MAX_RESULTS,
    show_default=True,
    help="Maximum emails to fetch.",
)
@click.option(
    "--individual/--combined",
    default=False,
    show_default=True,
    help="One AI request per email, or one request for all of them.",
)
@click.option("--group/--no-group", default=False, help="Collapse threads into one email.")
@click.option("--model", default=None, help="Model override.")
@click.option("--temperature", type=float, default=None, help="Temperature override.")
@click.option("--tag", "tag_filter", multiple=True, help="Only show results with this tag.")
@click.option("--flag", "flag_filter", multiple=True, help="Only show results with this flag.")
@click.pass_obj
def run(
    ws: Workspace,
    prompt_text: str | None,
    saved_name: str | None,
    folder: str,
    all_folders: bool,
    start_date: datetime | None,
    end_date: datetime | None,
    status: str,
    subject: str,
    max_results: int,
    individual: bool,
    group: bool,
    model: str | None,
    temperature: float | None,
    tag_filter: tuple[str, ...],
    flag_filter: tuple[str, ...],
) -> None:
    """Fetch matching emails and run them through a prompt."""
    if (prompt_text is None) == (saved_name is None):
        _fail("Give exactly one of --prompt or --saved.")
    prompt_name: str | None = None
    if prompt_text is None:
        saved = ws.prompts.get(saved_name or "")
        if saved is None:
            _fail(f"Saved prompt {saved_name!r} not found")
        prompt_text, prompt_name = saved.prompt, saved.name
    if not prompt_text.strip():
        _fail("Prompt cannot be empty.")

    request = QueryRequest(
        filters=FetchFilters(
            folder=folder,
            fetch_all_folders=all_folders,
            start_date=start_date.date() if start_date else None,
            end_date=end_date.date() if end_date else None,
            status=ReadStatus(status),
            subject_search_term=subject,
            max_results=max_results,
        ),
        prompt=prompt_text,
        process_individually=individual,
        group_by_subject=group,
        model=model or ws.settings.model,
        temperature=ws.settings.temperature if temperature is None else temperature,
        prompt_name=prompt_name,
    )
    entry = _execute(ws, request)
    _render_entry(entry, tag_filter, flag_filter)


def _execute(ws: Workspace, request: QueryRequest) -> QueryHistoryEntry:
    credentials = _credentials(ws)
    runner = ws.runner()
    scope = "all folders" if request.filters.fetch_all_folders else request.filters.folder
    console.print(
        f"Fetching up to {request.filters.max_results} email(s) "
        f"from [bold]{escape(scope)}[/bold]..."
    )
    try:
        return asyncio.run(runner.run(credentials, request))
    except QUERY_ERRORS as exc:
        _fail(f"Query failed: {exc}")


# ── Rendering ─────────────────────────────────────────────────────────────────


def _render_entry(
    entry: QueryHistoryEntry,
    tag_filter: tuple[str, ...] = (),
    flag_filter: tuple[str, ...] = (),
) -> None:
    for folder, reason in entry.folder_errors.items():
        console.print(f"[yellow]Skipped folder {escape(folder)}: {escape(reason)}[/yellow]")
    if entry.failed:
        console.print(f"[red]Query failed: {escape(entry.error or '')}[/red]")
        return
    console.print(f"Processed [bold]{len(entry.messages)}[/bold] email(s) with {entry.model}\n")

    if not entry.process_individually:
        console.print(
            Panel(
                Markdown(entry.combined_result or ""),
                title=f"[bold]{escape(entry.prompt_name or 'Combined result')}[/bold]",
                border_style="blue",
            )
        )
        return

    items = unify_results(entry.messages, entry.results)
    shown = filter_results(items, tag_filter, flag_filter)
    tags, flags = available_tags(items), available_flags(items)
    if tags:
        console.print(f"[dim]Tags:[/dim] {escape(', '.join(tags))}")
    if flags:
        console.print(f"[dim]Flags:[/dim] {escape(', '.join(flags))}")
    if len(shown) != len(items):
        console.print(f"[dim]Showing {len(shown)} of {len(items)} result(s)[/dim]")

    for item in shown:
        m = item.message
        subtitle = escape(f"{m.sender} · {m.date:%Y-%m-%d %H:%M} · {', '.join(m.folders)}")
        if item.tags:
            subtitle += f" · [green]{escape(', '.join(item.tags))}[/green]"
        body = item.result.content if item.result is not None else "(not processed)"
        console.print(
            Panel(
                Markdown(body),
                title=f"[bold]{escape(m.subject)}[/bold]",
                subtitle=subtitle,
                border_style="red" if item.error else "blue",
            )
        )


# ── history ───────────────────────────────────────────────────────────────────


@click.group()
def history() -> None:
    """Browse, replay and clear past queries."""


@history.command("list")
@click.pass_obj
def history_list(ws: Workspace) -> None:
    """List past queries, newest first."""
    entries = ws.history.entries()
    if not entries:
        console.print("[yellow]No queries in history yet.[/yellow]")
        return

    table = Table(box=box.ROUNDED, show_header=True, header_style="bold cyan")
    table.add_column("ID", width=8)
    table.add_column("When", width=16)
    table.add_column("Prompt", max_width=48)
    table.add_column("Mode", width=10)
    table.add_column("Emails", width=6)
    table.add_column("Status", width=8)
    for entry in entries:
        status = "[red]failed[/red]" if entry.failed else "[green]ok[/green]"
        table.add_row(
            entry.history_id[:8],
            f"{entry.timestamp:%Y-%m-%d %H:%M}",
            escape(entry.prompt_name or _first_line(entry.prompt)),
            "individual" if entry.process_individually else "combined",
            str(len(entry.messages)),
            status,
        )
    console.print(table)


def _first_line(text: str, width: int = 48) -> str:
    lines = text.strip().splitlines()
    return lines[0][:width] if lines else ""


@history.command("show")
@click.argument("history_id")
@click.option("--tag", "tag_filter", multiple=True, help="Only show results with this tag.")
@click.option("--flag", "flag_filter", multiple=True, help="Only show results with this flag.")
@click.option("--csv", "csv_path", type=click.Path(dir_okay=False, path_type=Path), default=None)
@click.option("--copy-all", is_flag=True, help="Print only the result text, ready to paste elsewhere.")
@click.pass_obj
def history_show(
    ws: Workspace,
    history_id: str,
    tag_filter: tuple[str, ...],
    flag_filter: tuple[str, ...],
    csv_path: Path | None,
    copy_all: bool,
) -> None:
    """Replay a stored query's results without contacting the mail server."""
    entry = ws.history.get(history_id)
    if entry is None:
        _fail(f"History entry {history_id!r} not found")
    if copy_all:
        if entry.process_individually:
            unified = unify_results(entry.messages, entry.results)
            click.echo(combined_content(filter_results(unified, tag_filter, flag_filter)))
        else:
            click.echo(entry.combined_result or "")
    else:
        _render_entry(entry, tag_filter, flag_filter)
    if csv_path is not None:
        unified = unify_results(entry.messages, entry.results)
        items = filter_results(unified, tag_filter, flag_filter)
        csv_path.write_text(results_to_csv(items), encoding="utf-8")
        console.print(f"Wrote {len(items)} row(s) to {csv_path}")


@history.command("rerun")
@click.argument("history_id")
@click.pass_obj
def history_rerun(ws: Workspace, history_id: str) -> None:
    """Run a stored query again against the mailbox."""
    entry = ws.history.get(history_id)
    if entry is None:
        _fail(f"History entry {history_id!r} not found")
    request = QueryRequest(
        filters=entry.filters,
        prompt=entry.prompt,
        process_individually=entry.process_individually,
        group_by_subject=entry.group_by_subject,
        model=entry.model,
        temperature=ws.settings.temperature,
        prompt_name=entry.prompt_name,
    )
    _render_entry(_execute(ws, request))


@history.command("clear")
@click.confirmation_option(prompt="Delete all query history?")
@click.pass_obj
def history_clear(ws: Workspace) -> None:
    """Delete every stored query."""
    ws.history.clear()
    console.print("History cleared.")


# ── tags ──────────────────────────────────────────────────────────────────────


@click.group()
def tags() -> None:
    """Manage tag definitions used to label AI responses."""


@tags.command("list")
@click.pass_obj
def tags_list(ws: Workspace) -> None:
    table = Table(box=box.ROUNDED, show_header=True, header_style="bold cyan")
    table.add_column("Name")
    table.add_column("Marker")
    table.add_column("Color")
    for tag in ws.tags.tags():
        swatch = f"[{tag.color}]{tag.color}[/{tag.color}]"
        table.add_row(escape(tag.name), escape(tag.marker), swatch)
    console.print(table)


@tags.command("add")
@click.argument("name")
@click.option("--color", default="#cccccc", show_default=True, help="Display colour, #rrggbb.")
@click.pass_obj
def tags_add(ws: Workspace, name: str, color: str) -> None:
    try:
        tag = ws.tags.add(name, color)
    except LibraryError as exc:
        _fail(str(exc))
    console.print(
        f"Added tag [bold]{escape(tag.name)}[/bold], ask the model to emit {escape(tag.marker)}"
    )


@tags.command("remove")
@click.argument("name")
@click.pass_obj
def tags_remove(ws: Workspace, name: str) -> None:
    try:
        ws.tags.remove(name)
    except LibraryError as exc:
        _fail(str(exc))
    console.print(f"Removed tag {name}")


# ── vars ──────────────────────────────────────────────────────────────────────


@click.group("vars")
def vars_() -> None:
    """Manage {KEY} prompt variables."""


@vars_.command("list")
@click.pass_obj
def vars_list(ws: Workspace) -> None:
    table = Table(box=box.ROUNDED, show_header=True, header_style="bold cyan")
    table.add_column("Placeholder")
    table.add_column("Value")
    for variable in ws.variables.variables():
        table.add_row(escape(f"{{{variable.key}}}"), escape(variable.value))
    console.print(table)


@vars_.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_obj
def vars_set(ws: Workspace, key: str, value: str) -> None:
    try:
        variable = ws.variables.set(key, value)
    except LibraryError as exc:
        _fail(str(exc))
    console.print(f"{{{variable.key}}} = {variable.value}")


@vars_.command("remove")
@click.argument("key")
@click.pass_obj
def vars_remove(ws: Workspace, key: str) -> None:
    try:
        ws.variables.remove(key)
    except LibraryError as exc:
        _fail(str(exc))
    console.print(f"Removed {{{key}}}")


# ── prompts ───────────────────────────────────────────────────────────────────


@click.group()
def prompts() -> None:
    """Manage saved prompts."""


@prompts.command("list")
@click.pass_obj
def prompts_list(ws: Workspace) -> None:
    for saved in ws.prompts.prompts():
        title = f"[bold]{escape(saved.name)}[/bold]"
        console.print(Panel(escape(saved.prompt), title=title, border_style="blue"))


@prompts.command("add")
@click.argument("name")
@click.argument("text")
@click.pass_obj
def prompts_add(ws: Workspace, name: str, text: str) -> None:
    try:
        saved = ws.prompts.add(name, text)
    except LibraryError as exc:
        _fail(str(exc))
    console.print(f"Saved prompt [bold]{saved.name}[/bold]")


@prompts.command("remove")
@click.argument("name")
@click.pass_obj
def prompts_remove(ws: Workspace, name: str) -> None:
    try:
        ws.prompts.remove(name)
    except LibraryError as exc:
        _fail(str(exc))
    console.print(f"Removed prompt {name}")
