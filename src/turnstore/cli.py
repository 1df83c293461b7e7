"""turnstore CLI - inspect stored conversations."""

import json
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from turnstore import __version__
from turnstore.config import ensure_dirs

app = typer.Typer(
    name="turnstore",
    help="Inspect stored conversations and their continuation payloads.",
    no_args_is_help=True,
)
sessions_app = typer.Typer(help="Manage stored sessions.")
mcp_app = typer.Typer(help="MCP server.")

app.add_typer(sessions_app, name="sessions")
app.add_typer(mcp_app, name="mcp")

console = Console()

RootOption = Annotated[
    Optional[Path], typer.Option("--root", "-r", help="Sessions directory (default ~/.turnstore/sessions)")
]


def version_callback(value: bool) -> None:
    if value:
        console.print(f"turnstore {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", "-v", callback=version_callback, is_eager=True),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", help="Show debug logging")] = False,
) -> None:
    """turnstore - durable conversation history for stateful completion APIs."""
    from turnstore.logging_setup import configure_logging

    configure_logging(verbose)
    ensure_dirs()


# ── Sessions commands ────────────────────────────────────────────


@sessions_app.command("list")
def sessions_list(root: RootOption = None) -> None:
    """List stored sessions, newest first."""
    from turnstore.sessions.catalog import SessionCatalog

    summaries = SessionCatalog(root=root).refresh()
    if not summaries:
        console.print("[dim]No stored sessions.[/dim]")
        return

    table = Table(title="Sessions")
    table.add_column("ID", style="cyan")
    table.add_column("Title", style="green")
    table.add_column("Messages", justify="right")
    table.add_column("Last modified")

    for s in summaries:
        table.add_row(
            s.session_id,
            s.title,
            str(s.message_count),
            s.last_modified_at.strftime("%Y-%m-%d %H:%M"),
        )

    console.print(table)


@sessions_app.command("show")
def sessions_show(
    session_id: Annotated[str, typer.Argument(help="Session ID")],
    root: RootOption = None,
) -> None:
    """Print the turns of a stored session."""
    from turnstore.errors import SessionStoreError
    from turnstore.history.models import AssistantTurn, ToolTurn
    from turnstore.sessions.store import SessionStore

    try:
        result = SessionStore(root=root).load(session_id)
    except SessionStoreError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1)

    session = result.session
    if result.recovered:
        console.print("[yellow]Recovered from backup.[/yellow]")
    console.print(f"[bold]{session.title or session.session_id}[/bold]")
    if session.continuation_token:
        console.print(f"[dim]previous_response_id: {session.continuation_token}[/dim]")

    for turn in session.turns:
        label = f"[cyan]{turn.role}[/cyan]"
        if isinstance(turn, ToolTurn):
            label += f" [dim]({turn.tool_call_id})[/dim]"
        console.print(label, turn.text, highlight=False)
        if isinstance(turn, AssistantTurn) and turn.invokes_tools:
            for call in turn.tool_calls():
                console.print(f"  [dim]→ {call.get('name', 'unknown')} {call.get('id', '')}[/dim]")

    if session.tool_calls:
        console.print(f"\n[dim]{len(session.tool_calls)} tool call(s) recorded[/dim]")


@sessions_app.command("delete")
def sessions_delete(
    session_id: Annotated[str, typer.Argument(help="Session ID to delete")],
    root: RootOption = None,
) -> None:
    """Delete a stored session."""
    from turnstore.errors import SessionStoreError
    from turnstore.sessions.store import SessionStore

    try:
        SessionStore(root=root).delete(session_id)
    except SessionStoreError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1)
    console.print(f"[green]Deleted session:[/green] {session_id}")


@sessions_app.command("payload")
def sessions_payload(
    session_id: Annotated[str, typer.Argument(help="Session ID")],
    root: RootOption = None,
) -> None:
    """Show the input items the next request would send for a session."""
    from turnstore.errors import ProtocolFault, SessionStoreError
    from turnstore.history.models import UserTurn
    from turnstore.protocol.continuation import resolve_continuation
    from turnstore.protocol.items import dump_items
    from turnstore.protocol.payload import build_input_items
    from turnstore.sessions.store import SessionStore

    try:
        session = SessionStore(root=root).load(session_id).session
    except SessionStoreError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1)

    is_new_user_message = bool(session.turns) and isinstance(session.turns[-1], UserTurn)
    try:
        window = resolve_continuation(
            session.turns, session.continuation_token, is_new_user_message
        )
    except ProtocolFault as exc:
        console.print(f"[red]Protocol fault:[/red] {exc}")
        raise typer.Exit(1)

    items = build_input_items(session.turns, window, is_new_user_message=is_new_user_message)
    console.print(
        f"[dim]start_index={window.start_index} tool_results={len(window.tool_results)}[/dim]"
    )
    console.print_json(json.dumps(dump_items(items)))


# ── MCP commands ─────────────────────────────────────────────────


@mcp_app.command("serve")
def mcp_serve() -> None:
    """Start the MCP server (stdio transport)."""
    from turnstore.mcp.server import mcp

    mcp.run()
