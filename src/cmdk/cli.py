"""cmdk CLI - AI command assistant for tmux panes."""

import logging
import os
import sys
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from cmdk import __version__
from cmdk.config import ensure_dirs
from cmdk.errors import CmdkError

app = typer.Typer(
    name="cmdk",
    help="Ask an AI for the command you need and send it to your terminal.",
    no_args_is_help=True,
)
settings_app = typer.Typer(help="Show and change settings.")

app.add_typer(settings_app, name="settings")

console = Console()

PaneOption = Annotated[
    Optional[str],
    typer.Option("--pane", "-p", help="Target tmux pane (defaults to $COMMAND_K_SOURCE_PANE or $TMUX_PANE)"),
]


def version_callback(value: bool) -> None:
    if value:
        console.print(f"cmdk {__version__}")
        raise typer.Exit()


def resolve_identity(pane: str | None = None) -> str:
    """Pick the surface this invocation belongs to."""
    if pane:
        return pane.strip()
    source = "".join(os.environ.get("COMMAND_K_SOURCE_PANE", "").split())
    if source:
        return source
    return os.environ.get("TMUX_PANE") or os.getcwd()


def fail(exc: Exception) -> None:
    console.print(f"[red]Error:[/red] {escape(str(exc))}")
    raise typer.Exit(1)


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", "-v", callback=version_callback, is_eager=True),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", help="Log debug output to stderr")] = False,
) -> None:
    """Command K - AI command assistant for the terminal."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ensure_dirs()


def _dispatcher(identity: str, nvim_context: Path | None = None):
    from cmdk.clipboard import ClipboardChain
    from cmdk.context.facts import is_tmux_pane
    from cmdk.dispatch import ResponseDispatcher
    from cmdk.editor import EditorHandoff
    from cmdk.session.store import PendingResult, SessionStore
    from cmdk.settings import load_settings
    from cmdk.targets import TmuxPane

    settings = load_settings()
    return ResponseDispatcher(
        store=SessionStore(),
        pending=PendingResult(),
        target=TmuxPane(identity) if is_tmux_pane(identity) else None,
        clipboard=ClipboardChain(settings.clipboard_mechanisms()),
        editor=EditorHandoff(nvim_context) if nvim_context else None,
    )


# ── Interactive ─────────────────────────────────────────────────


@app.command("ask")
def ask(
    pane: PaneOption = None,
    nvim_context: Annotated[
        Optional[Path],
        typer.Option("--nvim-context", help="Context file written by the Neovim plugin"),
    ] = None,
    query: Annotated[
        Optional[str],
        typer.Option("--query", "-q", help="Ask once, print the response and exit"),
    ] = None,
) -> None:
    """Start the interactive assistant.

    With --query, or with a request piped on stdin, ask once and print the
    response instead.
    """
    from cmdk.editor import EditorContext
    from cmdk.loop import InteractionLoop
    from cmdk.session.store import PromptHistory

    identity = resolve_identity(pane)
    try:
        editor_context = EditorContext.from_file(nvim_context) if nvim_context else None
        dispatcher = _dispatcher(identity, nvim_context)
    except CmdkError as exc:
        fail(exc)

    loop = InteractionLoop(
        identity=identity,
        store=dispatcher.store,
        pending=dispatcher.pending,
        prompts=PromptHistory(),
        dispatcher=dispatcher,
        console=console,
        editor_context=editor_context,
    )
    if query is None and nvim_context is None and not sys.stdin.isatty():
        query = sys.stdin.read().strip() or None
    if query:
        try:
            response = loop.query(query)
        except CmdkError as exc:
            fail(exc)
        console.print(response, markup=False, highlight=False, soft_wrap=True)
        return

    try:
        loop.run()
    except (KeyboardInterrupt, EOFError):
        # the host treats any non-zero status as a failure
        console.clear()
        raise typer.Exit(0)


# ── One-shot commands ───────────────────────────────────────────


@app.command("insert")
def insert(pane: PaneOption = None) -> None:
    """Insert the last result into the pane."""
    identity = resolve_identity(pane)
    try:
        dispatcher = _dispatcher(identity)
        last = dispatcher.pending.load()
        if last is None:
            console.print("[red]No previous result to insert[/red]")
            raise typer.Exit(1)
        outcome = dispatcher.insert(last)
    except CmdkError as exc:
        fail(exc)
    if outcome.mode == "keys":
        console.print(f"[green]✓ Sent keys:[/green] {escape(outcome.legend)}")
    else:
        console.print("[green]✓ Inserted to terminal[/green]")


@app.command("context")
def context(pane: PaneOption = None) -> None:
    """Print the context that would be sent with the next request."""
    from cmdk.context.assembler import assemble
    from cmdk.settings import load_settings

    identity = resolve_identity(pane)
    try:
        document = assemble(identity, load_settings().enabled_fields())
    except CmdkError as exc:
        fail(exc)
    console.print(document.render(), markup=False, highlight=False)


@app.command("history")
def history(
    pane: PaneOption = None,
    turns: Annotated[int, typer.Option("--turns", "-n", help="Number of turns to show")] = 20,
) -> None:
    """Show the conversation for a pane."""
    from cmdk.session.store import SessionStore

    try:
        transcript = SessionStore().render(resolve_identity(pane), turns)
    except CmdkError as exc:
        fail(exc)
    if not transcript:
        console.print("[dim]No conversation yet.[/dim]")
        return
    console.print(transcript, markup=False, highlight=False)


@app.command("clear")
def clear(pane: PaneOption = None) -> None:
    """Forget the conversation for a pane."""
    from cmdk.session.store import SessionStore

    try:
        SessionStore().clear(resolve_identity(pane))
    except CmdkError as exc:
        fail(exc)
    console.print("[green]✓ Conversation cleared[/green]")


@app.command("recent")
def recent(
    limit: Annotated[int, typer.Option("--limit", "-l", help="Number of prompts")] = 10,
) -> None:
    """List recently sent prompts."""
    from cmdk.session.store import PromptHistory

    try:
        prompts = PromptHistory().recent(limit)
    except CmdkError as exc:
        fail(exc)
    if not prompts:
        console.print("[dim]No prompts yet.[/dim]")
        return

    table = Table(title="Recent Prompts")
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Prompt")
    for i, prompt in enumerate(prompts, start=1):
        table.add_row(str(i), escape(prompt))
    console.print(table)


@app.command("keys")
def keys(
    text: Annotated[str, typer.Argument(help="Text with <Esc>-style key tags")],
) -> None:
    """Show how a response would be replayed."""
    from cmdk.keys import Named, parse

    table = Table(title="Key Sequence")
    table.add_column("Kind", style="cyan")
    table.add_column("Sends")
    for tag in parse(text):
        if isinstance(tag, Named) and tag.recognized:
            table.add_row("key", tag.key.identifier)
        elif isinstance(tag, Named):
            table.add_row("unknown tag", escape(repr(tag.raw)))
        else:
            table.add_row("text", escape(repr(tag.text)))
    console.print(table)


# ── Settings commands ───────────────────────────────────────────


@settings_app.command("show")
def settings_show() -> None:
    """Print the effective settings."""
    from cmdk.settings import load_settings

    try:
        settings = load_settings()
    except CmdkError as exc:
        fail(exc)

    table = Table(title="Settings")
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="green")
    for key, value in settings.model_dump().items():
        table.add_row(key, escape(str(value)))
    console.print(table)


@settings_app.command("set")
def settings_set(
    key: Annotated[str, typer.Argument(help="Setting name")],
    value: Annotated[str, typer.Argument(help="New value")],
) -> None:
    """Change one setting."""
    from cmdk.settings import set_setting

    try:
        set_setting(key, value)
    except KeyError:
        console.print(f"[red]Unknown setting:[/red] {escape(key)}")
        raise typer.Exit(1)
    except CmdkError as exc:
        fail(exc)
    console.print(f"[green]Set[/green] {escape(key)}={escape(value)}")


@settings_app.command("toggle")
def settings_toggle(
    key: Annotated[str, typer.Argument(help="Boolean setting name")],
) -> None:
    """Flip a privacy toggle."""
    from cmdk.settings import PRIVACY_SETTINGS, toggle_setting

    if key not in dict(PRIVACY_SETTINGS):
        console.print(f"[red]Not a privacy toggle:[/red] {escape(key)}")
        raise typer.Exit(1)
    try:
        enabled = toggle_setting(key)
    except CmdkError as exc:
        fail(exc)
    icon = "[green]✓[/green]" if enabled else "[red]✗[/red]"
    console.print(f"  {icon} {key}")
