"""The interactive prompt: read a request, ask the backend, act on the reply."""

import logging
import shutil
from pathlib import Path
from typing import Callable

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule

from cmdk import settings as settings_mod
from cmdk.backends import Backend, resolve_backend
from cmdk.context.assembler import Facts, assemble
from cmdk.context.models import ContextDocument
from cmdk.dispatch import ResponseDispatcher
from cmdk.editor import EditorContext
from cmdk.errors import (
    BackendInvocationFailed,
    BackendUnavailable,
    ClipboardUnavailable,
    CmdkError,
    StorageFailure,
    TargetUnreachable,
)
from cmdk.query import SYSTEM_INSTRUCTIONS, build
from cmdk.session.store import PendingResult, PromptHistory, SessionStore

logger = logging.getLogger(__name__)

HISTORY_TURNS = 20

QUIT_COMMANDS = ("/quit", "/exit", "/q")

# What the action menu resolved to
FOLLOW_UP = "follow-up"
NEW_SESSION = "new-session"
DONE = "done"


def _read_key(prompt: str) -> str:
    click.echo(prompt, nl=False)
    ch = click.getchar()
    click.echo()
    return ch


class InteractionLoop:
    def __init__(
        self,
        identity: str,
        store: SessionStore,
        pending: PendingResult,
        prompts: PromptHistory,
        dispatcher: ResponseDispatcher,
        console: Console | None = None,
        read_line: Callable[[str], str] | None = None,
        read_key: Callable[[str], str] | None = None,
        settings_path: Path | None = None,
        facts: Facts | None = None,
        editor_context: EditorContext | None = None,
        which: Callable[[str], str | None] = shutil.which,
        instructions: str = SYSTEM_INSTRUCTIONS,
    ):
        self.identity = identity
        self.store = store
        self.pending = pending
        self.prompts = prompts
        self.dispatcher = dispatcher
        self.console = console or Console()
        self.read_line = read_line or (lambda prompt: self.console.input(prompt))
        self.read_key = read_key or _read_key
        self.settings_path = settings_path
        self.facts = facts
        self.editor_context = editor_context
        self.which = which
        self.instructions = instructions

    # ── Output helpers ───────────────────────────────────────────────

    def error(self, message: object) -> None:
        self.console.print(f"[red]Error:[/red] {escape(str(message))}", highlight=False)

    def provider_name(self, settings: settings_mod.Settings) -> str:
        try:
            backend = resolve_backend(settings.backend_kind(), which=self.which)
        except BackendUnavailable:
            return "None"
        return backend.display_name

    def banner(self) -> None:
        settings = settings_mod.load_settings(self.settings_path)
        self.console.print(
            Panel.fit(
                "[bold]Command K[/bold] - AI Command Assistant",
                subtitle=f"Provider: {self.provider_name(settings)}",
                border_style="cyan",
            )
        )
        self.console.print("  [dim]Commands: [Enter] Send | [Ctrl+C] Cancel | /clear Reset | /insert Last[/dim]")
        self.console.print("  [dim]          /context Show context | /history Conversation | /settings Settings | /recent Prompts[/dim]")
        self.console.print()

        turns = self.store.turn_count(self.identity)
        if turns:
            self.console.print(f"[green]↪ Continuing conversation ({turns} previous turns)[/green]")
            self.console.print("[dim]  Type /clear to start fresh[/dim]")
            self.console.print()

    # ── Context ──────────────────────────────────────────────────────

    def context_document(self, settings: settings_mod.Settings) -> ContextDocument:
        document = assemble(self.identity, settings.enabled_fields(), facts=self.facts)
        if self.editor_context is not None:
            document.sections.append(self.editor_context.section())
        return document

    def show_context(self) -> None:
        document = self.context_document(settings_mod.load_settings(self.settings_path))
        self.console.print(Rule("Current Context", style="dim"))
        self.console.print(document.render(), markup=False, highlight=False)
        self.console.print(Rule("End Context", style="dim"))

    def show_history(self) -> None:
        transcript = self.store.render(self.identity, HISTORY_TURNS)
        if not transcript:
            self.console.print("[dim]No conversation yet.[/dim]")
            return
        self.console.print(Rule("Conversation History", style="dim"))
        self.console.print(transcript, markup=False, highlight=False)
        self.console.print(Rule("End History", style="dim"))

    # ── Settings ─────────────────────────────────────────────────────

    def settings_menu(self) -> None:
        while True:
            settings = settings_mod.load_settings(self.settings_path)
            self.console.print()
            self.console.print(Panel.fit("[bold]Settings[/bold]", border_style="cyan"))
            self.console.print(
                f"[bold]AI Provider:[/bold] [cyan]{settings.ai_provider}[/cyan] "
                f"[dim](using {self.provider_name(settings)})[/dim]"
            )
            self.console.print("  [dim]\\[p] Change provider[/dim]\n")
            self.console.print("[bold]Privacy - Context sent to AI:[/bold]")
            for i, (key, label) in enumerate(settings_mod.PRIVACY_SETTINGS, start=1):
                if getattr(settings, key):
                    self.console.print(f"  [green]\\[{i}] ✓[/green] {label}")
                else:
                    self.console.print(f"  [red]\\[{i}] ✗[/red] {label}")
            self.console.print("\n  [dim]\\[a] Enable all  \\[n] Disable all  \\[q] Back[/dim]")

            choice = self.read_line("> ").strip().lower()
            if choice in ("q", ""):
                return
            if choice == "a":
                settings_mod.set_all_privacy(True, self.settings_path)
            elif choice == "n":
                settings_mod.set_all_privacy(False, self.settings_path)
            elif choice == "p":
                self.choose_provider()
            elif choice.isdigit() and 1 <= int(choice) <= len(settings_mod.PRIVACY_SETTINGS):
                key = settings_mod.PRIVACY_SETTINGS[int(choice) - 1][0]
                settings_mod.toggle_setting(key, self.settings_path)

    def choose_provider(self) -> None:
        self.console.print("Select AI provider:")
        for i, name in enumerate(settings_mod.PROVIDERS, start=1):
            self.console.print(f"  \\[{i}] {name}")
        choice = self.read_line("> ").strip()
        if choice.isdigit() and 1 <= int(choice) <= len(settings_mod.PROVIDERS):
            settings_mod.set_setting("ai_provider", settings_mod.PROVIDERS[int(choice) - 1], self.settings_path)

    # ── Actions ──────────────────────────────────────────────────────

    def insert(self, text: str) -> bool:
        try:
            outcome = self.dispatcher.insert(text)
        except TargetUnreachable as exc:
            self.error(exc)
            return False
        if outcome.mode == "keys":
            self.console.print(f"[green]✓ Sent keys:[/green] {escape(outcome.legend)}", highlight=False)
        else:
            self.console.print("[green]✓ Inserted to terminal[/green]")
        return True

    def copy(self, text: str) -> bool:
        try:
            mechanism = self.dispatcher.copy(text)
        except ClipboardUnavailable as exc:
            self.error(exc)
            return False
        self.console.print(f"[green]✓ Copied to clipboard[/green] [dim]({mechanism})[/dim]")
        return True

    def action_menu(self, response: str) -> str:
        """Offer actions on a response until one ends the menu."""
        while True:
            key = self.read_key("[i]nsert | [c]opy | [f]ollow up | [n]ew session | [q]uit > ")
            key = key[:1].lower()
            if key == "i":
                if self.insert(response):
                    return DONE
            elif key == "c":
                if self.copy(response):
                    return DONE
            elif key == "f":
                return FOLLOW_UP
            elif key == "n":
                self.store.clear(self.identity)
                self.console.print("[green]✓ Started a new conversation[/green]\n")
                return NEW_SESSION
            elif key in ("q", "\x1b"):
                return DONE

    # ── Exchange ─────────────────────────────────────────────────────

    def prepare(self, text: str) -> tuple[Backend, str]:
        """Resolve the backend and build the message for `text`."""
        settings = settings_mod.load_settings(self.settings_path)
        document = self.context_document(settings)
        session = self.store.open(self.identity)
        message = build(self.instructions, document, session, text)
        backend = resolve_backend(settings.backend_kind(), timeout=settings.timeout, which=self.which)
        return backend, message

    def remember_prompt(self, text: str) -> None:
        try:
            self.prompts.add(text)
        except StorageFailure as exc:
            logger.warning("Prompt not saved to history: %s", exc)

    def query(self, text: str) -> str:
        """Send one request without any prompting. Backend errors propagate."""
        self.remember_prompt(text)
        backend, message = self.prepare(text)
        logger.debug("Sending %d chars to %s", len(message), backend.display_name)
        response = backend.invoke(message)
        try:
            self.dispatcher.record(self.identity, text, response)
        except StorageFailure as exc:
            logger.warning("Response not recorded: %s", exc)
        return response

    def exchange(self, text: str) -> str | None:
        """Send one request. Returns the response, or None when it failed."""
        try:
            backend, message = self.prepare(text)
        except BackendUnavailable as exc:
            self.error(exc)
            return None

        self.console.print(f"\n[dim]Thinking... ({backend.display_name})[/dim]\n")
        logger.debug("Sending %d chars to %s", len(message), backend.display_name)
        try:
            response = backend.invoke(message)
        except BackendInvocationFailed as exc:
            self.console.print(f"[red]Error from {backend.display_name}:[/red]")
            self.console.print(str(exc), markup=False, highlight=False)
            return None

        self.console.print(Rule(backend.display_name, style="bold green"))
        self.console.print(response, markup=False, highlight=False)
        self.console.print(Rule(style="bold green"))
        try:
            self.dispatcher.record(self.identity, text, response)
        except StorageFailure as exc:
            self.error(exc)
        return response

    def handle_command(self, command: str) -> bool:
        """Run a slash command. Returns False when the loop should stop."""
        name = command.split()[0].lower()
        if name in QUIT_COMMANDS:
            return False
        if name == "/clear":
            self.store.clear(self.identity)
            self.console.print("[green]✓ Conversation cleared[/green]\n")
        elif name == "/context":
            self.show_context()
        elif name == "/history":
            self.show_history()
        elif name == "/settings":
            self.settings_menu()
            self.banner()
        elif name == "/insert":
            last = self.pending.load()
            if last is None:
                self.console.print("[red]No previous result to insert[/red]\n")
            elif self.insert(last):
                return False
        elif name == "/recent":
            return self.recent(command.split()[1:])
        else:
            self.console.print(
                f"Unknown command: {escape(name)}. "
                "Commands: /clear /context /history /settings /insert /recent /quit"
            )
        return True

    def recent(self, args: list[str]) -> bool:
        """List recent prompts, or send prompt N again."""
        prompts = self.prompts.recent()
        if not prompts:
            self.console.print("[dim]No prompts yet.[/dim]")
            return True
        if not args:
            for i, prompt in enumerate(prompts, start=1):
                self.console.print(f"  [cyan]\\[{i}][/cyan] {escape(prompt)}")
            self.console.print("[dim]  Type /recent N to send one again[/dim]")
            return True
        if not args[0].isdigit() or not 1 <= int(args[0]) <= len(prompts):
            self.console.print(f"[red]No recent prompt {escape(args[0])}[/red]")
            return True
        text = prompts[int(args[0]) - 1]
        self.console.print(f"[dim]↻ {escape(text)}[/dim]")
        return self.submit(text)

    def step(self, text: str) -> bool:
        """Handle one line of input. Returns False when the loop should stop."""
        text = text.strip()
        if not text:
            return True
        if text.startswith("/"):
            return self.handle_command(text)
        return self.submit(text)

    def submit(self, text: str) -> bool:
        """Ask about `text` and run the action menu on the answer."""
        self.remember_prompt(text)
        response = self.exchange(text)
        if response is None:
            return True
        outcome = self.action_menu(response)
        if outcome == NEW_SESSION:
            self.banner()
        return outcome != DONE

    def run(self) -> None:
        self.banner()
        while True:
            self.console.print("[bold yellow]What do you need?[/bold yellow]")
            text = self.read_line("> ")
            try:
                if not self.step(text):
                    return
            except CmdkError as exc:
                self.error(exc)
