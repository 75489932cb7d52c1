"""Build the context document from terminal facts and the privacy toggles."""

import logging
import subprocess
from dataclasses import dataclass
from typing import Callable, Protocol

from cmdk.config import classify_process, is_shell
from cmdk.context.facts import TerminalFacts
from cmdk.context.models import ContextDocument, Section

logger = logging.getLogger(__name__)


class Facts(Protocol):
    def shell_type(self) -> str | None: ...
    def working_dir(self) -> str | None: ...
    def current_process(self) -> str | None: ...
    def terminal_size(self) -> str | None: ...
    def env_var_names(self) -> str | None: ...
    def git_status(self) -> str | None: ...
    def shell_history(self) -> str | None: ...
    def terminal_content(self) -> str | None: ...


@dataclass(frozen=True)
class Field:
    name: str
    toggle: str
    title: str
    block: bool = False
    fenced: bool = True


# Order here is the order of the rendered document
FIELDS = [
    Field("shell_type", "send_shell_type", "Shell"),
    Field("working_dir", "send_working_dir", "Working Directory"),
    Field("current_process", "send_current_process", "Current Process"),
    Field("context_type", "send_current_process", "Context Type"),
    Field("terminal_size", "send_terminal_size", "Terminal Size"),
    Field("env_var_names", "send_env_var_names", "Environment Variables (names only)", block=True),
    Field("git_status", "send_git_status", "Git Status", block=True, fenced=False),
    Field("shell_history", "send_shell_history", "Recent Shell History", block=True),
    Field("terminal_content", "send_terminal_content", "Current Terminal Content", block=True),
    Field("command_line", "send_terminal_content", "Current Command Line", block=True),
]

FETCH_ERRORS = (OSError, subprocess.SubprocessError, ValueError)


class _Lookup:
    """Fetches each fact at most once per document."""

    def __init__(self, facts: Facts):
        self.facts = facts
        self.cache: dict[str, str | None] = {}

    def __call__(self, name: str) -> str | None:
        if name not in self.cache:
            getter: Callable[[], str | None] = getattr(self.facts, name)
            try:
                self.cache[name] = getter()
            except FETCH_ERRORS as exc:
                logger.debug("Skipping %s: %s", name, exc)
                self.cache[name] = None
        return self.cache[name]


def _context_type(lookup: _Lookup) -> str | None:
    process = lookup("current_process")
    return classify_process(process) if process else None


def _command_line(lookup: _Lookup) -> str | None:
    if not is_shell(lookup("current_process")):
        return None
    content = lookup("terminal_content")
    if not content:
        return None
    return content.rstrip("\n").splitlines()[-1]


DERIVED = {
    "context_type": _context_type,
    "command_line": _command_line,
}


def assemble(
    target_identity: str,
    enabled_fields: dict[str, bool],
    facts: Facts | None = None,
) -> ContextDocument:
    """Collect every enabled field that yields a non-empty value."""
    lookup = _Lookup(facts or TerminalFacts(target_identity))
    document = ContextDocument()
    for field in FIELDS:
        if not enabled_fields.get(field.toggle, True):
            continue
        derive = DERIVED.get(field.name)
        value = derive(lookup) if derive else lookup(field.name)
        if not value or not value.strip():
            continue
        document.sections.append(
            Section(field.name, field.title, value.rstrip("\n"), block=field.block, fenced=field.fenced)
        )
    logger.debug("Assembled context for %s: %s", target_identity, document.names())
    return document
