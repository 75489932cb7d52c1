"""Neovim hand-off: read the context the plugin wrote, write back the result.

The plugin writes `CMDK_NVIM_*=value` lines (newlines escaped as `\\n`) to a
context file, runs cmdk, then reads `<file>.result` and `<file>.action`.
"""

import logging
from dataclasses import dataclass, fields
from pathlib import Path

from cmdk.context.models import Section
from cmdk.errors import StorageFailure
from cmdk.keys import contains_special_keys
from cmdk.session.store import atomic_write_text

logger = logging.getLogger(__name__)

BUFFER_LIMIT = 5000

ACTIONS = ("insert", "replace", "run", "copy")


@dataclass
class EditorContext:
    filepath: str | None = None
    filename: str | None = None
    filetype: str | None = None
    cursor_line: int | None = None
    cursor_col: int | None = None
    current_line: str | None = None
    visual_selection: str | None = None
    lsp_diagnostics: str | None = None
    buffer_content: str | None = None

    @classmethod
    def from_file(cls, path: Path) -> "EditorContext":
        try:
            content = path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            raise StorageFailure(f"Failed to read nvim context file {path}: {exc}") from exc

        env: dict[str, str] = {}
        for line in content.splitlines():
            key, sep, value = line.partition("=")
            if sep:
                env[key] = value.replace("\\n", "\n")

        ctx = cls()
        for f in fields(cls):
            value = env.get(f"CMDK_NVIM_{f.name.upper()}")
            if not value:
                continue
            if f.name in ("cursor_line", "cursor_col"):
                try:
                    setattr(ctx, f.name, int(value))
                except ValueError:
                    logger.debug("Ignoring bad %s: %r", f.name, value)
            else:
                setattr(ctx, f.name, value)

        buffer_file = env.get("CMDK_NVIM_BUFFER_FILE")
        if buffer_file and Path(buffer_file).is_file():
            ctx.buffer_content = Path(buffer_file).read_text(errors="replace")
        return ctx

    def render_body(self) -> str:
        out = []
        if self.filepath:
            out.append(f"**File:** {self.filepath}")
        if self.filetype:
            out.append(f"**Filetype:** {self.filetype}")
        if self.cursor_line is not None and self.cursor_col is not None:
            out.append(f"**Cursor Position:** Line {self.cursor_line}, Column {self.cursor_col}")
        for title, body in (
            ("Current Line", self.current_line),
            ("Selected Text", self.visual_selection),
            ("LSP Diagnostics", self.lsp_diagnostics),
        ):
            if body:
                out.append(f"\n**{title}:**\n```\n{body}\n```")
        if self.buffer_content:
            content = self.buffer_content
            if len(content) > BUFFER_LIMIT:
                content = content[:BUFFER_LIMIT] + "...\n(truncated)"
            out.append(f"\n**Buffer Content:**\n```{self.filetype or ''}\n{content}\n```")
        return "\n".join(out).strip("\n")

    def render(self) -> str:
        return f"## Neovim Context\n\n{self.render_body()}"

    def section(self) -> Section:
        return Section("editor", "Neovim Context", self.render_body(), block=True, fenced=False)


class EditorHandoff:
    """Writes the chosen result and action next to the plugin's context file."""

    def __init__(self, context_file: Path):
        self.context_file = context_file

    @property
    def result_path(self) -> Path:
        return self.context_file.with_name(self.context_file.name + ".result")

    @property
    def action_path(self) -> Path:
        return self.context_file.with_name(self.context_file.name + ".action")

    def write(self, action: str, result: str) -> None:
        if action not in ACTIONS:
            raise ValueError(f"Unknown editor action: {action}")
        try:
            atomic_write_text(self.result_path, result)
            atomic_write_text(self.action_path, action)
        except OSError as exc:
            raise StorageFailure(f"Failed to hand result to nvim: {exc}") from exc

    def insert(self, result: str) -> str:
        """Hand over for insertion, or as keystrokes when it holds key tags."""
        action = "run" if contains_special_keys(result) else "insert"
        self.write(action, result)
        return action
