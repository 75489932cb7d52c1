"""Raw facts about a terminal surface: tmux pane state, git, shell history."""

import logging
import os
import re
import shutil
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)

SUBPROCESS_TIMEOUT = 2.0
CAPTURE_LINES = 500
HISTORY_LINES = 20
GIT_STATUS_LINES = 10

_ZSH_EXTENDED = re.compile(r"^: \d+:\d+;")


def _run(args: list[str], cwd: str | None = None) -> str | None:
    """Run a helper command, returning stdout or None when it fails."""
    result = subprocess.run(
        args,
        capture_output=True,
        text=True,
        errors="replace",
        timeout=SUBPROCESS_TIMEOUT,
        cwd=cwd,
    )
    if result.returncode != 0:
        logger.debug("%s exited %d: %s", args[0], result.returncode, result.stderr.strip())
        return None
    return result.stdout


def is_tmux_pane(identity: str | None) -> bool:
    return bool(identity) and identity.startswith("%")


def history_files(shell: str | None = None, home: Path | None = None) -> list[Path]:
    """Candidate history files, the user's own shell first."""
    home = home or Path.home()
    shell = os.path.basename(shell or os.environ.get("SHELL", ""))
    if shell == "zsh":
        return [home / ".zsh_history", home / ".histfile", home / ".bash_history"]
    return [home / ".bash_history", home / ".zsh_history"]


def read_history_tail(path: Path, limit: int = HISTORY_LINES) -> str | None:
    if not path.is_file():
        return None
    lines = path.read_bytes().decode("utf-8", errors="replace").splitlines()
    commands = [_ZSH_EXTENDED.sub("", line) for line in lines if line.strip()]
    return "\n".join(commands[-limit:]) or None


class TerminalFacts:
    """Facts about the surface named by `identity`.

    A tmux pane id (`%3`) is queried through tmux; anything else is treated as
    the local process environment.
    """

    def __init__(self, identity: str | None = None, environ: dict[str, str] | None = None):
        self.identity = identity
        self.environ = os.environ if environ is None else environ
        self._cwd: str | None = None

    @property
    def in_tmux(self) -> bool:
        return is_tmux_pane(self.identity)

    def _tmux_format(self, fmt: str) -> str | None:
        out = _run(["tmux", "display-message", "-p", "-t", self.identity, fmt])
        return out.strip() if out else None

    def shell_type(self) -> str | None:
        shell = self.environ.get("SHELL")
        return os.path.basename(shell) if shell else None

    def working_dir(self) -> str | None:
        if self._cwd is None:
            self._cwd = self._tmux_format("#{pane_current_path}") if self.in_tmux else os.getcwd()
        return self._cwd

    def current_process(self) -> str | None:
        if self.in_tmux:
            return self._tmux_format("#{pane_current_command}")
        return None

    def terminal_size(self) -> str | None:
        if self.in_tmux:
            return self._tmux_format("#{pane_width}x#{pane_height}")
        size = shutil.get_terminal_size()
        return f"{size.columns}x{size.lines}"

    def env_var_names(self) -> str | None:
        # names only, values never leave this process
        return " ".join(sorted(self.environ)) or None

    def git_status(self) -> str | None:
        cwd = self.working_dir()
        if not cwd or _run(["git", "rev-parse", "--git-dir"], cwd=cwd) is None:
            return None
        lines = []
        branch = (_run(["git", "branch", "--show-current"], cwd=cwd) or "").strip()
        if branch:
            lines.append(f"Branch: {branch}")
        status = (_run(["git", "status", "--short"], cwd=cwd) or "").splitlines()
        if status:
            lines.append("Modified files:")
            lines.extend(status[:GIT_STATUS_LINES])
        return "\n".join(lines) or None

    def shell_history(self) -> str | None:
        for path in history_files(self.environ.get("SHELL")):
            history = read_history_tail(path)
            if history:
                return history
        return None

    def terminal_content(self) -> str | None:
        if not self.in_tmux:
            return None
        out = _run(["tmux", "capture-pane", "-t", self.identity, "-p", "-S", f"-{CAPTURE_LINES}"])
        if not out:
            return None
        lines = out.rstrip("\n").splitlines()
        return "\n".join(lines[-CAPTURE_LINES:]) or None
