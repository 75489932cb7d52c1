"""Configuration and directory management for cmdk."""

import os
from pathlib import Path

CMDK_DIR = Path(os.environ.get("COMMAND_K_HISTORY_DIR") or Path.home() / ".command-k")
SETTINGS_PATH = CMDK_DIR / "settings.conf"
RESULT_PATH = CMDK_DIR / "last-result.txt"
PROMPT_HISTORY_PATH = CMDK_DIR / "prompt_history"
SESSIONS_DIR = CMDK_DIR / "sessions"

# Seconds of inactivity after which a conversation starts over
SESSION_TIMEOUT = 3600

# Processes whose pane content ends in an editable command line
SHELL_PROCESSES = ("bash", "zsh", "fish", "sh")

# Foreground process -> surface type
SURFACE_TYPES = {
    "vim": "editor",
    "nvim": "editor",
    "vi": "editor",
    "python": "python-repl",
    "python3": "python-repl",
    "ipython": "python-repl",
    "node": "node-repl",
    "psql": "sql-repl",
    "mysql": "sql-repl",
    "sqlite3": "sql-repl",
    "ssh": "remote-shell",
    "mosh": "remote-shell",
    **{name: "shell" for name in SHELL_PROCESSES},
}


def ensure_dirs() -> None:
    """Ensure the cmdk directory structure exists."""
    CMDK_DIR.mkdir(parents=True, exist_ok=True)
    SESSIONS_DIR.mkdir(parents=True, exist_ok=True)


def classify_process(name: str | None) -> str:
    """Map a foreground process name to its surface type."""
    if not name:
        return "unknown"
    return SURFACE_TYPES.get(os.path.basename(name.strip()), "unknown")


def is_shell(name: str | None) -> bool:
    return classify_process(name) == "shell"
