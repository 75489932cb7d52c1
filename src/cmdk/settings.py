"""User settings stored as commented key=value lines in settings.conf."""

import logging
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from cmdk import config
from cmdk.backends import BackendKind, parse_backend_kind
from cmdk.errors import StorageFailure

logger = logging.getLogger(__name__)

# Privacy toggles in menu order: (key, label)
PRIVACY_SETTINGS = [
    ("send_terminal_content", "Terminal content (last 500 lines)"),
    ("send_shell_history", "Shell command history"),
    ("send_git_status", "Git repository status"),
    ("send_working_dir", "Working directory path"),
    ("send_env_var_names", "Environment variable names"),
    ("send_shell_type", "Shell type (bash/zsh/fish)"),
    ("send_terminal_size", "Terminal dimensions"),
    ("send_current_process", "Current running process"),
]

PROVIDERS = ["auto", "claude", "codex", "custom", "mock"]

DEFAULT_SETTINGS_FILE = """# Command K Settings

# AI Provider: auto, claude, codex, custom or mock
ai_provider=auto

# Command used when ai_provider=custom (prompt is written to its stdin)
custom_provider_cmd=

# Seconds to wait for the provider, 0 waits forever
backend_timeout=0

# Clipboard mechanisms, tried in order
clipboard_order=pyperclip,xclip,wl-copy,pbcopy,tmux

# --- Privacy Settings ---
# Set to "true" or "false"

# Terminal content (last 500 lines of visible output)
send_terminal_content=true

# Shell command history
send_shell_history=true

# Git repository status
send_git_status=true

# Current working directory
send_working_dir=true

# Environment variable names (values are never sent)
send_env_var_names=true

# Shell type (bash, zsh, fish, etc.)
send_shell_type=true

# Terminal dimensions
send_terminal_size=true

# Current running process
send_current_process=true
"""


class Settings(BaseModel):
    """Effective settings, defaults filled in for missing keys."""

    ai_provider: str = "auto"
    custom_provider_cmd: str = ""
    backend_timeout: float = Field(default=0, ge=0)
    clipboard_order: str = "pyperclip,xclip,wl-copy,pbcopy,tmux"

    send_terminal_content: bool = True
    send_shell_history: bool = True
    send_git_status: bool = True
    send_working_dir: bool = True
    send_env_var_names: bool = True
    send_shell_type: bool = True
    send_terminal_size: bool = True
    send_current_process: bool = True

    def enabled_fields(self) -> dict[str, bool]:
        return {key: getattr(self, key) for key, _ in PRIVACY_SETTINGS}

    def backend_kind(self) -> BackendKind:
        return parse_backend_kind(self.ai_provider, self.custom_provider_cmd)

    def clipboard_mechanisms(self) -> list[str]:
        return [m.strip() for m in self.clipboard_order.split(",") if m.strip()]

    @property
    def timeout(self) -> float | None:
        return self.backend_timeout or None


def _settings_path(path: Path | None) -> Path:
    return path or config.SETTINGS_PATH


def init_settings(path: Path | None = None) -> Path:
    """Write the default settings file if none exists yet."""
    path = _settings_path(path)
    if not path.exists():
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(DEFAULT_SETTINGS_FILE)
        except OSError as exc:
            raise StorageFailure(f"Failed to write settings file {path}: {exc}") from exc
    return path


def read_raw(path: Path | None = None) -> dict[str, str]:
    """Parse key=value lines, skipping comments and blanks."""
    path = _settings_path(path)
    if not path.exists():
        return {}
    try:
        content = path.read_text(errors="replace")
    except OSError as exc:
        raise StorageFailure(f"Failed to read settings file {path}: {exc}") from exc

    values: dict[str, str] = {}
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        values[key.strip()] = value.strip()
    return values


def load_settings(path: Path | None = None) -> Settings:
    """Load settings, falling back to defaults for invalid values."""
    raw = read_raw(init_settings(path))
    known = {k: v for k, v in raw.items() if k in Settings.model_fields}
    try:
        return Settings.model_validate(known)
    except ValidationError as exc:
        bad = {str(err["loc"][0]) for err in exc.errors() if err["loc"]}
        logger.warning("Ignoring invalid settings: %s", ", ".join(sorted(bad)))
        return Settings.model_validate({k: v for k, v in known.items() if k not in bad})


def set_setting(key: str, value: str, path: Path | None = None) -> None:
    """Set one key, keeping comments and the order of other lines."""
    if key not in Settings.model_fields:
        raise KeyError(key)
    path = init_settings(path)
    try:
        lines = path.read_text(errors="replace").splitlines()
    except OSError as exc:
        raise StorageFailure(f"Failed to read settings file {path}: {exc}") from exc

    found = False
    new_lines = []
    for line in lines:
        stripped = line.strip()
        if stripped and not stripped.startswith("#") and "=" in stripped:
            if stripped.partition("=")[0].strip() == key:
                new_lines.append(f"{key}={value}")
                found = True
                continue
        new_lines.append(line)
    if not found:
        new_lines.append(f"{key}={value}")

    try:
        path.write_text("\n".join(new_lines) + "\n")
    except OSError as exc:
        raise StorageFailure(f"Failed to write settings file {path}: {exc}") from exc


def toggle_setting(key: str, path: Path | None = None) -> bool:
    """Flip a boolean setting and return its new value."""
    current = getattr(load_settings(path), key)
    if not isinstance(current, bool):
        raise ValueError(f"{key} is not a boolean setting")
    set_setting(key, "false" if current else "true", path)
    return not current


def set_all_privacy(enabled: bool, path: Path | None = None) -> None:
    for key, _ in PRIVACY_SETTINGS:
        set_setting(key, "true" if enabled else "false", path)
