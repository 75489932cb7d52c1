"""Copy text to the system clipboard through the first mechanism that works."""

import logging
import shutil
import subprocess
from typing import Callable

import pyperclip

from cmdk.errors import ClipboardUnavailable

logger = logging.getLogger(__name__)

SUBPROCESS_TIMEOUT = 2.0

# mechanism -> command reading the text on stdin
CLIPBOARD_COMMANDS = {
    "xclip": ["xclip", "-selection", "clipboard"],
    "xsel": ["xsel", "--clipboard", "--input"],
    "wl-copy": ["wl-copy"],
    "pbcopy": ["pbcopy"],
    "tmux": ["tmux", "load-buffer", "-w", "-"],
}

DEFAULT_ORDER = ["pyperclip", "xclip", "wl-copy", "pbcopy", "tmux"]


def _copy_pyperclip(text: str) -> bool:
    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException as exc:
        logger.debug("pyperclip unavailable: %s", exc)
        return False
    return True


class ClipboardChain:
    """Tries each configured mechanism in order."""

    def __init__(
        self,
        order: list[str] | None = None,
        which: Callable[[str], str | None] = shutil.which,
    ):
        self.order = order or list(DEFAULT_ORDER)
        self.which = which

    def _copy_command(self, mechanism: str, text: str) -> bool:
        args = CLIPBOARD_COMMANDS[mechanism]
        if self.which(args[0]) is None:
            return False
        try:
            result = subprocess.run(
                args, input=text, text=True, capture_output=True, timeout=SUBPROCESS_TIMEOUT
            )
        except (subprocess.TimeoutExpired, OSError) as exc:
            logger.debug("%s failed: %s", mechanism, exc)
            return False
        return result.returncode == 0

    def try_mechanism(self, mechanism: str, text: str) -> bool:
        if mechanism == "pyperclip":
            return _copy_pyperclip(text)
        if mechanism in CLIPBOARD_COMMANDS:
            return self._copy_command(mechanism, text)
        logger.warning("Unknown clipboard mechanism: %s", mechanism)
        return False

    def copy(self, text: str) -> str:
        """Copy `text` and return the name of the mechanism that took it."""
        for mechanism in self.order:
            if self.try_mechanism(mechanism, text):
                logger.debug("Copied %d chars with %s", len(text), mechanism)
                return mechanism
        raise ClipboardUnavailable(f"Clipboard not available (tried {', '.join(self.order)})")
