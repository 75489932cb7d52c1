"""Live target surfaces that receive typed text and key presses."""

import logging
import subprocess

from cmdk.keys import ALT, BACKSPACE, CONTROL, DELETE, ESCAPE, Key

logger = logging.getLogger(__name__)

# Vocabulary names that tmux spells differently
TMUX_KEY_NAMES = {
    ESCAPE: "Escape",
    BACKSPACE: "BSpace",
    DELETE: "DC",
}


def tmux_key_name(key: Key) -> str:
    if key.modifier == CONTROL:
        return f"C-{key.name}"
    if key.modifier == ALT:
        return f"M-{key.name}"
    return TMUX_KEY_NAMES.get(key, key.name)


class TmuxPane:
    """A tmux pane driven through `tmux send-keys`."""

    def __init__(self, pane_id: str):
        self.pane_id = pane_id

    def __repr__(self) -> str:
        return f"TmuxPane({self.pane_id!r})"

    def _send_keys(self, *args: str) -> bool:
        try:
            result = subprocess.run(
                ["tmux", "send-keys", "-t", self.pane_id, *args],
                capture_output=True,
                text=True,
            )
        except OSError as exc:
            logger.warning("tmux send-keys failed: %s", exc)
            return False
        if result.returncode != 0:
            logger.warning("tmux send-keys to %s failed: %s", self.pane_id, result.stderr.strip())
            return False
        return True

    def send_literal(self, text: str) -> bool:
        if not text:
            return True
        return self._send_keys("-l", text)

    def send_named_key(self, key: Key) -> bool:
        return self._send_keys(tmux_key_name(key))
