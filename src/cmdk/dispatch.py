"""Route a backend response: record it, insert it, or copy it."""

import logging
from dataclasses import dataclass

from cmdk.clipboard import ClipboardChain
from cmdk.editor import EditorHandoff
from cmdk.errors import TargetUnreachable
from cmdk.keys import KeyTarget, describe, parse, replay
from cmdk.session.store import PendingResult, SessionStore

logger = logging.getLogger(__name__)


@dataclass
class InsertOutcome:
    mode: str  # "literal", "keys" or the editor action
    events: int
    legend: str = ""


def clean_result(text: str) -> str:
    return text.replace("\r", "").rstrip()


class ResponseDispatcher:
    def __init__(
        self,
        store: SessionStore,
        pending: PendingResult,
        target: KeyTarget | None,
        clipboard: ClipboardChain,
        editor: EditorHandoff | None = None,
    ):
        self.store = store
        self.pending = pending
        self.target = target
        self.clipboard = clipboard
        self.editor = editor

    def record(self, identity: str, user_text: str, response: str) -> None:
        """Keep a successful exchange as the pending result and in the session."""
        self.pending.save(response)
        self.store.append(identity, "user", user_text)
        self.store.append(identity, "assistant", response)

    def insert(self, text: str) -> InsertOutcome:
        text = clean_result(text)
        if self.editor is not None:
            action = self.editor.insert(text)
            return InsertOutcome(mode=action, events=1)
        if self.target is None:
            raise TargetUnreachable("No target pane to insert into")

        sequence = parse(text)
        if sequence.has_special_keys():
            legend = describe(sequence)
            logger.debug("Replaying keys: %s", legend)
            sent = replay(sequence, self.target)
            return InsertOutcome(mode="keys", events=sent, legend=legend)

        if not self.target.send_literal(text):
            raise TargetUnreachable(f"Failed to insert into {self.target!r}")
        return InsertOutcome(mode="literal", events=1)

    def copy(self, text: str) -> str:
        """Copy and return the mechanism used; nvim sets its own registers."""
        if self.editor is not None:
            self.editor.write("copy", clean_result(text))
            return "nvim"
        return self.clipboard.copy(clean_result(text))
