"""File-backed conversation, last-result and prompt history storage."""

import hashlib
import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from cmdk import config
from cmdk.errors import StorageFailure
from cmdk.session.models import Role, Session, Turn, format_turns

logger = logging.getLogger(__name__)


def session_key(identity: str) -> str:
    """Stable file-name-safe key for an identity."""
    return hashlib.sha256(identity.encode("utf-8")).hexdigest()[:16]


def atomic_write_text(path: Path, payload: str) -> None:
    """Replace `path` in one step so concurrent readers see old or new content."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(payload)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class SessionStore:
    """One JSON record per target identity, expired after `timeout` idle seconds."""

    def __init__(
        self,
        directory: Path | None = None,
        clock: Callable[[], float] = time.time,
        timeout: float = config.SESSION_TIMEOUT,
    ):
        self.directory = directory or config.SESSIONS_DIR
        self.clock = clock
        self.timeout = timeout

    def path_for(self, identity: str) -> Path:
        return self.directory / f"session-{session_key(identity)}.json"

    def _read(self, identity: str) -> Session | None:
        path = self.path_for(identity)
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except UnicodeDecodeError as exc:
            logger.warning("Unreadable session record %s, starting fresh: %s", path, exc)
            return None
        except OSError as exc:
            raise StorageFailure(f"Failed to read session {path}: {exc}") from exc

        if not content.strip():
            return None
        try:
            session = Session.model_validate(json.loads(content))
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.warning("Unreadable session record %s, starting fresh: %s", path, exc)
            return None
        if session.identity != identity:
            logger.warning("Session record %s belongs to %r, starting fresh", path, session.identity)
            return None
        return session

    def _write(self, session: Session) -> None:
        path = self.path_for(session.identity)
        try:
            atomic_write_text(path, session.model_dump_json(indent=2))
        except OSError as exc:
            raise StorageFailure(f"Failed to write session {path}: {exc}") from exc

    def is_stale(self, session: Session) -> bool:
        return self.clock() - session.updated_at > self.timeout

    def open(self, identity: str) -> Session:
        """Load the conversation for `identity`, discarding it when stale."""
        session = self._read(identity)
        if session is None:
            return Session(identity=identity)
        if self.is_stale(session):
            logger.info("Discarding stale session for %s", identity)
            self.clear(identity)
            return Session(identity=identity)
        return session

    def append(self, identity: str, role: Role, text: str) -> Session:
        session = self.open(identity)
        session.turns.append(Turn(role=role, text=text))
        session.updated_at = self.clock()
        self._write(session)
        return session

    def clear(self, identity: str) -> None:
        path = self.path_for(identity)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageFailure(f"Failed to delete session {path}: {exc}") from exc

    def turn_count(self, identity: str) -> int:
        """Number of user turns so far, 0 when there is no session."""
        return self.open(identity).user_turns

    def render(self, identity: str, max_turns: int) -> str:
        """The last `max_turns` turns, oldest first."""
        turns = self.open(identity).turns
        if max_turns <= 0:
            return ""
        return format_turns(turns[-max_turns:])


class PendingResult:
    """The most recent backend response, kept apart from any session."""

    def __init__(self, path: Path | None = None):
        self.path = path or config.RESULT_PATH

    def save(self, text: str) -> None:
        try:
            atomic_write_text(self.path, text)
        except OSError as exc:
            raise StorageFailure(f"Failed to save last result {self.path}: {exc}") from exc

    def load(self) -> str | None:
        try:
            content = self.path.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageFailure(f"Failed to read last result {self.path}: {exc}") from exc
        return content if content.strip() else None


class PromptHistory:
    """Append-only log of prompts the user has sent."""

    def __init__(self, path: Path | None = None):
        self.path = path or config.PROMPT_HISTORY_PATH

    def add(self, prompt: str) -> None:
        prompt = prompt.strip()
        if not prompt:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as handle:
                handle.write(prompt.replace("\n", " ") + "\n")
        except OSError as exc:
            raise StorageFailure(f"Failed to update prompt history {self.path}: {exc}") from exc

    def recent(self, limit: int = 10) -> list[str]:
        """Distinct prompts, most recent first."""
        try:
            lines = self.path.read_text(encoding="utf-8", errors="replace").splitlines()
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise StorageFailure(f"Failed to read prompt history {self.path}: {exc}") from exc

        seen: set[str] = set()
        prompts = []
        for line in reversed(lines):
            line = line.strip()
            if not line or line in seen:
                continue
            seen.add(line)
            prompts.append(line)
            if len(prompts) >= limit:
                break
        return prompts
