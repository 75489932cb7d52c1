"""Text-generation backends: one blocking subprocess round-trip per query."""

import logging
import os
import shlex
import shutil
import subprocess
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from cmdk.errors import BackendInvocationFailed, BackendUnavailable

logger = logging.getLogger(__name__)

KNOWN_CLIS = ("claude", "codex")


@dataclass(frozen=True)
class Auto:
    """Prefer claude, fall back to codex."""


@dataclass(frozen=True)
class NamedBackend:
    id: str


@dataclass(frozen=True)
class CustomBackend:
    command: str


@dataclass(frozen=True)
class MockBackend:
    pass


BackendKind = Auto | NamedBackend | CustomBackend | MockBackend


def parse_backend_kind(provider: str, custom_command: str = "") -> BackendKind:
    provider = provider.strip().lower()
    if provider in KNOWN_CLIS:
        return NamedBackend(provider)
    if provider == "custom":
        return CustomBackend(custom_command)
    if provider == "mock":
        return MockBackend()
    return Auto()


def _run(args: list[str], message: str, timeout: float | None, label: str) -> subprocess.CompletedProcess:
    logger.debug("Invoking %s: %s", label, args)
    try:
        return subprocess.run(
            args,
            input=message,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as exc:
        raise BackendInvocationFailed(f"{label} did not answer within {timeout:g}s") from exc
    except OSError as exc:
        raise BackendInvocationFailed(f"Failed to run {label}: {exc}") from exc


class Backend(ABC):
    """A resolved backend. `invoke` sends one message and returns the reply."""

    name = "Backend"

    def __init__(self, auto: bool = False, timeout: float | None = None):
        self.auto = auto
        self.timeout = timeout

    @property
    def display_name(self) -> str:
        return f"{self.name} (auto)" if self.auto else self.name

    @abstractmethod
    def invoke(self, message: str) -> str: ...


class ClaudeBackend(Backend):
    name = "Claude"

    def invoke(self, message: str) -> str:
        result = _run(["claude", "--print"], message, self.timeout, "claude")
        if result.returncode != 0:
            raise BackendInvocationFailed(f"Claude error: {result.stderr.strip()}")
        return result.stdout.strip()


class CodexBackend(Backend):
    name = "Codex"

    def invoke(self, message: str) -> str:
        # codex writes its final answer to a file rather than stdout
        fd, output_name = tempfile.mkstemp(prefix="cmdk-codex-", suffix=".txt")
        os.close(fd)
        output = Path(output_name)
        try:
            args = [
                "codex", "exec", "--skip-git-repo-check",
                "--sandbox", "read-only",
                "-o", str(output), "-",
            ]
            result = _run(args, message, self.timeout, "codex")
            response = output.read_text(errors="replace").strip() if output.exists() else ""
        finally:
            output.unlink(missing_ok=True)

        if result.returncode != 0 and not response:
            raise BackendInvocationFailed(f"Codex error: {result.stderr.strip() or 'no output'}")
        if not response:
            raise BackendInvocationFailed("Codex did not produce output")
        return response


class CommandBackend(Backend):
    name = "Custom"

    def __init__(self, command: str, timeout: float | None = None):
        super().__init__(timeout=timeout)
        self.command = command

    def invoke(self, message: str) -> str:
        args = shlex.split(self.command)
        result = _run(args, message, self.timeout, self.command)
        if result.returncode != 0:
            raise BackendInvocationFailed(f"Custom command error: {result.stderr.strip()}")
        return result.stdout.strip()


class EchoBackend(Backend):
    name = "Mock (test)"

    def invoke(self, message: str) -> str:
        lines = message.strip().splitlines()
        last = lines[-1] if lines else "empty"
        return f"echo 'Mock response for: {last}'"


CLI_BACKENDS: dict[str, type[Backend]] = {
    "claude": ClaudeBackend,
    "codex": CodexBackend,
}


def resolve_backend(
    kind: BackendKind,
    timeout: float | None = None,
    which: Callable[[str], str | None] = shutil.which,
) -> Backend:
    """Turn a configured kind into something that can be invoked."""
    match kind:
        case MockBackend():
            return EchoBackend()
        case CustomBackend(command=command):
            if not command.strip():
                raise BackendUnavailable("custom_provider_cmd not set")
            try:
                args = shlex.split(command)
            except ValueError as exc:
                raise BackendUnavailable(f"Invalid custom_provider_cmd: {exc}") from exc
            if which(args[0]) is None:
                raise BackendUnavailable(f"{args[0]} not found in PATH")
            return CommandBackend(command, timeout=timeout)
        case NamedBackend(id=backend_id):
            if backend_id not in CLI_BACKENDS:
                raise BackendUnavailable(f"Unknown provider: {backend_id}")
            if which(backend_id) is None:
                raise BackendUnavailable(f"{backend_id} not found in PATH")
            return CLI_BACKENDS[backend_id](timeout=timeout)
        case Auto():
            for backend_id in KNOWN_CLIS:
                if which(backend_id) is not None:
                    return CLI_BACKENDS[backend_id](auto=True, timeout=timeout)
            raise BackendUnavailable("No AI CLI found (install claude or codex)")
    raise BackendUnavailable(f"Unsupported backend: {kind!r}")
