"""Shared fixtures: isolated data directory and fake collaborators."""

import pytest


class FakeTarget:
    """Records sends; the call at index `fail_on` reports failure."""

    def __init__(self, fail_on: int | None = None):
        self.calls = []
        self.fail_on = fail_on

    def _record(self, call) -> bool:
        if self.fail_on is not None and len(self.calls) == self.fail_on:
            return False
        self.calls.append(call)
        return True

    def send_literal(self, text):
        return self._record(("literal", text))

    def send_named_key(self, key):
        return self._record(("key", key))


class FakeFacts:
    """Facts from a dict; an exception value is raised when fetched."""

    DEFAULTS = {
        "shell_type": "zsh",
        "working_dir": "/home/user/project",
        "current_process": "zsh",
        "terminal_size": "120x40",
        "env_var_names": "HOME PATH SHELL",
        "git_status": "Branch: main\nModified files:\n M app.py",
        "shell_history": "ls\ngit log",
        "terminal_content": "user@host$ make\nok\nuser@host$ git sta",
    }

    def __init__(self, **overrides):
        self.values = {**self.DEFAULTS, **overrides}
        self.fetched = []

    def __getattr__(self, name):
        if name not in FakeFacts.DEFAULTS:
            raise AttributeError(name)

        def fetch():
            self.fetched.append(name)
            value = self.values.get(name)
            if isinstance(value, Exception):
                raise value
            return value

        return fetch


class FakeClipboard:
    def __init__(self, available: bool = True):
        self.available = available
        self.copied = []

    def copy(self, text):
        from cmdk.errors import ClipboardUnavailable

        if not self.available:
            raise ClipboardUnavailable("Clipboard not available")
        self.copied.append(text)
        return "fake"


@pytest.fixture
def cmdk_dir(tmp_path, monkeypatch):
    """Point every cmdk path at a temp directory."""
    import cmdk.config as config

    monkeypatch.setattr(config, "CMDK_DIR", tmp_path)
    monkeypatch.setattr(config, "SETTINGS_PATH", tmp_path / "settings.conf")
    monkeypatch.setattr(config, "RESULT_PATH", tmp_path / "last-result.txt")
    monkeypatch.setattr(config, "PROMPT_HISTORY_PATH", tmp_path / "prompt_history")
    monkeypatch.setattr(config, "SESSIONS_DIR", tmp_path / "sessions")
    return tmp_path


@pytest.fixture
def target():
    return FakeTarget()


@pytest.fixture
def facts():
    return FakeFacts()


@pytest.fixture
def clipboard():
    return FakeClipboard()


@pytest.fixture
def make_clipboard():
    return FakeClipboard


@pytest.fixture
def make_facts():
    return FakeFacts


@pytest.fixture
def make_target():
    return FakeTarget
