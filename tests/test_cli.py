"""Tests for the cmdk command line."""

import subprocess

import pytest
from typer.testing import CliRunner

import cmdk.targets as targets_mod
from cmdk.cli import app, resolve_identity
from cmdk.session.store import PendingResult, PromptHistory, SessionStore
from cmdk.settings import load_settings, set_all_privacy

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated(cmdk_dir):
    return cmdk_dir


class TestResolveIdentity:
    def test_explicit_pane(self, monkeypatch):
        monkeypatch.setenv("TMUX_PANE", "%1")
        assert resolve_identity("%9") == "%9"

    def test_source_pane_whitespace_is_removed(self, monkeypatch):
        monkeypatch.setenv("COMMAND_K_SOURCE_PANE", " %5\n")
        monkeypatch.setenv("TMUX_PANE", "%1")
        assert resolve_identity() == "%5"

    def test_tmux_pane(self, monkeypatch):
        monkeypatch.delenv("COMMAND_K_SOURCE_PANE", raising=False)
        monkeypatch.setenv("TMUX_PANE", "%1")
        assert resolve_identity() == "%1"

    def test_outside_tmux(self, monkeypatch, tmp_path):
        monkeypatch.delenv("COMMAND_K_SOURCE_PANE", raising=False)
        monkeypatch.delenv("TMUX_PANE", raising=False)
        monkeypatch.chdir(tmp_path)
        assert resolve_identity() == str(tmp_path)


class TestCommands:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "cmdk" in result.output

    def test_keys(self):
        result = runner.invoke(app, ["keys", "<Esc>:wq<Enter>"])
        assert result.exit_code == 0
        assert "Escape" in result.output
        assert "':wq'" in result.output

    def test_insert_without_result(self):
        result = runner.invoke(app, ["insert", "--pane", "%1"])
        assert result.exit_code == 1
        assert "No previous result" in result.output

    def test_insert_outside_tmux(self, tmp_path):
        PendingResult().save("ls")
        result = runner.invoke(app, ["insert", "--pane", str(tmp_path)])
        assert result.exit_code == 1
        assert "No target pane" in result.output

    def test_insert_into_pane(self, monkeypatch):
        calls = []

        def fake_run(args, **kwargs):
            calls.append(args)
            return subprocess.CompletedProcess(args, 0, "", "")

        monkeypatch.setattr(targets_mod.subprocess, "run", fake_run)
        PendingResult().save("git status\n")

        result = runner.invoke(app, ["insert", "--pane", "%3"])
        assert result.exit_code == 0
        assert calls == [["tmux", "send-keys", "-t", "%3", "-l", "git status"]]

    def test_history(self):
        result = runner.invoke(app, ["history", "--pane", "%1"])
        assert "No conversation yet" in result.output

        SessionStore().append("%1", "user", "list files")
        result = runner.invoke(app, ["history", "--pane", "%1"])
        assert "## User: list files" in result.output

    def test_clear(self):
        SessionStore().append("%1", "user", "list files")
        result = runner.invoke(app, ["clear", "--pane", "%1"])
        assert result.exit_code == 0
        assert SessionStore().turn_count("%1") == 0

    def test_recent(self):
        PromptHistory().add("list files")
        result = runner.invoke(app, ["recent"])
        assert result.exit_code == 0
        assert "list files" in result.output

    def test_context_with_everything_disabled(self, tmp_path):
        set_all_privacy(False)
        result = runner.invoke(app, ["context", "--pane", str(tmp_path)])
        assert result.exit_code == 0
        assert result.output.strip() == "## Terminal Context"

    def test_ask_interrupt_exits_cleanly(self, monkeypatch):
        def interrupted(self):
            raise KeyboardInterrupt

        monkeypatch.setattr("cmdk.loop.InteractionLoop.run", interrupted)
        result = runner.invoke(app, ["ask", "--pane", "%1"])
        assert result.exit_code == 0

    def test_ask_with_missing_nvim_context(self, tmp_path):
        result = runner.invoke(app, ["ask", "--nvim-context", str(tmp_path / "missing")])
        assert result.exit_code == 1


class TestSettingsCommands:
    def test_set_and_show(self):
        result = runner.invoke(app, ["settings", "set", "ai_provider", "mock"])
        assert result.exit_code == 0
        assert load_settings().ai_provider == "mock"

        result = runner.invoke(app, ["settings", "show"])
        assert "mock" in result.output

    def test_set_unknown_key(self):
        result = runner.invoke(app, ["settings", "set", "colour", "blue"])
        assert result.exit_code == 1
        assert "Unknown setting" in result.output

    def test_toggle(self):
        result = runner.invoke(app, ["settings", "toggle", "send_git_status"])
        assert result.exit_code == 0
        assert load_settings().send_git_status is False

    def test_toggle_rejects_non_privacy_key(self):
        result = runner.invoke(app, ["settings", "toggle", "ai_provider"])
        assert result.exit_code == 1


class TestOneShot:
    MOCK_REPLY = "echo 'Mock response for: ## User: list files'"

    @pytest.fixture(autouse=True)
    def mock_provider(self, isolated):
        set_all_privacy(False)
        runner.invoke(app, ["settings", "set", "ai_provider", "mock"])

    def test_query_prints_and_records(self, tmp_path):
        result = runner.invoke(app, ["ask", "--pane", str(tmp_path), "--query", "list files"])
        assert result.exit_code == 0
        assert self.MOCK_REPLY in result.output

        assert PendingResult().load() == self.MOCK_REPLY
        assert SessionStore().turn_count(str(tmp_path)) == 1
        assert PromptHistory().recent() == ["list files"]

    def test_piped_stdin(self, tmp_path):
        result = runner.invoke(app, ["ask", "--pane", str(tmp_path)], input="list files\n")
        assert result.exit_code == 0
        assert self.MOCK_REPLY in result.output

    def test_follow_up_sees_previous_turn(self, tmp_path):
        runner.invoke(app, ["ask", "--pane", str(tmp_path), "-q", "list files"])
        runner.invoke(app, ["ask", "--pane", str(tmp_path), "-q", "only hidden ones"])
        assert SessionStore().turn_count(str(tmp_path)) == 2

    def test_unavailable_backend(self, tmp_path):
        runner.invoke(app, ["settings", "set", "ai_provider", "custom"])
        result = runner.invoke(app, ["ask", "--pane", str(tmp_path), "--query", "list files"])
        assert result.exit_code == 1
        assert "custom_provider_cmd not set" in result.output
        assert PendingResult().load() is None
