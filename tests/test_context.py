"""Tests for context assembly and terminal facts."""

import pytest

from cmdk.config import classify_process, is_shell
from cmdk.context.assembler import FIELDS, assemble
from cmdk.context.facts import TerminalFacts, history_files, is_tmux_pane, read_history_tail
from cmdk.context.models import ContextDocument, Section
from cmdk.settings import PRIVACY_SETTINGS

ALL_OFF = {key: False for key, _ in PRIVACY_SETTINGS}


class TestAssemble:
    def test_all_fields_disabled(self, facts):
        document = assemble("%1", ALL_OFF, facts=facts)
        assert len(document) == 0
        assert facts.fetched == []

    def test_only_working_dir(self, facts):
        document = assemble("%1", {**ALL_OFF, "send_working_dir": True}, facts=facts)
        assert document.names() == ["working_dir"]
        assert document.get("working_dir").body == "/home/user/project"

    def test_unspecified_fields_default_to_enabled(self, facts):
        document = assemble("%1", {}, facts=facts)
        assert document.names() == [f.name for f in FIELDS]

    def test_order_follows_schema(self, facts):
        document = assemble("%1", {"send_shell_history": True, "send_shell_type": True}, facts=facts)
        names = document.names()
        assert names.index("shell_type") < names.index("working_dir") < names.index("shell_history")

    def test_command_line_for_shell(self, facts):
        document = assemble("%1", {}, facts=facts)
        assert document.get("command_line").body == "user@host$ git sta"
        assert document.get("context_type").body == "shell"

    def test_no_command_line_outside_shell(self, make_facts):
        facts = make_facts(current_process="nvim")
        document = assemble("%1", {}, facts=facts)
        assert document.get("command_line") is None
        assert document.get("context_type").body == "editor"

    def test_failed_fetch_omits_section(self, make_facts):
        facts = make_facts(git_status=OSError("git not installed"))
        document = assemble("%1", {}, facts=facts)
        assert document.get("git_status") is None
        assert document.get("working_dir") is not None

    def test_empty_value_omits_section(self, make_facts):
        facts = make_facts(shell_history="", terminal_content=None)
        document = assemble("%1", {}, facts=facts)
        assert document.get("shell_history") is None
        assert document.get("terminal_content") is None
        assert document.get("command_line") is None

    def test_disabled_process_hides_context_type(self, facts):
        document = assemble("%1", {"send_current_process": False}, facts=facts)
        assert document.get("current_process") is None
        assert document.get("context_type") is None

    def test_each_fact_fetched_once(self, facts):
        assemble("%1", {}, facts=facts)
        assert facts.fetched.count("current_process") == 1
        assert facts.fetched.count("terminal_content") == 1

    def test_env_values_never_sent(self):
        facts = TerminalFacts("/tmp", environ={"SECRET_TOKEN": "hunter2", "HOME": "/home/u"})
        document = assemble("/tmp", {**ALL_OFF, "send_env_var_names": True}, facts=facts)
        rendered = document.render()
        assert "SECRET_TOKEN" in rendered
        assert "hunter2" not in rendered
        assert "/home/u" not in rendered


class TestContextDocument:
    def test_render(self):
        document = ContextDocument(
            sections=[
                Section("working_dir", "Working Directory", "/srv"),
                Section("shell_history", "Recent Shell History", "ls", block=True),
            ]
        )
        assert document.render() == (
            "## Terminal Context\n\n"
            "**Working Directory:** /srv\n"
            "\n### Recent Shell History\n```\nls\n```\n"
        )

    def test_empty_document(self):
        assert ContextDocument().render() == "## Terminal Context\n\n"


class TestClassifyProcess:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("nvim", "editor"),
            ("vim", "editor"),
            ("zsh", "shell"),
            ("/usr/bin/bash", "shell"),
            ("ipython", "python-repl"),
            ("node", "node-repl"),
            ("psql", "sql-repl"),
            ("ssh", "remote-shell"),
            ("htop", "unknown"),
            ("", "unknown"),
            (None, "unknown"),
        ],
    )
    def test_classify(self, name, expected):
        assert classify_process(name) == expected

    def test_is_shell(self):
        assert is_shell("fish")
        assert not is_shell("vim")


class TestTerminalFacts:
    def test_is_tmux_pane(self):
        assert is_tmux_pane("%12")
        assert not is_tmux_pane("/home/user")
        assert not is_tmux_pane(None)

    def test_shell_type(self):
        assert TerminalFacts(environ={"SHELL": "/usr/bin/zsh"}).shell_type() == "zsh"
        assert TerminalFacts(environ={}).shell_type() is None

    def test_env_var_names_sorted(self):
        facts = TerminalFacts(environ={"B": "2", "A": "1"})
        assert facts.env_var_names() == "A B"

    def test_outside_tmux_has_no_pane_content(self):
        assert TerminalFacts("/tmp", environ={}).terminal_content() is None
        assert TerminalFacts("/tmp", environ={}).current_process() is None


class TestShellHistory:
    def test_zsh_extended_format(self, tmp_path):
        path = tmp_path / ".zsh_history"
        path.write_text(": 1700000000:0;git status\n: 1700000001:0;ls -la\nplain\n")
        assert read_history_tail(path) == "git status\nls -la\nplain"

    def test_tail_limit(self, tmp_path):
        path = tmp_path / ".bash_history"
        path.write_text("\n".join(f"cmd{i}" for i in range(30)) + "\n")
        assert read_history_tail(path, limit=3) == "cmd27\ncmd28\ncmd29"

    def test_missing_file(self, tmp_path):
        assert read_history_tail(tmp_path / "missing") is None

    def test_user_shell_first(self, tmp_path):
        assert history_files("/bin/zsh", home=tmp_path)[0] == tmp_path / ".zsh_history"
        assert history_files("/bin/bash", home=tmp_path)[0] == tmp_path / ".bash_history"
