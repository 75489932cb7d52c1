"""Tests for the settings file."""

import pytest

from cmdk.backends import Auto, CustomBackend
from cmdk.settings import (
    PRIVACY_SETTINGS,
    Settings,
    init_settings,
    load_settings,
    set_all_privacy,
    set_setting,
    toggle_setting,
)


@pytest.fixture
def path(tmp_path):
    return tmp_path / "settings.conf"


class TestSettingsFile:
    def test_defaults_written(self, path):
        init_settings(path)
        assert "ai_provider=auto" in path.read_text()

        settings = load_settings(path)
        assert settings == Settings()
        assert all(settings.enabled_fields().values())

    def test_set_keeps_comments(self, path):
        init_settings(path)
        set_setting("ai_provider", "mock", path)

        text = path.read_text()
        assert "# Command K Settings" in text
        assert "ai_provider=mock" in text
        assert "ai_provider=auto" not in text
        assert load_settings(path).ai_provider == "mock"

    def test_set_appends_missing_key(self, path):
        path.write_text("# minimal\n")
        set_setting("custom_provider_cmd", "llm -m gpt", path)
        assert load_settings(path).custom_provider_cmd == "llm -m gpt"

    def test_unknown_key(self, path):
        with pytest.raises(KeyError):
            set_setting("send_passwords", "true", path)

    def test_toggle(self, path):
        assert toggle_setting("send_git_status", path) is False
        assert load_settings(path).send_git_status is False
        assert toggle_setting("send_git_status", path) is True

    def test_toggle_non_boolean(self, path):
        with pytest.raises(ValueError):
            toggle_setting("ai_provider", path)

    def test_invalid_value_falls_back(self, path):
        path.write_text("send_git_status=maybe\nsend_shell_history=false\n")
        settings = load_settings(path)
        assert settings.send_git_status is True
        assert settings.send_shell_history is False

    def test_set_all_privacy(self, path):
        set_all_privacy(False, path)
        assert not any(load_settings(path).enabled_fields().values())


class TestSettingsModel:
    def test_enabled_fields_cover_privacy_toggles(self):
        assert set(Settings().enabled_fields()) == {key for key, _ in PRIVACY_SETTINGS}

    def test_backend_kind(self):
        assert Settings().backend_kind() == Auto()
        custom = Settings(ai_provider="custom", custom_provider_cmd="llm")
        assert custom.backend_kind() == CustomBackend("llm")

    def test_clipboard_mechanisms(self):
        settings = Settings(clipboard_order=" xclip, ,pbcopy ")
        assert settings.clipboard_mechanisms() == ["xclip", "pbcopy"]

    def test_timeout(self):
        assert Settings().timeout is None
        assert Settings(backend_timeout=30).timeout == 30

    def test_undecodable_file(self, path):
        path.write_bytes(b"# caf\xc3\nai_provider=mock\n")
        assert load_settings(path).ai_provider == "mock"
