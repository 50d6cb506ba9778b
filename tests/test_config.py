"""Tests for configuration loading."""

from pathlib import Path

import pytest

from mungmung.config import MungConfig, is_truthy, load_config
from mungmung.exceptions import ConfigError


class TestDefaults:
    def test_defaults_without_file_or_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        config = load_config(environ={})
        assert config.storage.state_dir == "~/.local/share/mung"
        assert config.actions.fallback_shell == "/bin/sh"
        assert config.debug.actions is False
        assert config.signal.event == "mung_alert_change"
        assert config.notifications.desktop_enabled is True

    def test_state_dir_is_expanded(self):
        config = MungConfig()
        assert config.state_dir == Path("~/.local/share/mung").expanduser()


class TestEnvironment:
    def test_env_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        env = {
            "MUNG_DIR": str(tmp_path / "state"),
            "MUNG_ON_CLICK_SHELL": "/bin/zsh",
            "SHELL": "/bin/bash",
            "MUNG_ON_CLICK_CWD": "/tmp",
            "MUNG_DEBUG_ACTIONS": "yes",
            "MUNG_DEBUG_LIFECYCLE": "ON",
        }
        config = load_config(path=None, environ=env)
        assert config.state_dir == tmp_path / "state"
        assert config.actions.shell_override == "/bin/zsh"
        assert config.actions.login_shell == "/bin/bash"
        assert config.actions.working_directory == "/tmp"
        assert config.debug.actions is True
        assert config.debug.lifecycle is True

    def test_blank_env_is_ignored(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        config = load_config(environ={"MUNG_DIR": "   ", "MUNG_ON_CLICK_SHELL": ""})
        assert config.storage.state_dir == "~/.local/share/mung"
        assert config.actions.shell_override == ""

    @pytest.mark.parametrize("value", ["1", "true", "YES", " on "])
    def test_truthy(self, value):
        assert is_truthy(value)

    @pytest.mark.parametrize("value", ["0", "false", "no", "off", "", None, "2"])
    def test_not_truthy(self, value):
        assert not is_truthy(value)


class TestConfigFile:
    def test_yaml_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "storage:\n"
            "  state_dir: /var/tmp/mung\n"
            "notifications:\n"
            "  app_name: Alerts\n"
            "signal:\n"
            "  enabled: false\n"
        )
        config = load_config(path, environ={})
        assert config.storage.state_dir == "/var/tmp/mung"
        assert config.notifications.app_name == "Alerts"
        assert config.signal.enabled is False

    def test_env_beats_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("storage:\n  state_dir: /from/file\n")
        config = load_config(path, environ={"MUNG_DIR": "/from/env"})
        assert config.storage.state_dir == "/from/env"

    def test_interpolation(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("actions:\n  working_directory: ${PROJECTS}/work\n")
        config = load_config(path, environ={"PROJECTS": "/home/me/src"})
        assert config.actions.working_directory == "/home/me/src/work"

    def test_mung_config_env_names_file(self, tmp_path):
        path = tmp_path / "custom.yaml"
        path.write_text("debug:\n  lifecycle: true\n")
        config = load_config(environ={"MUNG_CONFIG": str(path)})
        assert config.debug.lifecycle is True

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(path, environ={}) == MungConfig()

    def test_missing_named_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.yaml", environ={})

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("storage: [unclosed\n")
        with pytest.raises(ConfigError, match="cannot read"):
            load_config(path, environ={})

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(path, environ={})

    def test_invalid_values(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("signal:\n  enabled: [1, 2]\n")
        with pytest.raises(ConfigError, match="invalid configuration"):
            load_config(path, environ={})
