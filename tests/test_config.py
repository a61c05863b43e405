"""Tests for the configuration module."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

from lspc.config import (
    EngineConfig,
    get_config,
    load_config,
    on_config_reload,
    reload_config,
    reset_config,
)
from lspc.config.merge import deep_merge, merge_configs
from lspc.config.paths import (
    find_upwards,
    get_config_paths,
    get_system_config_path,
    get_user_config_path,
    get_user_settings_path,
)
from lspc.config.schema import DiagnosticStyles, ServerConfig
from lspc.config.servers import language_id_for, syntax_for_path


class TestDeepMerge:
    """Test the deep merge algorithm."""

    def test_simple_override(self) -> None:
        """Test that override values replace base values."""
        result = deep_merge({"a": 1, "b": 2}, {"b": 3, "c": 4})
        assert result == {"a": 1, "b": 3, "c": 4}

    def test_nested_merge(self) -> None:
        """Test that nested dicts are recursively merged."""
        base = {"servers": {"python": {"command": "pylsp", "name": "pylsp"}}}
        override = {"servers": {"python": {"command": "pyright-langserver --stdio"}}}
        result = deep_merge(base, override)
        assert result["servers"]["python"] == {
            "command": "pyright-langserver --stdio",
            "name": "pylsp",
        }

    def test_none_does_not_override(self) -> None:
        """Test that None values in override don't replace base values."""
        assert deep_merge({"a": 1}, {"a": None}) == {"a": 1}

    def test_false_overrides(self) -> None:
        """False replaces a mapping, which is how built-in servers are disabled."""
        assert deep_merge({"a": {"b": 1}}, {"a": False}) == {"a": False}

    def test_list_replaced_not_merged(self) -> None:
        """Test that lists are replaced, not concatenated."""
        assert deep_merge({"items": [1, 2, 3]}, {"items": [4, 5]})["items"] == [4, 5]

    def test_inputs_not_mutated(self) -> None:
        base = {"a": {"b": [1]}}
        result = deep_merge(base, {"c": 1})
        result["a"]["b"].append(2)
        assert base == {"a": {"b": [1]}}

    def test_merge_configs_multiple(self) -> None:
        """Test merging multiple configs in order."""
        result = merge_configs({"a": 1, "b": 2}, {"b": 3}, {}, {"c": 4})
        assert result == {"a": 1, "b": 3, "c": 4}


class TestConfigPaths:
    """Test platform-aware path resolution."""

    def test_windows_system_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "win32")
        monkeypatch.setenv("PROGRAMDATA", "C:\\ProgramData")
        path = get_system_config_path()
        assert path is not None
        assert "ProgramData" in str(path)
        assert path.name == "config.yaml"
        assert path.parent.name == "lspc"

    def test_unix_system_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "linux")
        assert get_system_config_path() == Path("/etc/lspc/config.yaml")

    def test_unix_user_path_xdg(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test user config path respects XDG_CONFIG_HOME."""
        monkeypatch.setattr(sys, "platform", "linux")
        monkeypatch.setenv("XDG_CONFIG_HOME", "/home/test/.config-custom")
        assert get_user_config_path() == Path("/home/test/.config-custom/lspc/config.yaml")
        assert get_user_settings_path() == Path("/home/test/.config-custom/lspc/settings.json")

    def test_unix_user_path_default(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setattr(sys, "platform", "linux")
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))
        assert get_user_config_path() == tmp_path / ".config" / "lspc" / "config.yaml"

    def test_get_config_paths_order(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """System config comes before user config."""
        monkeypatch.setattr(sys, "platform", "linux")
        paths = get_config_paths()
        assert len(paths) == 2
        assert "etc" in paths[0].parts
        assert paths[1] == get_user_config_path()


class TestFindUpwards:
    """Tests for root marker discovery."""

    def test_nearest_match(self, tmp_path: Path) -> None:
        (tmp_path / "repo" / ".git").mkdir(parents=True)
        (tmp_path / "repo" / "pkg" / "sub").mkdir(parents=True)
        (tmp_path / "repo" / "pkg" / "pyproject.toml").touch()
        start = tmp_path / "repo" / "pkg" / "sub"
        assert find_upwards(["pyproject.toml", ".git"], start) == tmp_path / "repo" / "pkg"
        assert find_upwards([".git"], start) == tmp_path / "repo"

    def test_glob_patterns(self, tmp_path: Path) -> None:
        (tmp_path / "app.sln").touch()
        (tmp_path / "src").mkdir()
        assert find_upwards(["*.sln"], tmp_path / "src") == tmp_path

    def test_no_match(self, tmp_path: Path) -> None:
        assert find_upwards(["no-such-marker-file"], tmp_path) is None

    def test_empty_globs_ignored(self, tmp_path: Path) -> None:
        assert find_upwards(["", ""], tmp_path) is None


class TestServers:
    """Tests for the built-in server table helpers."""

    def test_language_ids(self) -> None:
        assert language_id_for("ansi_c") == "c"
        assert language_id_for("python") == "python"

    def test_syntax_for_path(self) -> None:
        assert syntax_for_path("/src/main.PY") == "python"
        assert syntax_for_path("/src/lib.h") == "ansi_c"
        assert syntax_for_path("/src/Makefile") is None

    def test_server_argv(self) -> None:
        server = ServerConfig(syntax="python", name="pylsp", command="pylsp --log-file '/tmp/a b.log'")
        assert server.argv == ["pylsp", "--log-file", "/tmp/a b.log"]
        assert server.executable == "pylsp"


class TestConfigLoading:
    """Test configuration loading."""

    @pytest.fixture
    def user_config(self) -> Path:
        """Path of the user config file inside the isolated XDG home."""
        path = get_user_config_path()
        assert path is not None
        path.parent.mkdir(parents=True, exist_ok=True)
        return path

    def test_defaults(self) -> None:
        config = load_config()
        assert isinstance(config, EngineConfig)
        assert config.autostart is True
        assert config.message_level == 3
        assert config.universal_root_globs == [".git", ".hg"]
        assert config.servers["python"].command == "pylsp"
        assert config.servers["cpp"].name == config.servers["ansi_c"].name == "clangd"

    def test_load_yaml_config(self, user_config: Path) -> None:
        user_config.write_text(
            """
autostart: false
highlight_diagnostics: line
menu_cmd: fzf
logging:
  level: DEBUG
servers:
  python:
    command: pyright-langserver --stdio
    roots: [pyproject.toml]
    settings:
      python: {analysis: {typeCheckingMode: strict}}
  go:
    name: gopls
    command: [gopls, serve]
"""
        )
        config = load_config()
        assert config.autostart is False
        assert config.highlight_diagnostics == "line"
        assert config.menu_cmd == "fzf"
        assert config.logging.level == "DEBUG"

        python = config.servers["python"]
        assert python.command == "pyright-langserver --stdio"
        assert python.name == "python-lsp-server"
        assert python.roots == ["pyproject.toml"]
        assert python.settings == {"python": {"analysis": {"typeCheckingMode": "strict"}}}

        go = config.servers["go"]
        assert go.name == "gopls"
        assert go.argv == ["gopls", "serve"]

    def test_diagnostic_styles(self, user_config: Path) -> None:
        user_config.write_text(
            """
diagnostic_styles:
  warning: "fore:yellow"
  hint: "fore:green,italics"
"""
        )
        config = load_config()
        assert "diagnostic_styles" not in config.extra
        styles = config.diagnostic_styles
        assert styles.error == DiagnosticStyles().error
        assert styles.for_severity(1) == styles.error
        assert styles.for_severity(2) == "fore:yellow"
        assert styles.for_severity(3) == DiagnosticStyles().information
        assert styles.for_severity(4) == "fore:green,italics"
        assert styles.for_severity(None) == styles.error
        assert styles.for_severity(7) == styles.error

    def test_disable_builtin_server(self, user_config: Path) -> None:
        user_config.write_text("servers:\n  lua: false\n")
        config = load_config()
        assert "lua" not in config.servers
        assert "python" in config.servers

    def test_server_without_command_ignored(self, user_config: Path) -> None:
        user_config.write_text("servers:\n  rust:\n    name: rust-analyzer\n")
        assert "rust" not in load_config().servers

    def test_invalid_yaml_uses_defaults(self, user_config: Path) -> None:
        user_config.write_text("autostart: [unclosed\n")
        config = load_config()
        assert config.autostart is True

    def test_extra_fields_preserved(self, user_config: Path) -> None:
        user_config.write_text("custom_key: 1\n")
        assert load_config().extra == {"custom_key": 1}

    def test_log_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LSPC_LOG", "/tmp/lspc-test.log")
        assert load_config().logging.file == "/tmp/lspc-test.log"


class TestConfigCaching:
    """Test config caching behavior."""

    def test_get_config_caches(self) -> None:
        assert get_config() is get_config()

    def test_reset_clears_cache(self) -> None:
        config1 = get_config()
        reset_config()
        assert get_config() is not config1

    def test_reload_notifies(self) -> None:
        seen: list[EngineConfig] = []
        unregister = on_config_reload(seen.append)
        try:
            config = reload_config()
        finally:
            unregister()
        assert seen == [config]
        reload_config()
        assert len(seen) == 1


def test_home_isolated() -> None:
    """The suite never reads the real user configuration."""
    assert "xdg" in os.environ["XDG_CONFIG_HOME"]
