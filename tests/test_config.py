"""Tests for the credscript config loader (credscript.yaml)."""

from pathlib import Path

import pytest

from credscript.config import (
    ConfigError,
    EngineConfig,
    build_engine,
    find_config,
    load_config,
)
from credscript.redaction import SecretRedactor
from credscript.runner.executor import DryRunExecutor
from credscript.runner.script_executor import DEFAULT_INTERPRETER, ScriptExecutor

# --- find_config ---


class TestFindConfig:
    def test_finds_in_start_dir(self, tmp_path: Path):
        cfg = tmp_path / "credscript.yaml"
        cfg.write_text("timeout: 5\n", encoding="utf-8")
        assert find_config(tmp_path) == cfg

    def test_finds_in_parent(self, tmp_path: Path):
        cfg = tmp_path / "credscript.yaml"
        cfg.write_text("timeout: 5\n", encoding="utf-8")
        child = tmp_path / "sub" / "deep"
        child.mkdir(parents=True)
        assert find_config(child) == cfg

    def test_returns_none_when_missing(self, tmp_path: Path):
        assert find_config(tmp_path) is None

    def test_ignores_directories_named_config(self, tmp_path: Path):
        """A directory named credscript.yaml should not match."""
        (tmp_path / "credscript.yaml").mkdir()
        assert find_config(tmp_path) is None


# --- load_config ---


class TestLoadConfig:
    def test_explicit_path(self, tmp_path: Path):
        cfg_path = tmp_path / "credscript.yaml"
        cfg_path.write_text(
            "interpreter: [/bin/sh, -c]\n"
            "timeout: 5\n"
            "root_prefix: admin_\n"
            "username_max_length: 32\n"
            "export_env: false\n"
            "root:\n"
            "  username: root\n"
            "  password: rootpw\n"
            "  port: 5432\n",
            encoding="utf-8",
        )
        cfg = load_config(cfg_path)
        assert cfg.config_path == cfg_path
        assert cfg.interpreter == ("/bin/sh", "-c")
        assert cfg.timeout == 5.0
        assert cfg.root_prefix == "admin_"
        assert cfg.username_max_length == 32
        assert cfg.export_env is False
        assert cfg.root == {"username": "root", "password": "rootpw", "port": 5432}

    def test_explicit_path_not_found(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError, match="not found"):
            load_config(tmp_path / "nope.yaml")

    def test_auto_discover(self, tmp_path: Path, monkeypatch):
        cfg_path = tmp_path / "credscript.yaml"
        cfg_path.write_text("timeout: 7\n", encoding="utf-8")
        child = tmp_path / "sub"
        child.mkdir()
        monkeypatch.chdir(child)
        cfg = load_config()
        assert cfg.config_path == cfg_path
        assert cfg.timeout == 7.0

    def test_auto_discover_disabled(self, tmp_path: Path, monkeypatch):
        (tmp_path / "credscript.yaml").write_text("timeout: 7\n", encoding="utf-8")
        monkeypatch.chdir(tmp_path)
        cfg = load_config(auto_discover=False)
        assert cfg == EngineConfig()

    def test_defaults(self, tmp_path: Path):
        cfg_path = tmp_path / "credscript.yaml"
        cfg_path.write_text("", encoding="utf-8")
        cfg = load_config(cfg_path)
        assert cfg.interpreter == DEFAULT_INTERPRETER
        assert cfg.timeout == 20.0
        assert cfg.root_prefix == "root_"
        assert cfg.username_max_length == 64
        assert cfg.export_env is True
        assert cfg.root == {}

    def test_null_timeout_disables(self, tmp_path: Path):
        cfg_path = tmp_path / "credscript.yaml"
        cfg_path.write_text("timeout: null\n", encoding="utf-8")
        assert load_config(cfg_path).timeout is None

    def test_empty_prefix(self, tmp_path: Path):
        cfg_path = tmp_path / "credscript.yaml"
        cfg_path.write_text("root_prefix: ''\n", encoding="utf-8")
        assert load_config(cfg_path).root_prefix == ""

    def test_string_interpreter(self, tmp_path: Path):
        cfg_path = tmp_path / "credscript.yaml"
        cfg_path.write_text("interpreter: /usr/bin/run-script\n", encoding="utf-8")
        assert load_config(cfg_path).interpreter == ("/usr/bin/run-script",)

    def test_non_mapping_rejected(self, tmp_path: Path):
        cfg_path = tmp_path / "credscript.yaml"
        cfg_path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(cfg_path)

    def test_root_must_be_mapping(self, tmp_path: Path):
        cfg_path = tmp_path / "credscript.yaml"
        cfg_path.write_text("root: [a, b]\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="'root'"):
            load_config(cfg_path)

    @pytest.mark.parametrize(
        ("key", "value"),
        [
            ("timeout", "soon"),
            ("timeout", "[1, 2]"),
            ("timeout", "true"),
            ("username_max_length", "long"),
            ("username_max_length", "{a: 1}"),
        ],
    )
    def test_non_numeric_values_name_the_key(self, tmp_path: Path, key, value):
        cfg_path = tmp_path / "credscript.yaml"
        cfg_path.write_text(f"{key}: {value}\n", encoding="utf-8")
        with pytest.raises(ConfigError, match=f"'{key}' must be a number"):
            load_config(cfg_path)

    def test_negative_timeout_rejected(self, tmp_path: Path):
        cfg_path = tmp_path / "credscript.yaml"
        cfg_path.write_text("timeout: -1\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="'timeout'"):
            load_config(cfg_path)

    def test_username_max_length_below_minimum(self, tmp_path: Path):
        cfg_path = tmp_path / "credscript.yaml"
        cfg_path.write_text("username_max_length: 8\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="at least 16"):
            load_config(cfg_path)

    def test_invalid_yaml(self, tmp_path: Path):
        cfg_path = tmp_path / "credscript.yaml"
        cfg_path.write_text("root: {unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(cfg_path)


# --- build_engine ---


class TestBuildEngine:
    def test_wires_script_executor(self):
        cfg = EngineConfig(interpreter=("/bin/sh", "-c"), timeout=3.0)
        engine = build_engine(cfg)
        assert isinstance(engine, SecretRedactor)
        executor = engine.manager.executor
        assert isinstance(executor, ScriptExecutor)
        assert executor.interpreter == ("/bin/sh", "-c")
        assert executor.timeout == 3.0

    def test_dry_run(self):
        engine = build_engine(EngineConfig(), dry_run=True)
        assert isinstance(engine.manager.executor, DryRunExecutor)

    def test_explicit_executor(self):
        dry = DryRunExecutor()
        assert build_engine(EngineConfig(), executor=dry).manager.executor is dry

    def test_root_prefix_applied(self):
        engine = build_engine(EngineConfig(root_prefix="admin_"), dry_run=True)
        engine.initialize({"username": "root"})
        assert engine.manager.store.derive_parameters()["admin_username"] == "root"
