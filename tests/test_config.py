"""Tests for the config module."""

from pathlib import Path

import jsonschema
import orjson
import pytest

from rotating_log_sink.config import (
    DEFAULT_FORMAT,
    DirectoryDescriptor,
    RotationPolicy,
    SinkConfig,
    load_config,
)
from rotating_log_sink.models import Level


def _write_config(tmp_path: Path, raw: dict) -> Path:
    p = tmp_path / "config.json"
    p.write_bytes(orjson.dumps(raw))
    return p


class TestSinkConfig:
    """Defaults, coercion, and merging."""

    def test_defaults(self) -> None:
        config = SinkConfig()
        assert config.directory == "."
        assert config.filename == "log"
        assert config.level is None
        assert config.format == DEFAULT_FORMAT
        assert config.metadata == ()
        assert config.metadata_filter is None
        assert config.rotate is None

    def test_loose_values_coerced(self) -> None:
        config = SinkConfig(
            directory={"user_log": "MyApp"},
            level="warn",
            metadata=["a", "b"],
            metadata_filter={"k": 1},
            rotate={"max_bytes": 10, "keep": 2},
        )
        assert config.directory == DirectoryDescriptor("user_log", "MyApp")
        assert config.level is Level.WARNING
        assert config.metadata == ("a", "b")
        assert config.metadata_filter == (("k", 1),)
        assert config.rotate == RotationPolicy(max_bytes=10, keep=2)

    def test_metadata_all(self) -> None:
        assert SinkConfig(metadata="all").metadata == "all"
        with pytest.raises(ValueError):
            SinkConfig(metadata="some")

    def test_merge_new_values_win(self) -> None:
        base = SinkConfig(filename="app", level="info")
        merged = base.merge(level="error", directory=None)
        assert merged.filename == "app"
        assert merged.level is Level.ERROR
        assert merged.directory is None
        assert base.level is Level.INFO

    def test_merge_rejects_unknown_option(self) -> None:
        with pytest.raises(ValueError, match="max_size"):
            SinkConfig().merge(max_size=10)

    def test_rotation_policy_requires_keep(self) -> None:
        assert RotationPolicy(max_bytes=10, keep=1).rotates_by_size is True
        assert RotationPolicy(max_bytes=10).rotates_by_size is False
        assert RotationPolicy(max_bytes=10, keep=0).rotates_by_size is False

    def test_directory_descriptor_validation(self) -> None:
        with pytest.raises(ValueError):
            DirectoryDescriptor("user_cache", "MyApp")
        with pytest.raises(ValueError):
            DirectoryDescriptor("user_data", "")
        with pytest.raises(ValueError):
            DirectoryDescriptor.from_dict({"user_data": "a", "user_log": "b"})


class TestLoadConfig:
    """File loading, interpolation, and schema validation."""

    def test_minimal_file(self, tmp_path: Path) -> None:
        cfg = load_config(_write_config(tmp_path, {}))
        assert cfg.default_sink == "default"
        assert cfg.sinks["default"] == SinkConfig()
        assert cfg.logging.level == "info"
        assert cfg.logging.format == "json"

    def test_sinks_and_default(self, tmp_path: Path) -> None:
        raw = {
            "default_sink": "app",
            "sinks": {
                "app": {"directory": "logs", "filename": "app", "rotate": {"max_bytes": 1000, "keep": 3}},
                "audit": {"directory": {"user_log": {"app": "MyApp", "author": "Me"}}, "metadata": "all"},
            },
            "logging": {"level": "debug", "format": "text"},
        }
        cfg = load_config(_write_config(tmp_path, raw))
        assert cfg.default_sink == "app"
        assert cfg.sinks["app"].rotate == RotationPolicy(max_bytes=1000, keep=3)
        assert cfg.sinks["audit"].directory == DirectoryDescriptor("user_log", "MyApp", author="Me")
        assert cfg.sinks["audit"].metadata == "all"
        assert cfg.logging.level == "debug"

    def test_env_interpolation(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOG_DIR", "/var/log/app")
        raw = {"sinks": {"default": {"directory": "${LOG_DIR}", "filename": "${LOG_NAME:-service}"}}}
        cfg = load_config(_write_config(tmp_path, raw))
        assert cfg.sinks["default"].directory == "/var/log/app"
        assert cfg.sinks["default"].filename == "service"

    def test_override_beats_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOG_DIR", "/from/env")
        raw = {"sinks": {"default": {"directory": "${LOG_DIR}"}}}
        cfg = load_config(_write_config(tmp_path, raw), overrides={"LOG_DIR": "/from/cli"})
        assert cfg.sinks["default"].directory == "/from/cli"

    def test_unresolved_variable(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("SURELY_UNSET_VAR", raising=False)
        raw = {"sinks": {"default": {"directory": "${SURELY_UNSET_VAR}"}}}
        with pytest.raises(ValueError, match="SURELY_UNSET_VAR"):
            load_config(_write_config(tmp_path, raw))

    def test_schema_rejects_unknown_sink_option(self, tmp_path: Path) -> None:
        raw = {"sinks": {"default": {"colour": "red"}}}
        with pytest.raises(jsonschema.ValidationError):
            load_config(_write_config(tmp_path, raw))

    def test_schema_rejects_bad_level(self, tmp_path: Path) -> None:
        raw = {"sinks": {"default": {"level": "loud"}}}
        with pytest.raises(jsonschema.ValidationError):
            load_config(_write_config(tmp_path, raw))

    def test_default_sink_must_exist(self, tmp_path: Path) -> None:
        raw = {"default_sink": "missing", "sinks": {"default": {}}}
        with pytest.raises(ValueError, match="missing"):
            load_config(_write_config(tmp_path, raw))

    def test_missing_schema_skips_validation(self, tmp_path: Path) -> None:
        raw = {"sinks": {"default": {"filename": "x"}}}
        cfg = load_config(_write_config(tmp_path, raw), schema_path=tmp_path / "nope.json")
        assert cfg.sinks["default"].filename == "x"
