"""
Unit tests for configuration loading.
"""

import logging

import pytest

from gigboard.ai.config import AiSettings
from gigboard.config import AppConfig, ObservabilityConfig, StorageConfig
from gigboard.main import setup_logging


class TestAppConfig:
    """Tests for AppConfig."""

    def test_defaults(self):
        config = AppConfig()
        assert config.store_name == "local-gig-connect"
        assert config.storage.wal_mode is True
        assert config.storage.quota_bytes == 0
        assert config.observability.log_format == "text"

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("GIGBOARD_STORE_NAME", "my-board")
        monkeypatch.setenv("GIGBOARD_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("GIGBOARD_SQLITE_WAL_MODE", "false")
        monkeypatch.setenv("GIGBOARD_QUOTA_BYTES", "1048576")
        monkeypatch.setenv("LOG_FORMAT", "json")

        config = AppConfig.from_env()

        assert config.store_name == "my-board"
        assert config.storage.data_dir == str(tmp_path)
        assert config.storage.wal_mode is False
        assert config.storage.quota_bytes == 1048576
        assert config.observability.log_format == "json"

    def test_blank_store_name_rejected(self):
        with pytest.raises(ValueError, match="STORE_NAME"):
            AppConfig(store_name="  ").validate()

    @pytest.mark.parametrize("name", ["jobs!", "../jobs", "my jobs"])
    def test_store_name_with_path_characters_rejected(self, name):
        with pytest.raises(ValueError, match="STORE_NAME"):
            AppConfig(store_name=name).validate()

    def test_negative_quota_rejected(self):
        with pytest.raises(ValueError, match="QUOTA"):
            AppConfig(storage=StorageConfig(quota_bytes=-1)).validate()

    def test_pattern_without_name_rejected(self):
        with pytest.raises(ValueError, match="PATTERN"):
            AppConfig(storage=StorageConfig(store_db_pattern="store.db")).validate()

    def test_unknown_log_format_rejected(self):
        with pytest.raises(ValueError, match="LOG_FORMAT"):
            AppConfig(observability=ObservabilityConfig(log_format="xml")).validate()

    def test_missing_data_dir_only_warns(self, tmp_path, caplog):
        config = AppConfig(storage=StorageConfig(data_dir=str(tmp_path / "later")))

        with caplog.at_level(logging.WARNING):
            config.validate()

        assert "will be created" in caplog.text


class TestAiSettings:
    """Tests for AiSettings."""

    def test_unconfigured_by_default(self, monkeypatch):
        monkeypatch.delenv("GIGBOARD_AI_API_KEY", raising=False)
        settings = AiSettings()
        assert settings.configured is False

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("GIGBOARD_AI_API_KEY", "sk-test")
        monkeypatch.setenv("GIGBOARD_AI_MODEL", "test/model")

        settings = AiSettings()

        assert settings.configured is True
        assert settings.model == "test/model"
        assert "sk-test" not in repr(settings)


class TestSetupLogging:
    """Tests for setup_logging."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers = handlers
        root.setLevel(level)

    def test_json_format(self):
        import json_log_formatter

        setup_logging(AppConfig(observability=ObservabilityConfig(log_format="json")))

        handler = logging.getLogger().handlers[0]
        assert isinstance(handler.formatter, json_log_formatter.JSONFormatter)

    def test_level(self):
        setup_logging(AppConfig(observability=ObservabilityConfig(log_level="debug")))
        assert logging.getLogger().level == logging.DEBUG
