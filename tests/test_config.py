"""Tests for service configuration."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from buildsvc.config import ServiceConfig, load_config


class TestServiceConfig:
    def test_defaults(self, clean_env):
        config = ServiceConfig()

        assert config.database_url == "sqlite:///buildsvc.sqlite"
        assert config.admins == ["admin"]
        assert config.log_level == "INFO"
        assert config.sql_echo is False

    def test_prefixed_variables(self, clean_env):
        """Test that only BUILDSVC_ variables are read."""
        clean_env.setenv("BUILDSVC_DATABASE_URL", "sqlite:///:memory:")
        clean_env.setenv("BUILDSVC_BACKEND_TIMEOUT", "5")
        clean_env.setenv("BUILDSVC_ADMINS", " admin , king,,")
        clean_env.setenv("BUILDSVC_LOG_LEVEL", "debug")
        clean_env.setenv("BUILDSVC_SQL_ECHO", "true")
        clean_env.setenv("BACKEND_URL", "http://ignored")

        config = ServiceConfig()

        assert config.database_url == "sqlite:///:memory:"
        assert config.backend_url == "http://localhost:5352"
        assert config.backend_timeout == 5.0
        assert config.admins == ["admin", "king"]
        assert config.log_level == "DEBUG"
        assert config.sql_echo is True

    def test_invalid_timeout(self, clean_env):
        clean_env.setenv("BUILDSVC_BACKEND_TIMEOUT", "0")
        with pytest.raises(ValidationError):
            ServiceConfig()


class TestLoadConfig:
    def test_env_file(self, tmp_path, clean_env):
        """Test that .env files are loaded with interpolation."""
        clean_env.setenv("BACKEND_HOST", "backend.test")
        env_file = tmp_path / ".env"
        env_file.write_text(
            "BUILDSVC_BACKEND_URL=http://${BACKEND_HOST}:5352\n"
            "BUILDSVC_ADMINS=root\n"
        )

        config = load_config(env_file)

        assert config.backend_url == "http://backend.test:5352"
        assert config.admins == ["root"]

    def test_environment_only(self, clean_env):
        clean_env.setenv("BUILDSVC_LOG_LEVEL", "warning")

        assert load_config().log_level == "WARNING"

    def test_missing_file(self, tmp_path, clean_env):
        with pytest.raises(FileNotFoundError, match="Environment file not found"):
            load_config(tmp_path / "missing.env")
