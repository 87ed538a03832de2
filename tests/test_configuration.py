"""
Tests for settings loading.
"""

import pytest
from omegaconf.errors import ValidationError as OmegaValidationError

from publisher_config_api.configuration import DEFAULT_ALLOWED_ORIGINS, Settings, load_settings


class TestLoadSettings:
    def test_defaults(self):
        settings = load_settings(environ={})

        assert isinstance(settings, Settings)
        assert settings.environment == "development"
        assert settings.port == 3001
        assert settings.allowed_origins == DEFAULT_ALLOWED_ORIGINS
        assert settings.serialize_index_writes is True
        assert not settings.is_production

    def test_environment_overrides_are_typed(self):
        settings = load_settings(
            environ={
                "APP_ENV": "production",
                "PORT": "8080",
                "RATE_LIMIT_MAX": "10",
                "RATE_LIMIT_WINDOW_SECONDS": "30",
                "SERIALIZE_INDEX_WRITES": "false",
                "ALLOWED_ORIGINS": "https://a.example.com, https://b.example.com",
            }
        )

        assert settings.is_production
        assert settings.port == 8080
        assert settings.rate_limit_max_requests == 10
        assert settings.rate_limit_window_seconds == 30.0
        assert settings.serialize_index_writes is False
        assert settings.allowed_origins == ["https://a.example.com", "https://b.example.com"]

    def test_yaml_file_sits_between_defaults_and_environment(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("data_dir: /srv/publishers\nport: 4000\nlog_level: DEBUG\n", encoding="utf-8")

        settings = load_settings(environ={"PUBLISHER_API_CONFIG": str(config_file), "PORT": "5000"})

        assert settings.data_dir == "/srv/publishers"
        assert settings.log_level == "DEBUG"
        assert settings.port == 5000

    def test_missing_config_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(config_path=tmp_path / "absent.yaml", environ={})

    def test_invalid_value_fails_fast(self):
        with pytest.raises(OmegaValidationError):
            load_settings(environ={"PORT": "not-a-port"})

    def test_empty_variables_are_ignored(self):
        settings = load_settings(environ={"API_KEY": "", "DATA_DIR": ""})

        assert settings.api_key == ""
        assert settings.data_dir == "data"
