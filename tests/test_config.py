"""Tests for configuration management."""

import pytest
from pydantic import ValidationError

from exam_eval.config import Settings, get_settings


class TestSettings:
    """Test Settings class validation and loading."""

    def test_defaults(self):
        settings = Settings()

        assert settings.scoring_oracle_url is None
        assert settings.scoring_oracle_api_key is None
        assert settings.oracle_timeout_seconds == 60.0
        assert settings.oracle_max_retries == 0
        assert settings.extraction_timeout_seconds == 15.0
        assert settings.max_document_bytes == 50 * 1024 * 1024
        assert settings.key_answer_lookahead == 10
        assert settings.log_level == "INFO"

    def test_env_vars_loaded(self, monkeypatch):
        monkeypatch.setenv("SCORING_ORACLE_URL", "https://oracle.example.com")
        monkeypatch.setenv("SCORING_ORACLE_API_KEY", "secret")
        monkeypatch.setenv("ORACLE_TIMEOUT_SECONDS", "30")
        monkeypatch.setenv("ORACLE_MAX_RETRIES", "2")
        monkeypatch.setenv("KEY_ANSWER_LOOKAHEAD", "5")

        settings = Settings()

        assert settings.scoring_oracle_url == "https://oracle.example.com"
        assert settings.scoring_oracle_api_key == "secret"
        assert settings.oracle_timeout_seconds == 30.0
        assert settings.oracle_max_retries == 2
        assert settings.key_answer_lookahead == 5

    def test_env_file_loaded(self, tmp_path):
        (tmp_path / ".env").write_text("SCORING_ORACLE_URL=http://localhost:9000\n")

        settings = Settings()

        assert settings.scoring_oracle_url == "http://localhost:9000"

    def test_oracle_url_trailing_slash_stripped(self, monkeypatch):
        monkeypatch.setenv("SCORING_ORACLE_URL", "  https://oracle.example.com/  ")

        assert Settings().scoring_oracle_url == "https://oracle.example.com"

    def test_blank_oracle_url_is_unset(self, monkeypatch):
        monkeypatch.setenv("SCORING_ORACLE_URL", "   ")

        assert Settings().scoring_oracle_url is None

    def test_invalid_oracle_url_raises_error(self, monkeypatch):
        monkeypatch.setenv("SCORING_ORACLE_URL", "ftp://oracle.example.com")

        with pytest.raises(ValidationError) as exc_info:
            Settings()

        assert "must start with http:// or https://" in str(exc_info.value)

    def test_blank_api_key_is_unset(self, monkeypatch):
        monkeypatch.setenv("SCORING_ORACLE_API_KEY", "  ")

        assert Settings().scoring_oracle_api_key is None

    @pytest.mark.parametrize("name,value", [
        ("ORACLE_TIMEOUT_SECONDS", "0"),
        ("ORACLE_MAX_RETRIES", "11"),
        ("EXTRACTION_TIMEOUT_SECONDS", "-1"),
        ("MAX_DOCUMENT_BYTES", "0"),
        ("KEY_ANSWER_LOOKAHEAD", "0"),
    ])
    def test_out_of_range_values_raise_error(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)

        with pytest.raises(ValidationError):
            Settings()

    def test_log_level_normalised(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", " debug ")

        assert Settings().log_level == "DEBUG"

    def test_invalid_log_level_raises_error(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "LOUD")

        with pytest.raises(ValidationError) as exc_info:
            Settings()

        assert "LOG_LEVEL" in str(exc_info.value)


class TestGetSettings:
    """Test get_settings() function caching behavior."""

    def test_get_settings_caches_result(self):
        settings1 = get_settings()
        settings2 = get_settings()

        assert isinstance(settings1, Settings)
        assert settings1 is settings2

    def test_get_settings_raises_error_on_invalid_config(self, monkeypatch):
        monkeypatch.setenv("ORACLE_MAX_RETRIES", "-1")
        get_settings.cache_clear()

        with pytest.raises(ValidationError):
            get_settings()
