"""Shared fixtures for the test suite."""

import pytest

from exam_eval.config import get_settings

SETTINGS_ENV_VARS = (
    "SCORING_ORACLE_URL",
    "SCORING_ORACLE_API_KEY",
    "ORACLE_TIMEOUT_SECONDS",
    "ORACLE_MAX_RETRIES",
    "EXTRACTION_TIMEOUT_SECONDS",
    "MAX_DOCUMENT_BYTES",
    "KEY_ANSWER_LOOKAHEAD",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch, tmp_path):
    """Isolate every test from the developer's environment and .env file."""
    for name in SETTINGS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
