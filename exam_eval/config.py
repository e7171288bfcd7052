"""Configuration management for the exam evaluation pipeline.

This module uses Pydantic Settings to load configuration from environment
variables. All settings are validated when first loaded so that a bad
deployment fails before any document is processed.
"""

import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Pipeline settings loaded from environment variables.

    Secrets (the scoring oracle API key) should be provided via environment
    variables or a .env file, never committed.
    """

    # Scoring oracle
    scoring_oracle_url: Optional[str] = Field(
        default=None,
        description="Base URL of the external scoring service (POST {url}/evaluate)"
    )
    scoring_oracle_api_key: Optional[str] = Field(
        default=None,
        description="Optional bearer token sent to the scoring service"
    )
    oracle_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Timeout for a single scoring request"
    )
    oracle_max_retries: int = Field(
        default=0,
        ge=0,
        le=10,
        description="Retries applied by the CLI around scoring calls (0 disables)"
    )

    # Document extraction
    extraction_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Timeout for fetching and decoding one document"
    )
    max_document_bytes: int = Field(
        default=50 * 1024 * 1024,
        gt=0,
        description="Largest accepted document in bytes"
    )

    # Segmentation
    key_answer_lookahead: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Lines scanned after a key-style short answer for continuation text"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Root log level for the CLI"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("scoring_oracle_url")
    @classmethod
    def validate_scoring_oracle_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate that the oracle URL, when set, is an http(s) URL."""
        if v is None or not v.strip():
            return None

        url = v.strip()
        if not url.startswith(("http://", "https://")):
            raise ValueError(
                "SCORING_ORACLE_URL must start with http:// or https:// "
                f"(got: {url[:20]}...)"
            )

        return url.rstrip("/")

    @field_validator("scoring_oracle_api_key")
    @classmethod
    def validate_scoring_oracle_api_key(cls, v: Optional[str]) -> Optional[str]:
        """Treat a blank API key as unset."""
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that LOG_LEVEL names a standard logging level."""
        level = v.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"LOG_LEVEL must be a standard logging level (got: {v})")
        return level


@lru_cache
def get_settings() -> Settings:
    """Get cached Settings instance.

    Settings are loaded once and reused for the lifetime of the process.

    Returns:
        Settings: Validated pipeline settings

    Raises:
        ValidationError: If environment variables are present but invalid
    """
    return Settings()
