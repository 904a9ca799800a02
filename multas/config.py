"""Configuration settings for MULTAs."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from multas.utils import DEFAULT_TIMEZONE, get_multas_home

VALID_STORAGE_MODES = ("hybrid", "remote")
VALID_AI_PROVIDERS = ("openai", "claude", "ollama", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_prefix="MULTAS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore extra env vars not in model
        populate_by_name=True,
    )

    # Storage
    storage_mode: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("MULTAS_STORAGE_MODE", "STORAGE_MODE")
    )
    data_dir: Path = Field(default_factory=get_multas_home)
    workbook_name: str = "multas_posts.xlsx"

    # Remote mirror (Google Sheets v4)
    sheets_spreadsheet_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MULTAS_SHEETS_SPREADSHEET_ID", "GOOGLE_SPREADSHEET_ID"),
    )
    sheets_access_token: Optional[str] = None
    sheets_sheet_name: Optional[str] = None
    sheets_timeout: float = 30.0

    # Classification
    ai_provider: str = Field(
        default="local", validation_alias=AliasChoices("MULTAS_AI_PROVIDER", "AI_PROVIDER")
    )
    openai_api_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("MULTAS_OPENAI_API_KEY", "OPENAI_API_KEY")
    )
    claude_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MULTAS_CLAUDE_API_KEY", "CLAUDE_API_KEY", "ANTHROPIC_API_KEY"),
    )
    openai_model: str = "gpt-4o-mini"
    claude_model: str = "claude-3-haiku-20240307"
    ollama_model: str = "qwen2.5:7b"
    ollama_url: str = "http://localhost:11434"
    default_category: int = 8  # コミュニケーション

    # Sync queue
    batch_interval_seconds: float = 5.0
    periodic_sync_seconds: float = 300.0
    max_retries: int = 3

    # Backups
    backup_max_age_days: int = 30
    backup_min_keep: int = 3
    backup_min_interval_seconds: float = 0.0

    timezone: str = DEFAULT_TIMEZONE
    log_level: str = "INFO"

    @field_validator("storage_mode", mode="before")
    @classmethod
    def _normalize_storage_mode(cls, value):
        if value is None or str(value).strip() == "":
            return None
        mode = str(value).strip().lower()
        if mode == "sheets":
            mode = "remote"
        if mode not in VALID_STORAGE_MODES:
            raise ValueError(f"storage_mode must be one of {VALID_STORAGE_MODES}, got {value!r}")
        return mode

    @field_validator("ai_provider", mode="before")
    @classmethod
    def _normalize_ai_provider(cls, value):
        provider = str(value or "local").strip().lower()
        if provider == "anthropic":
            provider = "claude"
        if provider not in VALID_AI_PROVIDERS:
            raise ValueError(f"ai_provider must be one of {VALID_AI_PROVIDERS}, got {value!r}")
        return provider

    @field_validator("default_category")
    @classmethod
    def _check_default_category(cls, value: int) -> int:
        if not 1 <= value <= 12:
            raise ValueError("default_category must be between 1 and 12")
        return value

    @field_validator("max_retries", "backup_min_keep")
    @classmethod
    def _check_non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must be >= 0")
        return value

    @property
    def workbook_path(self) -> Path:
        return Path(self.data_dir) / self.workbook_name

    @property
    def backup_dir(self) -> Path:
        return Path(self.data_dir) / "backups"

    @property
    def has_remote_credentials(self) -> bool:
        return bool(self.sheets_spreadsheet_id and self.sheets_access_token)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
