"""Configuration management for the SOP engine."""

from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _sanitize_secret(value: str) -> str:
    """Remove BOM characters and whitespace from secrets.

    Secrets pasted into .env files or injected by a secret manager may carry
    BOM characters that break HTTP basic auth headers.
    """
    if not value:
        return value
    # Remove BOM (U+FEFF) and strip whitespace
    return value.lstrip("\ufeff").strip()


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Confluence source
    confluence_base_url: str = ""
    confluence_username: str = ""
    confluence_api_token: str = ""
    confluence_space_key: str = "CS"
    confluence_page_limit: int = 50
    request_timeout_seconds: float = 30.0
    source_requests_per_minute: int = 0

    @field_validator(
        "confluence_base_url", "confluence_username", "confluence_api_token", mode="after"
    )
    @classmethod
    def sanitize_secrets(cls, value: str) -> str:
        """Remove BOM and whitespace from secret values."""
        return _sanitize_secret(value)

    # Discovery settings
    discovery_batch_size: int = 5
    discovery_batch_delay_seconds: float = 1.0

    # Search settings
    fuzzy_threshold: float = 0.4
    keyword_min_score: float = 0.2
    search_top_k: int = 5

    # Context assembly
    freshness_timeout_seconds: float = 5.0

    # Data directories
    data_dir: Path = Path("./data")

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    @property
    def snapshot_db_path(self) -> Path:
        """SQLite file holding the last published index snapshot."""
        return self.data_dir / "sop_index.db"

    @property
    def has_confluence_credentials(self) -> bool:
        """Whether every value needed to reach Confluence is set."""
        return bool(
            self.confluence_base_url and self.confluence_username and self.confluence_api_token
        )

    def ensure_directories(self) -> None:
        """Create all required directories if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)


# Global settings instance
settings = Settings()
