"""Application settings using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_addresses(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """depositwatch configuration from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars
    )

    # Application
    app_name: str = Field(default="depositwatch", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Minimum log level"
    )

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, ge=1, le=65535, description="Server port")

    # Ledger indexer
    indexer_url: str = Field(
        default="http://localhost:8980", description="Indexer base URL"
    )
    indexer_token: SecretStr = Field(
        default=SecretStr(""), description="Indexer API token"
    )
    indexer_page_size: int = Field(
        default=1000, ge=1, le=1000, description="Transactions per search page"
    )
    indexer_timeout: float = Field(
        default=30.0, gt=0, description="Indexer request timeout in seconds"
    )
    indexer_max_pages: int = Field(
        default=100, ge=1, description="Pages followed per search before resuming next cycle"
    )
    indexer_max_attempts: int = Field(
        default=1,
        ge=1,
        description="HTTP attempts per indexer page; the poll interval drives further retries",
    )

    # Deposit watcher
    poll_interval_ms: int = Field(
        default=1000, ge=1, description="Milliseconds between poll cycles"
    )
    watched_addresses: str = Field(
        default="", description="Comma-separated deposit addresses to watch"
    )
    ignored_senders: str = Field(
        default="", description="Comma-separated sender addresses to ignore"
    )

    # Circuit Breaker
    circuit_breaker_threshold: int = Field(
        default=5, ge=1, description="Failures before circuit opens"
    )
    circuit_breaker_cooldown: int = Field(
        default=30, ge=1, description="Seconds before half-open"
    )

    @field_validator("indexer_url")
    @classmethod
    def validate_indexer_url(cls, v: str) -> str:
        """Validate indexer URL format."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("Indexer URL must start with http:// or https://")
        return v.rstrip("/")

    @property
    def watched_address_list(self) -> list[str]:
        """Watched addresses parsed from the comma-separated setting."""
        return _split_addresses(self.watched_addresses)

    @property
    def ignored_sender_list(self) -> list[str]:
        """Ignored senders parsed from the comma-separated setting."""
        return _split_addresses(self.ignored_senders)

    @property
    def poll_interval_seconds(self) -> float:
        return self.poll_interval_ms / 1000


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
