"""Configuration management."""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client settings."""

    # API
    api_url: str = "http://localhost:4000/api"

    @field_validator("api_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    # Timeouts (seconds)
    request_timeout: float = 10.0  # Short calls, aborted on expiry
    model_request_timeout: float = 60.0  # Calls that run an LLM, never aborted
    prototype_request_timeout: float = 120.0  # Two chained LLM calls, never aborted

    # Outbound block window after a 429
    rate_limit_block_seconds: float = 60.0

    # Bootstrap token preflight retry
    token_retry_delay: float = 0.05

    # Durable key/value storage; empty keeps everything in memory
    storage_path: str = ""

    # Uploads
    max_upload_bytes: int = 2 * 1024 * 1024

    model_config = SettingsConfigDict(
        env_prefix="AGENTSPACE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


# Global settings instance
settings = Settings()
