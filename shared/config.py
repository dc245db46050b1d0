"""
Shared configuration management for the token service.
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TokenServiceConfig(BaseSettings):
    """Token service settings, read from TOKEN_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TOKEN_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Validation policy defaults
    clock_skew_seconds: int = Field(default=180, ge=0)
    check_expiry: bool = Field(default=True)
    trusted_issuers: Optional[List[str]] = Field(default=None)
    trusted_audiences: Optional[List[str]] = Field(default=None)

    # Minting
    default_not_before_offset_seconds: int = Field(default=10800, ge=0)

    # Observability
    metrics_enabled: bool = Field(default=False)


def get_config(**overrides) -> TokenServiceConfig:
    """Get token service configuration, with explicit overrides applied."""
    return TokenServiceConfig(**overrides)
