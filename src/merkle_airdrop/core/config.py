"""
Merkle Airdrop Claim Service - Configuration
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
    )

    # Application
    APP_NAME: str = "Merkle Airdrop"
    VERSION: str = "1.0.0"
    ENV: str = "development"
    DEBUG: bool = False

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8090
    LOG_LEVEL: str = "INFO"

    # API authentication (write endpoints)
    API_AUTH_ENABLED: bool = False
    API_KEY: Optional[str] = Field(default=None, min_length=16)

    # Airdrop
    OWNER_ADDRESS: Optional[str] = None
    CUSTODY_ADDRESS: str = "0x000000000000000000000000000000000000a1d0"
    INITIAL_ROOT: Optional[str] = None
    DISTRIBUTION_FILE: Optional[str] = None
    INITIAL_CUSTODY_BALANCE: int = Field(default=0, ge=0)
    # 32 levels covers 2**32 entitlements
    MAX_PROOF_LENGTH: int = Field(default=32, ge=0, le=256)

    # Metrics
    METRICS_ENABLED: bool = True


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
