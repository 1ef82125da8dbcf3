"""Application configuration from environment variables."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settlement engine settings loaded from environment variables and .env."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = Field(
        default="sqlite:///./settlements.db",
        description="SQLAlchemy connection string",
    )
    database_echo: bool = Field(default=False, description="Log SQL queries")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str = Field(default="logs/settlement.log", description="Log file path")

    # Formatting
    locale: str = Field(default="pl_PL", description="Babel locale for ledger descriptions")

    # Calculation
    absorb_gap_days: bool = Field(
        default=True,
        description="Owner absorbs vacant days instead of spreading them over tenants",
    )
    readings_lookback: int = Field(
        default=10,
        ge=2,
        description="How many recent readings per meter the calculator loads",
    )


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
