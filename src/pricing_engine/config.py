"""
Configuration management using Pydantic Settings.
Loads PRICING_* environment variables, optionally from a .env file.
"""

import logging
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PRICING_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # MongoDB
    mongodb_uri: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI",
    )
    mongodb_database: str = Field(default="product_hub")
    steps_collection: str = Field(default="steps")
    versions_collection: str = Field(default="step_collections")
    mongodb_timeout_ms: int = Field(default=2000, ge=1)

    # Logging
    log_level: str = Field(default="INFO")

    # Exchange documents
    export_title: str = Field(default="Pricing Model Export Report")
    export_sheet_name: str = Field(default="Pricing")

    # Behaviour
    import_atomic: bool = Field(
        default=False,
        description="Roll back every write of an import batch when one fails",
    )
    repair_order_on_load: bool = Field(
        default=True,
        description="Renumber non-contiguous order values when a sequence is loaded",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


def configure_logging(level: str | None = None) -> None:
    """Configure root logging at the given (or configured) level."""
    logging.basicConfig(
        level=(level or get_settings().log_level).upper(),
        format=LOG_FORMAT,
    )
