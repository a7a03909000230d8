"""
storefront/core/config.py

Purpose: Application configuration

- Loads environment variables
- Centralizes config values (DB URI, bot token, admin ids, paging)
- Validates configuration on startup
- Environment-specific settings
"""

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from typing import Annotated, List, Literal, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Validates all required configs on startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Environment
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"

    # Storage
    STORAGE_BACKEND: Literal["mongo", "memory"] = Field(
        default="mongo",
        description="Entity store: MongoDB or the in-process memory store"
    )
    MONGODB_URL: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI"
    )
    MONGODB_DB_NAME: str = Field(
        default="storefront",
        description="MongoDB database name"
    )

    # Telegram
    TELEGRAM_BOT_TOKEN: Optional[str] = Field(
        default=None,
        description="Bot API token issued by @BotFather"
    )
    TELEGRAM_API_URL: str = Field(
        default="https://api.telegram.org",
        description="Bot API base URL"
    )
    TELEGRAM_WEBHOOK_SECRET: Optional[str] = Field(
        default=None,
        description="Expected X-Telegram-Bot-Api-Secret-Token header value"
    )
    TELEGRAM_SEND_DELAY_SECONDS: float = Field(
        default=0.05,
        description="Pause between consecutive outgoing messages"
    )
    TELEGRAM_TIMEOUT_SECONDS: float = Field(
        default=15.0,
        description="Bot API request timeout in seconds"
    )

    # Shop
    ADMIN_CHAT_IDS: Annotated[List[int], NoDecode] = Field(
        default_factory=list,
        description="Chat ids that are created with the ADMIN role"
    )
    CATALOG_PAGE_SIZE: int = Field(
        default=3,
        description="Products shown per catalog page"
    )
    ADMIN_PAGE_SIZE: int = Field(
        default=5,
        description="Rows per page in staff listings"
    )
    CURRENCY: str = Field(
        default="RUB",
        description="Currency label appended to prices"
    )

    # Session management
    WIZARD_IDLE_EXPIRY_ENABLED: bool = Field(
        default=False,
        description="Reset wizards that were idle longer than their step timeout"
    )

    # Application
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    API_PREFIX: str = Field(
        default="/api/v1",
        description="API route prefix"
    )
    CORS_ORIGINS: list = Field(
        default=["*"],
        description="Allowed CORS origins"
    )

    @field_validator("ADMIN_CHAT_IDS", mode="before")
    @classmethod
    def split_admin_ids(cls, v):
        """Accept a comma separated string as well as a JSON list."""
        if isinstance(v, str):
            if v.strip().startswith("["):
                return json.loads(v)
            return [int(part) for part in v.split(",") if part.strip()]
        if isinstance(v, int):
            return [v]
        return v

    @field_validator("CATALOG_PAGE_SIZE", "ADMIN_PAGE_SIZE")
    @classmethod
    def validate_page_size(cls, v):
        if v < 1:
            raise ValueError("page size must be at least 1")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"


# Global settings instance
settings = Settings()


def validate_settings():
    """
    Validates critical settings on application startup.
    Raises ValueError if any required setting is missing or invalid.
    """
    errors = []

    if settings.STORAGE_BACKEND == "mongo" and not settings.MONGODB_URL:
        errors.append("MONGODB_URL is required")

    # Production-specific validations
    if settings.is_production:
        if not settings.TELEGRAM_BOT_TOKEN:
            errors.append("TELEGRAM_BOT_TOKEN is required in production")
        if not settings.TELEGRAM_WEBHOOK_SECRET:
            errors.append("TELEGRAM_WEBHOOK_SECRET is required in production")
        if settings.STORAGE_BACKEND == "memory":
            errors.append("STORAGE_BACKEND=memory is not allowed in production")

    if errors:
        raise ValueError(f"Configuration validation failed: {', '.join(errors)}")

    return True
