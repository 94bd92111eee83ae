"""
Application configuration using Pydantic Settings
"""

from decimal import Decimal
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    APP_NAME: str = "Tab Settlement"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # API
    API_V1_PREFIX: str = "/api/v1"
    ALLOWED_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Database
    DATABASE_URL: str = "sqlite:///./tabsettle.db"
    DB_ECHO: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # Shop defaults, used until a shop_settings row exists
    DEFAULT_SHOP_NAME: str = "Il Mio Ristorante"
    DEFAULT_COVER_CHARGE: Decimal = Decimal("0.00")
    COVER_LABEL: str = "Coperto"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
