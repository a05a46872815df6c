"""
Configuration settings for the application.
Loads environment variables and provides typed settings.
"""

from pydantic import validator
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Wallet Ledger API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database
    DATABASE_URL: str = "sqlite:///./finance.db"

    # Security
    SECRET_KEY: str = "your-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    # Reports
    BUDGET_WARNING_RATIO: float = 0.9

    # CORS (Cross-Origin Resource Sharing)
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:19006",
        "http://localhost:8081"
    ]

    @validator("DATABASE_URL")
    def normalize_postgres_scheme(cls, v):
        """SQLAlchemy only understands the postgresql:// scheme."""
        if v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql://", 1)
        return v

    class Config:
        """Pydantic config to load from .env file."""
        env_file = ".env"
        case_sensitive = True


# Create global settings instance
settings = Settings()
