"""
HomeView Application Configuration
Loads settings from .env file using Pydantic v2 with BaseSettings
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # ==================== Project Info ====================
    PROJECT_NAME: str = "HomeView API"
    PROJECT_DESCRIPTION: str = "Property viewings, bookings and reminder scheduling"
    VERSION: str = "1.0.0"

    # ==================== Database ====================
    DATABASE_URL: str = "sqlite:///homeview_local.db"
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 10
    DATABASE_POOL_RECYCLE: int = 3600

    # ==================== Security & Authentication ====================
    SECRET_KEY: str = "change-this-secret-key-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 10080  # 7 days

    # ==================== CORS & Frontend ====================
    FRONTEND_URL: str = "http://localhost:3000"
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:3001",
    ]

    # ==================== Email Configuration ====================
    SMTP_SERVER: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    EMAIL_FROM: str = "noreply@homeview.app"
    SEND_EMAILS: bool = True

    # ==================== Viewing Defaults ====================
    # Used in notifications when the caller has no catalog data at hand
    DEFAULT_PROPERTY_TITLE: str = "Property Viewing"
    DEFAULT_AGENT_NAME: str = "Real Estate Agent"
    DEFAULT_AGENT_PHONE: str = ""
    DEFAULT_AGENT_EMAIL: str = ""

    # ==================== Background Jobs ====================
    ENABLE_SCHEDULER: bool = True
    REMINDER_JOB_INTERVAL_SECONDS: float = 3600.0  # hourly
    REMINDER_JOB_TIMEOUT_SECONDS: float = 900.0
    SCHEDULER_SHUTDOWN_TIMEOUT_SECONDS: float = 30.0

    # ==================== Features ====================
    DEBUG: bool = False
    TESTING: bool = False
    LOG_LEVEL: str = "INFO"

    # ==================== Configuration Loading ====================
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="allow",  # Allow extra environment variables
        validate_default=True,
    )

    # ==================== Properties ====================
    @property
    def email_configured(self) -> bool:
        """Check if SMTP is properly configured"""
        return bool(self.SMTP_SERVER and self.SMTP_USER and self.SMTP_PASSWORD)


# ==================== Settings Singleton ====================
@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Create default settings instance
settings = get_settings()

