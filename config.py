"""
Configuration management for MedTracker
"""

from typing import Optional
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "MedTracker"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENV: str = "development"

    # API
    API_PREFIX: str = "/api"
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database (production runs on PostgreSQL via DATABASE_URL)
    DATABASE_URL: str = "sqlite:///./medtracker.db"
    DATABASE_ECHO: bool = False

    # Security
    SECRET_KEY: str = "your-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7  # 7 days

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Dose timing
    DISPLAY_TIMEZONE: str = "America/Sao_Paulo"
    OVERDUE_GRACE_MINUTES: int = 15

    # Audit trail
    AUDIT_ASYNC_WRITES: bool = True
    AUDIT_QUEUE_SIZE: int = 1000
    PROCESSING_NODE: Optional[str] = None

    # Reminders
    REMINDER_SCAN_ENABLED: bool = False
    REMINDER_SCAN_INTERVAL_SECONDS: int = 30

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Database table names
class TableNames:
    USERS = "users"
    CARE_RELATIONSHIPS = "care_relationships"
    MEDICATIONS = "medications"
    MEDICATION_SCHEDULES = "medication_schedules"
    MEDICATION_LOGS = "medication_logs"
    MEDICATION_HISTORY = "medication_history"
    GLOBAL_NOTIFICATIONS = "global_notifications"
    USER_NOTIFICATIONS = "user_notifications"
    NOTIFICATION_AUDIT_LOG = "notification_audit_log"


settings = get_settings()
