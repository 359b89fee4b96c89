"""Application configuration module."""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # Database settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./assessflow.db"
    SQL_ECHO: bool = False
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    CREATE_SCHEMA_ON_STARTUP: bool = False

    # Logging settings
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False
    LOG_FILE: Optional[str] = None

    # API settings
    API_V1_STR: str = "/v1"
    PROJECT_NAME: str = "AssessFlow"
    CORS_ORIGINS: str = "http://localhost:3000"

    # Bearer token verification
    JWT_SECRET_KEY: str = "change-me-in-production-assessflow-signing-key"
    JWT_ALGORITHM: str = "HS256"
    JWT_ISSUER: str = "assessflow"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Workflow and reporting thresholds (percentages)
    WEAK_MODULE_THRESHOLD: float = 70.0
    AT_RISK_THRESHOLD: float = 60.0
    EXCELLING_THRESHOLD: float = 80.0
    TREND_MAX_POINTS: int = 12


# Create global settings instance
settings = Settings()
