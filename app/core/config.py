from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Basic settings
    PROJECT_NAME: str = "Dental Clinic Scheduling"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    API_V1_PREFIX: str = "/api/v1"

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./dental_clinic.db"

    # Redis (slot holds while a booking is written)
    REDIS_URL: str = "redis://localhost:6379/0"
    SLOT_HOLD_SECONDS: int = 300

    # Scheduling
    SLOT_INTERVAL_MINUTES: int = 30
    DEFAULT_APPOINTMENT_DURATION_MINUTES: int = 30

    # CORS
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v):
        if isinstance(v, str):
            return [i.strip() for i in v.split(",")]
        return v

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False
    LOG_FILE: Optional[str] = None

    model_config = {"env_file": ".env", "case_sensitive": True}


# Global settings instance
settings = Settings()
