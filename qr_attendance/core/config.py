# qr_attendance/core/config.py
import json
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from pydantic import Field, validator
from typing import Annotated, Dict, Optional, List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


class Settings(BaseSettings):
    # Application Settings
    APP_NAME: str = "QR Attendance Service"
    VERSION: str = "1.0.0"
    DEBUG: bool = Field(default=False, env="DEBUG")

    # Storage Settings
    DATABASE_URL: str = Field(default="sqlite+aiosqlite:///./attendance.db", env="DATABASE_URL")
    DATABASE_ECHO: bool = Field(default=False, env="DATABASE_ECHO")
    STORAGE_BACKEND: str = Field(default="sql", env="STORAGE_BACKEND")  # "sql" or "memory"

    # Public URL the QR payload points at
    PUBLIC_ORIGIN: str = Field(default="http://localhost:5173", env="PUBLIC_ORIGIN")

    # CORS Settings
    ALLOWED_ORIGINS: Annotated[List[str], NoDecode] = Field(
        default=[
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:3000",
        ],
        env="ALLOWED_ORIGINS"
    )

    # Session Settings
    SESSION_MIN_MINUTES: int = Field(default=10, env="SESSION_MIN_MINUTES")
    SESSION_DEFAULT_MINUTES: int = Field(default=30, env="SESSION_DEFAULT_MINUTES")
    NEVER_EXPIRES_YEARS: int = Field(default=100, env="NEVER_EXPIRES_YEARS")
    NEVER_EXPIRES_AFTER_YEAR: int = Field(default=2100, env="NEVER_EXPIRES_AFTER_YEAR")
    SESSION_TIMEZONE: str = Field(default="UTC", env="SESSION_TIMEZONE")  # local date/time shown in reports and e-mails

    # QR Code Settings
    QR_IMAGE_SIZE: int = Field(default=256, env="QR_IMAGE_SIZE")
    QR_HISTORY_IMAGE_SIZE: int = Field(default=160, env="QR_HISTORY_IMAGE_SIZE")
    QR_BORDER: int = Field(default=2, env="QR_BORDER")
    QR_ERROR_CORRECTION: str = Field(default="M", env="QR_ERROR_CORRECTION")

    # Presence Feed Settings
    PRESENCE_BACKEND: str = Field(default="memory", env="PRESENCE_BACKEND")  # "memory" or "redis"
    REDIS_URL: Optional[str] = Field(default=None, env="REDIS_URL")

    # Teacher dashboard guard (the dashboard's own auth sits in front of this service)
    TEACHER_API_TOKEN: Optional[str] = Field(default=None, env="TEACHER_API_TOKEN")

    # Email Settings
    NOTIFICATIONS_ENABLED: bool = Field(default=True, env="NOTIFICATIONS_ENABLED")
    SMTP_SERVER: Optional[str] = Field(default=None, env="SMTP_SERVER")
    SMTP_PORT: int = Field(default=465, env="SMTP_PORT")
    EMAIL_USERNAME: Optional[str] = Field(default=None, env="EMAIL_USERNAME")
    EMAIL_PASSWORD: Optional[str] = Field(default=None, env="EMAIL_PASSWORD")
    EMAIL_FROM: Optional[str] = Field(default=None, env="EMAIL_FROM")
    MAIL_FROM_NAME: str = Field(default="Chamada QR", env="MAIL_FROM_NAME")
    MAIL_USE_TLS: bool = Field(default=False, env="MAIL_USE_TLS")
    SMTP_TIMEOUT: int = Field(default=10, env="SMTP_TIMEOUT")

    # Localization
    DEFAULT_LANGUAGE: str = Field(default="pt", env="DEFAULT_LANGUAGE")

    # Logging Settings
    LOG_LEVEL: str = Field(default="INFO", env="LOG_LEVEL")
    LOG_DIR: Optional[str] = Field(default=None, env="LOG_DIR")
    LOG_JSON: bool = Field(default=False, env="LOG_JSON")

    @validator('ALLOWED_ORIGINS', pre=True)
    def parse_allowed_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @validator('PUBLIC_ORIGIN')
    def strip_trailing_slash(cls, v: str) -> str:
        if not v.startswith(('http://', 'https://')):
            v = f'https://{v}'
        return v.rstrip('/')

    @validator('STORAGE_BACKEND', 'PRESENCE_BACKEND')
    def normalize_backend(cls, v: str) -> str:
        return v.strip().lower()

    @validator('SESSION_MIN_MINUTES')
    def validate_min_minutes(cls, v: int) -> int:
        if v < 1:
            raise ValueError("SESSION_MIN_MINUTES must be at least 1")
        return v

    @validator('SESSION_TIMEZONE')
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @validator('QR_ERROR_CORRECTION')
    def validate_error_correction(cls, v: str) -> str:
        v = v.upper()
        if v not in {'L', 'M', 'Q', 'H'}:
            raise ValueError(f"Invalid QR error correction level: {v}")
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True
    )


# Initialize settings
settings = Settings()


# Helper Functions
def get_session_settings() -> dict:
    return {
        "min_minutes": settings.SESSION_MIN_MINUTES,
        "default_minutes": settings.SESSION_DEFAULT_MINUTES,
        "never_expires_years": settings.NEVER_EXPIRES_YEARS,
        "never_expires_after_year": settings.NEVER_EXPIRES_AFTER_YEAR,
        "timezone": settings.SESSION_TIMEZONE,
    }

def get_qr_settings() -> dict:
    return {
        "origin": settings.PUBLIC_ORIGIN,
        "image_size": settings.QR_IMAGE_SIZE,
        "history_image_size": settings.QR_HISTORY_IMAGE_SIZE,
        "border": settings.QR_BORDER,
        "error_correction": settings.QR_ERROR_CORRECTION,
    }

def get_logging_config() -> Dict[str, Optional[str]]:
    return {
        "log_level": settings.LOG_LEVEL,
        "log_dir": settings.LOG_DIR,
        "log_json": settings.LOG_JSON,
    }

def get_email_settings() -> dict:
    return {
        "enabled": settings.NOTIFICATIONS_ENABLED,
        "smtp_server": settings.SMTP_SERVER,
        "smtp_port": settings.SMTP_PORT,
        "username": settings.EMAIL_USERNAME,
        "password": settings.EMAIL_PASSWORD,
        "from_email": settings.EMAIL_FROM,
        "from_name": settings.MAIL_FROM_NAME,
        "use_tls": settings.MAIL_USE_TLS,
        "timeout": settings.SMTP_TIMEOUT,
    }
