from typing import Optional
from urllib.parse import quote_plus
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # --- Basic configuration ---
    APP_NAME: str = "Onus Health Portal"
    APP_DESCRIPTION: str = "Patient and provider health records portal with connection-based access control"
    APP_VERSION: str = "1.0.0"
    APP_ENV: str = "development"  # development, production, testing
    DEBUG: bool = True
    SECRET_KEY: str = "your-super-secret-key-change-it-in-production"
    FRONTEND_URL: str = "http://localhost:3000"

    # --- Database (MySQL/SQLModel) ---
    DB_HOST: str = "localhost"
    DB_PORT: int = 3306
    DB_USER: str = "root"
    DB_PASSWORD: str = "root"
    DB_NAME: str = "onus_health"

    @property
    def DATABASE_URL(self) -> str:
        # Build async MySQL connection URL
        safe_password = quote_plus(self.DB_PASSWORD)
        return f"mysql+aiomysql://{self.DB_USER}:{safe_password}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    # --- Notification queue (Redis) ---
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0

    @property
    def REDIS_URL(self) -> str:
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    NOTIFICATION_STREAM_NAME: str = "notifications:queue"
    NOTIFICATION_CONSUMER_GROUP: str = "notifications:workers"
    NOTIFICATION_MAX_ATTEMPTS: int = 3

    # --- Email delivery ---
    NOTIFICATION_DRIVER: str = "mock"  # mock, email
    EMAIL_FROM: str = "noreply@onushealth.com"
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: Optional[int] = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None

    # --- Auth ---
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    REFRESH_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7
    EMAIL_VERIFICATION_EXPIRE_MINUTES: int = 60 * 24
    REQUIRE_EMAIL_VERIFICATION: bool = False

    # --- Cookie ---
    ACCESS_TOKEN_COOKIE_NAME: str = "access_token"
    COOKIE_SECURE: bool = False  # Set True in production (HTTPS only)
    COOKIE_SAMESITE: str = "lax"  # lax, strict, none

    # --- Logging ---
    LOG_DIR: str = "logs"

    # --- API route prefixes ---
    API_V1_AUTH_PREFIX: str = "/api/v1/auth"
    API_V1_USERS_PREFIX: str = "/api/v1/users"
    API_V1_CONNECTIONS_PREFIX: str = "/api/v1/connections"
    API_V1_CONSULTATIONS_PREFIX: str = "/api/v1/consultations"
    API_V1_RECORDS_PREFIX: str = "/api/v1/records"
    API_V1_PROVIDER_PREFIX: str = "/api/v1/provider"
    API_V1_ADMIN_PREFIX: str = "/api/v1/admin"

    # --- Gunicorn ---
    GUNICORN_BIND: str = "0.0.0.0:8000"
    GUNICORN_WORKERS: int = 2
    GUNICORN_PROC_NAME: Optional[str] = None  # Fallback to APP_NAME when empty

    # --- Pydantic ---
    # Load env from project root .env; priority: env vars > .env > defaults
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
    )


# Singleton settings instance
settings = Settings()
