import os
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEV_SECRET_KEY = "dev-secret-change-me-dev-secret-change-me"


def _build_default_database_url() -> str:
    host = os.getenv("POSTGRES_HOST", "localhost")
    port = os.getenv("POSTGRES_PORT", "5432")
    db = os.getenv("POSTGRES_DB", "gameauth")
    user = os.getenv("POSTGRES_USER", "postgres")
    password = os.getenv("POSTGRES_PASSWORD", "postgres")
    return f"postgresql+psycopg2://{user}:{password}@{host}:{port}/{db}"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    PROJECT_NAME: str = "Game Auth API"
    API_V1_STR: str = "/api/v1"
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    SECRET_KEY: str = DEV_SECRET_KEY
    JWT_ISSUER: str = "gameauth"
    JWT_AUDIENCE: str = "gameauth-clients"
    ACCESS_TOKEN_EXPIRE_HOURS: int = Field(default=2, ge=1, le=240)
    REFRESH_TOKEN_EXPIRE_DAYS: int = Field(default=30, ge=1)
    # revoked tokens older than this are pruned on the next login
    REFRESH_TOKEN_RETENTION_DAYS: int = Field(default=2, ge=0)

    LOCKOUT_MAX_FAILED_ATTEMPTS: int = Field(default=5, ge=1)
    LOCKOUT_MINUTES: int = Field(default=5, ge=1)
    PASSWORD_MIN_LENGTH: int = Field(default=8, ge=6)

    SEED_ENABLED: bool = False
    SEED_USERNAME: str = "admin"
    SEED_EMAIL: str = "admin@example.com"
    SEED_PASSWORD: str = "Admin123!"

    DATABASE_URL: str = Field(default_factory=_build_default_database_url)
    CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _split_cors_origins(cls, value):
        if isinstance(value, str):
            return [v.strip() for v in value.split(",") if v.strip()]
        return value

    @field_validator("SECRET_KEY")
    @classmethod
    def _validate_secret_key(cls, value, info):
        env = str(info.data.get("ENV", "dev")).lower()
        if env != "dev":
            if not value or value == DEV_SECRET_KEY:
                raise ValueError("SECRET_KEY must be set in non-dev environments")
            if len(value) < 32:
                raise ValueError("SECRET_KEY must be at least 32 characters long")
        return value

    @field_validator("SEED_ENABLED")
    @classmethod
    def _validate_seed_enabled(cls, value, info):
        env = str(info.data.get("ENV", "dev")).lower()
        if env != "dev" and value:
            raise ValueError("SEED_ENABLED must be false in non-dev environments")
        return value


settings = Settings()
