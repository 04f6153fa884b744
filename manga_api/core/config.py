# File: manga_api/core/config.py

import os
from functools import lru_cache
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value


def _default_database_url() -> str:
    explicit = _env("DATABASE_URL")
    if explicit:
        return explicit
    host = _env("DB_HOST", "localhost")
    user = _env("DB_USER", "manga")
    password = _env("DB_PASSWORD", "")
    name = _env("DB_NAME", "manga")
    return f"mysql+pymysql://{user}:{password}@{host}/{name}"


class Settings(BaseModel):
    # Defaults come from the environment and still go through the validators
    model_config = ConfigDict(validate_default=True)

    # Basic app info
    PROJECT_NAME: str = "Manga Reader API"
    api_version: str = Field(default_factory=lambda: _env("API_VERSION", "1.0.0"))
    api_prefix: str = "/api"

    environment: str = Field(
        default_factory=lambda: _env("APP_ENV") or _env("NODE_ENV", "development")
    )
    port: int = Field(default_factory=lambda: int(_env("PORT", "3000")))
    log_level: str = Field(default_factory=lambda: _env("LOG_LEVEL", "INFO"))

    # Deployment metadata (shown by detailed /status)
    deploy_timestamp: Optional[str] = Field(default_factory=lambda: _env("DEPLOY_TIMESTAMP"))
    git_commit: Optional[str] = Field(default_factory=lambda: _env("GIT_COMMIT"))

    # CORS
    allowed_origins: List[str] = Field(
        default_factory=lambda: _env("ALLOWED_ORIGINS", "http://localhost:5173")
    )

    # Rate limiting (enforced by the reverse proxy; exposed for /status)
    rate_limit_window_ms: int = Field(
        default_factory=lambda: int(_env("RATE_LIMIT_WINDOW_MS", "900000"))
    )
    rate_limit_max: int = Field(default_factory=lambda: int(_env("RATE_LIMIT_MAX", "100")))

    # Database
    database_url: str = Field(default_factory=_default_database_url)
    db_connection_limit: int = Field(
        default_factory=lambda: int(_env("DB_CONNECTION_LIMIT", "10"))
    )
    auto_create_tables: Optional[bool] = Field(
        default_factory=lambda: (
            _env("AUTO_CREATE_TABLES").lower() in ("1", "true", "yes")
            if _env("AUTO_CREATE_TABLES")
            else None
        )
    )

    # Uploads
    upload_base_path: str = Field(default_factory=lambda: _env("UPLOAD_BASE_PATH", "./uploads"))

    # Security / auth
    admin_api_key: Optional[str] = Field(default_factory=lambda: _env("ADMIN_API_KEY"))
    session_ttl_days: int = Field(default_factory=lambda: int(_env("SESSION_TTL_DAYS", "7")))
    bcrypt_rounds: int = 10

    # Monitoring
    slow_query_threshold_ms: int = Field(
        default_factory=lambda: int(_env("SLOW_QUERY_THRESHOLD_MS", "1000"))
    )
    status_cache_seconds: int = Field(
        default_factory=lambda: int(_env("STATUS_CACHE_SECONDS", "30"))
    )

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v):
        if isinstance(v, str):
            return [i.strip() for i in v.split(",") if i.strip()]
        if isinstance(v, list):
            return v
        return []

    @field_validator("environment")
    @classmethod
    def normalize_environment(cls, v: str) -> str:
        v = (v or "development").strip().lower()
        if v not in ("development", "production", "test"):
            raise ValueError(f"Unknown environment '{v}'")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def should_create_tables(self) -> bool:
        if self.auto_create_tables is not None:
            return self.auto_create_tables
        return not self.is_production


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
