"""
config.py — Centralized Application Configuration Loader

Purpose:
- Define a single source of truth for application settings.
- Load and validate environment variables from `.env` or OS environment.
- Select which Entity Store backend the application runs against.

Entity Store backends:
- "memory"   → in-process fixture data (demo / tests)
- "supabase" → hosted Supabase tables through the supabase client
- "sql"      → direct SQLAlchemy connection to the same Postgres database

This module does NOT:
- Execute any DB connections.
- Make external API calls.
- Modify runtime settings.
"""

from pathlib import Path
from typing import Any, List

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# config.py is at: backend/app/core/config.py
# .env should be at: backend/.env
_CONFIG_DIR = Path(__file__).parent  # backend/app/core
_BACKEND_DIR = _CONFIG_DIR.parent.parent  # backend
_ENV_FILE = _BACKEND_DIR / ".env"

if _ENV_FILE.exists():
    _ENV_FILE_PATH = str(_ENV_FILE.resolve())
else:
    # Fallback: use relative path (pydantic will look in CWD)
    _ENV_FILE_PATH = ".env"

STORE_BACKENDS = ("memory", "supabase", "sql")


class Settings(BaseSettings):
    """
    Settings container for the Desk Guard backend.
    """
    APP_NAME: str = Field(
        "Desk Guard",
        description="Display name used by the landing page and OpenAPI docs",
    )
    LOG_LEVEL: str = Field(
        "INFO",
        description="Root log level: DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )

    # Entity Store selection
    ENTITY_STORE_BACKEND: str = Field(
        "memory",
        description="Entity Store implementation: 'memory', 'supabase' or 'sql'",
    )

    # Database Configuration (Supabase)
    SUPABASE_URL: str = Field(
        "",
        description="Supabase project URL",
    )
    SUPABASE_SERVICE_ROLE_KEY: str = Field(
        "",
        description="Supabase service role key for table access",
    )
    SUPABASE_DB_URL: str = Field(
        "",
        description="PostgreSQL connection URL for the Supabase database (used by the 'sql' backend)",
    )

    # Session tokens
    JWT_SECRET_KEY: str = Field(
        "change-me",
        description="HMAC secret used to sign session tokens",
    )
    JWT_ALGORITHM: str = Field(
        "HS256",
        description="JWT signing algorithm",
    )
    JWT_EXPIRE_MINUTES: int = Field(
        60 * 24,
        description="Session token lifetime (minutes)",
    )

    # Login (demo-grade: a single shared password, no hashing)
    DEMO_PASSWORD: str = Field(
        "123456",
        description="Password accepted for every user at login",
    )

    # Dashboard
    EXPIRY_WARNING_DAYS: int = Field(
        30,
        description="Products expiring within this many days count as expiring soon",
    )
    NOTIFICATION_LIMIT: int = Field(
        10,
        description="Maximum number of unread notifications shown on the dashboard",
    )

    CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: ["http://localhost:8080", "http://127.0.0.1:8080"],
        description="Origins allowed to call the API from a browser",
    )

    @field_validator("ENTITY_STORE_BACKEND", mode="before")
    @classmethod
    def normalize_backend(cls, v: Any) -> str:
        """Lower-case and validate the backend name."""
        value = (v or "memory").strip().lower()
        if value not in STORE_BACKENDS:
            raise ValueError(
                f"ENTITY_STORE_BACKEND must be one of {', '.join(STORE_BACKENDS)}, got {v!r}"
            )
        return value

    @field_validator("SUPABASE_SERVICE_ROLE_KEY", "JWT_SECRET_KEY", mode="before")
    @classmethod
    def strip_secret(cls, v: Any) -> str:
        """Strip whitespace from secrets."""
        if isinstance(v, str):
            return v.strip()
        return v or ""

    @model_validator(mode="after")
    def check_backend_credentials(self) -> "Settings":
        """Fail fast when a remote backend is selected without its connection settings."""
        if self.ENTITY_STORE_BACKEND == "supabase":
            if not self.SUPABASE_URL or not self.SUPABASE_SERVICE_ROLE_KEY:
                raise ValueError(
                    "ENTITY_STORE_BACKEND=supabase requires SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY"
                )
        if self.ENTITY_STORE_BACKEND == "sql" and not self.SUPABASE_DB_URL:
            raise ValueError("ENTITY_STORE_BACKEND=sql requires SUPABASE_DB_URL")
        return self

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE_PATH,
        env_file_encoding="utf-8",
        extra="ignore",
    )


# Settings singleton shared by every importer
settings = Settings()
