"""
Centralized configuration management.

Rules:
- All secrets (DB URLs, JWT keys, Redis credentials) MUST come from
  environment variables or a secure secret store (never hardcoded)
- Centralize configuration in this module
- Do not spread os.getenv calls all over the codebase
- Do not log secrets or environment values
"""
from __future__ import annotations
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # --- App ---
    ENVIRONMENT: str = Field(default="development", description="development | production")
    API_PREFIX: str = Field(default="", description="Prefix every router is mounted under")
    LOG_LEVEL: str = Field(default="INFO", description="Level of the tenanthub logger")

    # --- Postgres ---
    DATABASE_URL: str | None = Field(default=None, description="SQLAlchemy URL, overrides PG_* when set")
    PG_HOST: str = Field(default="localhost", description="PostgreSQL host")
    PG_PORT: int = Field(default=5432, description="PostgreSQL port")
    PG_DB: str = Field(default="tenanthub", description="PostgreSQL database name")
    PG_USER: str = Field(default="tenanthub", description="PostgreSQL user")
    PG_PASSWORD: str = Field(default="", description="PostgreSQL password")
    PG_SSLMODE: str = Field(default="prefer", description="PostgreSQL SSL mode (require/prefer/disable)")

    # --- Sessions ---
    SESSION_COOKIE_NAME: str = Field(default="session", description="Session cookie name")
    SESSION_TTL_DAYS: int = Field(default=7, description="Session lifetime in days")

    # --- JWT (product SSO) ---
    JWT_SECRET: str = Field(..., description="JWT signing secret key")
    SSO_TOKEN_EXP_MIN: int = Field(default=60, description="Product SSO token expiration in minutes")

    # --- Redis/Valkey ---
    REDIS_HOST: str = Field(default="redis", description="Redis host")
    REDIS_PORT: int = Field(default=6379, description="Redis port")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password")
    REDIS_SSL: str = Field(default="false", description="Redis SSL enabled (true/false)")
    REDIS_SOCKET_TIMEOUT: float = Field(default=2.0, description="Seconds before a Redis call gives up")
    REDIS_KEY_PREFIX: str = Field(default="tenanthub:", description="Namespace prepended to every cache key")
    TENANT_CACHE_TTL: int = Field(default=3600, description="Seconds a tenant lookup stays cached")

    # --- External products ---
    PRODUCT_LOGIN_URLS: dict[str, str] = Field(
        default_factory=dict,
        description="Product key -> external login URL, used by GET /auth/logout?redirect=",
    )

    # --- CORS ---
    CORS_ORIGINS: str = Field(default="*", description="CORS allowed origins (comma-separated)")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{self.PG_USER}:{self.PG_PASSWORD}"
            f"@{self.PG_HOST}:{self.PG_PORT}/{self.PG_DB}?sslmode={self.PG_SSLMODE}"
        )

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


settings = Settings()
