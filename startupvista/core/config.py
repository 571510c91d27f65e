"""
StartupVista Configuration
Environment-driven settings, loaded once per process.

Every field maps to an upper-case environment variable of the same name
(e.g. ``jwt_secret`` <- ``JWT_SECRET``). A local ``.env`` file is read when present.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # =========================================================================
    # Application
    # =========================================================================
    app_name: str = "StartupVista"
    app_version: str = "1.0.0"
    environment: str = "development"  # development, staging, production
    debug: bool = False

    # =========================================================================
    # Logging
    # =========================================================================
    log_level: str = "INFO"
    log_json: bool = False
    log_file: Optional[str] = None

    # =========================================================================
    # Database
    # =========================================================================
    database_url: str = "sqlite+aiosqlite:///./startupvista.db"
    store_timeout_seconds: float = 5.0

    # =========================================================================
    # Session tokens
    # =========================================================================
    jwt_secret: Optional[str] = None
    jwt_refresh_secret: Optional[str] = None  # Falls back to jwt_secret
    access_token_expire_days: int = 7
    refresh_token_expire_days: int = 30

    # Passwords
    bcrypt_rounds: int = 12

    # Gate policy
    require_verified_email: bool = False
    auth_cookie_name: str = "token"
    auth_cookie_secure: bool = False

    # =========================================================================
    # Firebase (federated identity)
    # =========================================================================
    firebase_project_id: Optional[str] = None
    firebase_credentials_path: Optional[str] = None
    firebase_credentials_b64: Optional[str] = None
    firebase_api_key: Optional[str] = None
    firebase_auth_domain: Optional[str] = None
    firebase_check_revoked: bool = True
    firebase_timeout_seconds: float = 10.0

    # =========================================================================
    # HTTP
    # =========================================================================
    cors_origins: str = (
        "http://localhost:3000,http://localhost:5173,"
        "http://127.0.0.1:5173,http://localhost:5174"
    )
    rate_limit_enabled: bool = True
    rate_limit_auth: str = "5/minute"

    @property
    def cors_origins_list(self) -> list[str]:
        """CORS origins as a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in ("production", "prod", "staging")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings. Usable as a FastAPI dependency."""
    return Settings()
