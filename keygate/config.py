"""
Process configuration.

Uses Pydantic Settings for automatic environment variable and .env
loading. Core components never read settings themselves; the factory
passes the values they need at construction.

Example:
    from keygate.config import Settings
    from keygate.factory import create_auth_service

    settings = Settings()          # reads JWT_SECRET, SMTP_HOST, ...
    service = create_auth_service(settings)
"""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven settings for keygate."""

    # ==========================================================================
    # Session tokens
    # ==========================================================================
    JWT_SECRET: Optional[str] = None
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_HOURS: int = 24

    # ==========================================================================
    # One-time codes
    # ==========================================================================
    OTP_TTL_SECONDS: int = 300
    OTP_DIGITS: int = 6

    # ==========================================================================
    # Email delivery
    # ==========================================================================
    EMAIL_MODE: str = "smtp"  # "smtp" or "console"
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    FROM_EMAIL: str = ""

    # ==========================================================================
    # Federated sign-in (Google OAuth2)
    # ==========================================================================
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""
    GOOGLE_REDIRECT_URL: str = "http://localhost:8080/api/auth/google/callback"
    GOOGLE_TOKEN_URL: str = "https://oauth2.googleapis.com/token"
    GOOGLE_USERINFO_URL: str = "https://www.googleapis.com/oauth2/v2/userinfo"
    HTTP_TIMEOUT_SECONDS: float = 10.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
    )

    def federated_enabled(self) -> bool:
        """Check if Google sign-in credentials are configured."""
        return bool(self.GOOGLE_CLIENT_ID and self.GOOGLE_CLIENT_SECRET)

    @property
    def jwt_ttl_seconds(self) -> int:
        return self.JWT_EXPIRE_HOURS * 3600
