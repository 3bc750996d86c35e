# =============================================================================
# app/config.py - Application Settings
# =============================================================================
# This module loads configuration from environment variables using pydantic-settings.
# It provides a single Settings class with all configuration values.
#
# Usage:
#   from app.config import settings
#   print(settings.SUPABASE_URL)
#
# Environment variables are loaded from:
# 1. System environment variables
# 2. .env file in project root (if exists)
#
# The Settings class validates all values at startup, catching configuration
# errors early rather than at runtime.
# =============================================================================

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Secrets (service-role key, Firebase credentials) are server-side only
    and are never echoed in responses.

    All settings are accessed via the global `settings` instance.
    """

    # -------------------------------------------------------------------------
    # Supabase Configuration
    # -------------------------------------------------------------------------
    # These are required - app won't start without them

    SUPABASE_URL: str = Field(
        ...,
        description="Supabase project URL (e.g., https://xxx.supabase.co)"
    )

    SUPABASE_ANON_KEY: str = Field(
        ...,
        description="Supabase anon/public API key"
    )

    SUPABASE_SERVICE_KEY: str = Field(
        ...,
        description="Supabase service_role key (bypasses RLS, server-side only)"
    )

    SUPABASE_JWT_SECRET: str = Field(
        default="",
        description="Legacy HS256 secret used to verify Supabase session tokens"
    )

    # -------------------------------------------------------------------------
    # Firebase (phone identity provider)
    # -------------------------------------------------------------------------

    FIREBASE_API_KEY: str = Field(
        default="",
        description="Web API key used for the accounts:lookup endpoint"
    )

    FIREBASE_LOOKUP_URL: str = Field(
        default="https://identitytoolkit.googleapis.com/v1/accounts:lookup",
        description="Identity Toolkit account lookup endpoint"
    )

    FIREBASE_LOOKUP_TIMEOUT: float = Field(
        default=10.0,
        gt=0,
        description="Timeout in seconds for the token lookup request"
    )

    FIREBASE_VERIFY_MODE: Literal["lookup", "admin"] = Field(
        default="lookup",
        description="'lookup' uses the REST endpoint, 'admin' uses the Admin SDK"
    )

    FIREBASE_PROJECT_ID: str = Field(default="", description="Service account project id")
    FIREBASE_CLIENT_EMAIL: str = Field(default="", description="Service account client email")
    FIREBASE_PRIVATE_KEY: str = Field(
        default="",
        description="Service account private key (literal \\n sequences are expanded)"
    )

    # -------------------------------------------------------------------------
    # Identity Bridge
    # -------------------------------------------------------------------------

    PHONE_COUNTRY_CODE: str = Field(
        default="82",
        pattern=r"^\d{1,3}$",
        description="Country calling code used for phone normalization"
    )

    SYNTHETIC_EMAIL_DOMAIN: str = Field(
        default="firebase.phone",
        description="Domain of the synthetic emails created for phone-only accounts"
    )

    BRIDGE_BASE_URL: str = Field(
        default="",
        description="Base URL the bridge client posts id tokens to (empty disables it)"
    )

    # -------------------------------------------------------------------------
    # Chat
    # -------------------------------------------------------------------------

    INSTRUCTOR_GRADE_LABEL: str = Field(
        default="강사",
        description="Staff grade label that marks an instructor"
    )

    DIRECTOR_GRADE_LABEL: str = Field(default="원장", description="Academy director label")
    VICE_DIRECTOR_GRADE_LABEL: str = Field(default="부원장", description="Vice director label")

    MESSAGE_MAX_LENGTH: int = Field(
        default=5000,
        ge=1,
        description="Maximum message length after trimming"
    )

    # -------------------------------------------------------------------------
    # Redis Configuration (realtime fan-out)
    # -------------------------------------------------------------------------

    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for chat event pub/sub"
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Current environment"
    )

    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (verbose logging, auto-reload)"
    )

    API_HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the API server to"
    )

    API_PORT: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port for the API server"
    )

    # CORS origins (comma-separated string that gets parsed)
    CORS_ORIGINS: str = Field(
        default="http://localhost:5173",
        description="Allowed CORS origins (comma-separated)"
    )

    # -------------------------------------------------------------------------
    # Pydantic Settings Configuration
    # -------------------------------------------------------------------------

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        # Don't fail if .env doesn't exist (production sets env vars directly)
        env_ignore_empty=True,
        case_sensitive=True,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Computed Properties
    # -------------------------------------------------------------------------

    @property
    def cors_origins_list(self) -> list[str]:
        """
        Parse CORS_ORIGINS string into a list.

        Example: "http://localhost:5173, https://app.example.com"
        """
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def firebase_private_key(self) -> str:
        """Private key with escaped newlines expanded."""
        return self.FIREBASE_PRIVATE_KEY.replace("\\n", "\n")

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached Settings instance.

    Using lru_cache ensures we only parse .env and validate once.
    """
    return Settings()


# Global settings instance for easy importing
# Usage: from app.config import settings
settings = get_settings()
