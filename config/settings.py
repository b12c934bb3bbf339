"""
Application Configuration Module

Centralizes all application settings using Pydantic Settings.
Environment variables are loaded from .env file automatically.

Usage:
    from config.settings import settings

    print(settings.CAPTCHA_API_BASE_URL)
    print(settings.CAPTCHA_POLL_INTERVAL)
"""

from pydantic_settings import BaseSettings
from pydantic import Field, ConfigDict
from typing import Optional
from functools import lru_cache


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables or .env file.
    Variable names are case-insensitive.
    """

    # ==========================================================================
    # CAPTCHA Solving Service
    # ==========================================================================
    CAPSOLVER_API_KEY: Optional[str] = Field(
        default=None,
        description="Client key for the remote CAPTCHA solving service"
    )
    CAPTCHA_API_BASE_URL: str = Field(
        default="https://api.capsolver.com",
        description="Base URL of the createTask/getTaskResult API"
    )
    CAPTCHA_TASK_TYPE: str = Field(
        default="ReCaptchaV2TaskProxyLess",
        description="Task type tag sent for reCAPTCHA v2 challenges"
    )

    # ==========================================================================
    # Polling Limits
    # ==========================================================================
    CAPTCHA_POLL_INTERVAL: float = Field(
        default=5.0,
        gt=0,
        description="Seconds to wait between getTaskResult polls"
    )
    CAPTCHA_MAX_POLL_ATTEMPTS: int = Field(
        default=24,
        ge=1,
        description="Maximum number of getTaskResult polls per task"
    )
    CAPTCHA_SOLVE_TIMEOUT: float = Field(
        default=120.0,
        gt=0,
        description="Maximum seconds to wait for a solution"
    )
    CAPTCHA_REQUEST_TIMEOUT: float = Field(
        default=30.0,
        gt=0,
        description="Per-request HTTP timeout in seconds"
    )

    # ==========================================================================
    # Browser Configuration
    # ==========================================================================
    BROWSER_HEADLESS: bool = Field(
        default=True,
        description="Run the shared Playwright browser headless"
    )
    BROWSER_POOL_MAX_CONTEXTS: int = Field(
        default=5,
        ge=1,
        description="Maximum concurrent browser contexts"
    )
    PAGE_LOAD_TIMEOUT_MS: int = Field(
        default=30000,
        description="Navigation timeout for solve-page requests (ms)"
    )

    # ==========================================================================
    # Redis Configuration (for rate limiting)
    # ==========================================================================
    REDIS_URL: Optional[str] = Field(
        default=None,
        description="Redis connection URL for rate limiting"
    )

    # ==========================================================================
    # CORS Configuration
    # ==========================================================================
    CORS_ORIGINS: str = Field(
        default="http://localhost:5173,http://localhost:3000",
        description="Allowed CORS origins (comma-separated)"
    )

    @property
    def cors_origins_list(self) -> list:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    # ==========================================================================
    # Application Settings
    # ==========================================================================
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode with verbose logging"
    )
    LOG_JSON: bool = Field(
        default=False,
        description="Emit logs as JSON objects"
    )
    APP_NAME: str = Field(
        default="Captcha Relay",
        description="Application name for OpenAPI docs"
    )
    APP_VERSION: str = Field(
        default="1.0.0",
        description="Application version"
    )

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()


# Singleton instance for easy import
settings = get_settings()
