"""
==============================================================================
Application Settings Module
==============================================================================

Configuration management for the scanning service using Pydantic Settings.

This module implements the Singleton pattern to ensure a single global
configuration instance throughout the application lifecycle.

Features:
---------
- Environment variable loading with type validation
- .env file support for local development
- Camera, readiness and decode-loop tuning in one place

Configuration Priority (highest to lowest):
------------------------------------------
1. Environment variables
2. .env file
3. Default values

==============================================================================
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import Dict, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Module logger
logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        app_name: Display name for the application
        app_env: Environment mode (development/staging/production)
        debug: Enable debug mode for verbose logging
        host: Server bind address
        port: Server port number
        cors_origins: Allowed CORS origins (JSON array string)
        camera_index: Default camera device index
        camera_backend: OpenCV capture backend name
        facing_mode_devices: Facing mode to device index mapping (JSON object string)
        require_secure_context: Refuse camera access to non-secure callers
        retry_settle_delay: Seconds to wait between stop and start on retry
        readiness_max_retries: Polls of the video surface before giving up
        readiness_poll_interval: Seconds between readiness polls
        decode_interval: Seconds to wait between decode attempts
        scan_hint_attempts: Empty attempts before the lighting/distance hint
        progress_log_every: Attempts between progress lines in the debug log
        debug_log_limit: Lines kept in each session's debug log
        report_history_limit: Finished-session reports kept for the result view
        max_sessions: Upper bound on concurrently registered sessions

    Example:
        >>> settings = Settings()
        >>> print(settings.app_name)
        'ScanCode'
    """

    # =========================================================================
    # PYDANTIC SETTINGS CONFIGURATION
    # =========================================================================
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
    )

    # =========================================================================
    # APPLICATION SETTINGS
    # =========================================================================
    app_name: str = Field(
        default="ScanCode",
        description="Display name for the application"
    )

    app_env: str = Field(
        default="development",
        description="Environment mode: development, staging, production"
    )

    debug: bool = Field(
        default=True,
        description="Enable debug mode for verbose logging"
    )

    # =========================================================================
    # SERVER SETTINGS
    # =========================================================================
    host: str = Field(
        default="0.0.0.0",
        description="Server bind address"
    )

    port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Server port number"
    )

    cors_origins: str = Field(
        default='["*"]',
        description="Allowed CORS origins as JSON array string"
    )

    # =========================================================================
    # CAMERA SETTINGS
    # =========================================================================
    camera_index: int = Field(
        default=0,
        ge=0,
        description="Default camera device index"
    )

    camera_backend: str = Field(
        default="any",
        description="OpenCV capture backend: any, v4l2, dshow, msmf, avfoundation, gstreamer"
    )

    facing_mode_devices: str = Field(
        default='{"environment": 0, "user": 1}',
        description="Facing mode to device index mapping as JSON object string"
    )

    require_secure_context: bool = Field(
        default=True,
        description="Only allow camera access from HTTPS or loopback callers"
    )

    # =========================================================================
    # SESSION LIFECYCLE SETTINGS
    # =========================================================================
    retry_settle_delay: float = Field(
        default=1.0,
        ge=0.0,
        le=30.0,
        description="Seconds between releasing and re-acquiring the camera on retry"
    )

    readiness_max_retries: int = Field(
        default=20,
        ge=1,
        le=500,
        description="Video surface readiness polls before failing"
    )

    readiness_poll_interval: float = Field(
        default=0.1,
        ge=0.0,
        le=5.0,
        description="Seconds between readiness polls"
    )

    max_sessions: int = Field(
        default=4,
        ge=1,
        le=64,
        description="Maximum concurrently registered scan sessions"
    )

    # =========================================================================
    # DECODE LOOP SETTINGS
    # =========================================================================
    decode_interval: float = Field(
        default=0.0,
        ge=0.0,
        le=5.0,
        description="Seconds to wait between decode attempts"
    )

    scan_hint_attempts: int = Field(
        default=300,
        ge=1,
        description="Attempts without any result before suggesting lighting/distance changes"
    )

    progress_log_every: int = Field(
        default=50,
        ge=1,
        description="Attempts between progress lines in the session debug log"
    )

    debug_log_limit: int = Field(
        default=200,
        ge=10,
        le=10000,
        description="Lines kept in each session's debug log"
    )

    report_history_limit: int = Field(
        default=32,
        ge=1,
        le=10000,
        description="Finished-session reports kept for the result view"
    )

    # =========================================================================
    # VALIDATORS
    # =========================================================================
    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, value: str) -> str:
        """
        Validate and normalize application environment.

        Args:
            value: Raw environment value

        Returns:
            Lowercase normalized environment name
        """
        valid_envs = {"development", "staging", "production"}
        normalized = value.lower().strip()

        if normalized not in valid_envs:
            logger.warning(
                f"Unknown environment '{value}', defaulting to 'development'"
            )
            return "development"

        return normalized

    @field_validator("camera_backend")
    @classmethod
    def validate_camera_backend(cls, value: str) -> str:
        """
        Validate the OpenCV capture backend name.

        Raises:
            ValueError: If backend is not supported
        """
        supported = {"any", "v4l2", "dshow", "msmf", "avfoundation", "gstreamer"}
        normalized = value.lower().strip()

        if normalized not in supported:
            raise ValueError(
                f"Unsupported camera backend: {value}. "
                f"Supported: {', '.join(sorted(supported))}"
            )

        return normalized

    # =========================================================================
    # COMPUTED PROPERTIES
    # =========================================================================
    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"

    @property
    def cors_origins_list(self) -> List[str]:
        """
        Parse CORS origins from JSON string to list.

        Returns:
            List of allowed origin strings
        """
        try:
            origins = json.loads(self.cors_origins)
            if isinstance(origins, list):
                return origins
            return ["*"]
        except json.JSONDecodeError:
            logger.warning(
                f"Invalid CORS origins JSON: {self.cors_origins}, "
                "defaulting to ['*']"
            )
            return ["*"]

    @property
    def facing_mode_map(self) -> Dict[str, int]:
        """
        Parse the facing mode mapping from JSON string to dict.

        Returns:
            Mapping of facing mode name to camera device index
        """
        try:
            mapping = json.loads(self.facing_mode_devices)
            if isinstance(mapping, dict):
                return {str(k): int(v) for k, v in mapping.items()}
        except (json.JSONDecodeError, TypeError, ValueError):
            pass

        logger.warning(
            f"Invalid facing mode mapping: {self.facing_mode_devices}, "
            "using default camera for every facing mode"
        )
        return {}

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"Settings(app_name={self.app_name!r}, "
            f"app_env={self.app_env!r}, "
            f"camera_index={self.camera_index}, "
            f"debug={self.debug})"
        )


# =============================================================================
# SINGLETON INSTANCE MANAGEMENT
# =============================================================================

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get the global Settings instance (singleton pattern).

    Returns:
        Global Settings instance
    """
    settings = Settings()

    if settings.debug:
        logger.info(f"Configuration loaded: {settings}")

    return settings
