"""
==============================================================================
Configuration Package
==============================================================================

Centralized configuration management using Pydantic Settings.

Usage:
------
    from scancode.config import get_settings

    settings = get_settings()
    print(settings.camera_index)
    print(settings.retry_settle_delay)

==============================================================================
"""

from .settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
