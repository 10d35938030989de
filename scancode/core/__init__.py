"""
==============================================================================
Core Package
==============================================================================

Core infrastructure for the application.

This package provides:
- AppException with consistent JSON error responses
- The scan session error taxonomy
- Exception factory functions for common error scenarios

Usage:
------
    from scancode.core import exceptions
    raise exceptions.session_not_found(session_id)

==============================================================================
"""

from .exceptions import (
    AppException,
    CameraAccessError,
    DecodeFault,
    DisplaySurfaceFault,
    InsecureContext,
    NoCameraAvailable,
    SessionDisposed,
    UnsupportedEnvironment,
    register_exception_handlers,
)

__all__ = [
    "AppException",
    "CameraAccessError",
    "DecodeFault",
    "DisplaySurfaceFault",
    "InsecureContext",
    "NoCameraAvailable",
    "SessionDisposed",
    "UnsupportedEnvironment",
    "register_exception_handlers",
]
