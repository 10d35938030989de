"""
Application Exception Handling

AppException base class for all application errors with FastAPI integration,
plus the scan session error taxonomy.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class AppException(Exception):
    """
    Unified application exception for all error scenarios.

    Provides consistent error response format across the entire API.

    Usage:
        raise AppException("Session not found", "SESSION_NOT_FOUND", 404)

    Error Codes:
        Camera acquisition:
            - INSECURE_CONTEXT (403)
            - UNSUPPORTED_ENVIRONMENT (503)
            - CAMERA_ACCESS_FAILED (503)
            - NO_CAMERA_AVAILABLE (503)
            - DISPLAY_SURFACE_FAULT (500)

        Scanning:
            - DECODE_FAULT (500)

        Session:
            - SESSION_NOT_FOUND (404)
            - SESSION_DISPOSED (409)
            - SESSION_LIMIT_REACHED (429)
            - INVALID_RESULT_INDEX (400)
            - NO_RESULTS (409)

        General:
            - INTERNAL_ERROR (500)
    """

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize application exception.

        Args:
            message: Human-readable error message
            code: Machine-readable error code (e.g., "SESSION_NOT_FOUND")
            status_code: HTTP status code (default: 400)
            details: Additional error context (optional)
        """
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        error_dict = {
            "success": False,
            "error": {
                "code": self.code,
                "message": self.message,
                "timestamp": self.timestamp
            }
        }

        if self.details:
            error_dict["error"]["details"] = self.details

        return error_dict


# ============================================
# SCAN SESSION ERRORS
# ============================================

class InsecureContext(AppException):
    """Camera access requested from a non-secure context."""

    def __init__(self, message: str = "Camera access requires a secure context (HTTPS or localhost)"):
        super().__init__(message, "INSECURE_CONTEXT", 403)


class UnsupportedEnvironment(AppException):
    """The runtime has no usable camera API at all."""

    def __init__(self, message: str = "Camera capture is not supported in this environment"):
        super().__init__(message, "UNSUPPORTED_ENVIRONMENT", 503)


class CameraAccessError(AppException):
    """A single constraint profile could not be satisfied."""

    def __init__(self, message: str, profile: Optional[str] = None):
        details = {"profile": profile} if profile else {}
        super().__init__(message, "CAMERA_ACCESS_FAILED", 503, details)
        self.profile = profile


class NoCameraAvailable(AppException):
    """Every constraint profile failed."""

    def __init__(self, last_error: Optional[BaseException] = None, attempted: int = 0):
        details: Dict[str, Any] = {"profiles_attempted": attempted}
        if last_error is not None:
            details["last_error"] = str(last_error)
        super().__init__("No camera could be opened", "NO_CAMERA_AVAILABLE", 503, details)
        self.last_error = last_error


class DisplaySurfaceFault(AppException):
    """The video surface failed to become ready."""

    def __init__(self, message: str = "Video loading failed", attempts: int = 0):
        super().__init__(message, "DISPLAY_SURFACE_FAULT", 500, {"readiness_polls": attempts})


class DecodeFault(AppException):
    """The decoder failed on a frame (as opposed to finding nothing)."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        details = {"cause": type(cause).__name__} if cause is not None else {}
        super().__init__(message, "DECODE_FAULT", 500, details)
        self.cause = cause


class SessionDisposed(AppException):
    """Operation attempted on a disposed session."""

    def __init__(self, session_id: Optional[str] = None):
        details = {"session_id": session_id} if session_id else {}
        super().__init__("Scan session has been disposed", "SESSION_DISPOSED", 409, details)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    FastAPI exception handler for AppException.

    Converts AppException to consistent JSON error response.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(AppException, app_exception_handler)


# ============================================
# CONVENIENCE FACTORY FUNCTIONS
# ============================================

def session_not_found(session_id: Optional[str] = None) -> AppException:
    """Create session not found exception."""
    details = {"session_id": session_id} if session_id else {}
    return AppException("Scan session not found", "SESSION_NOT_FOUND", 404, details)


def session_limit_reached(limit: int) -> AppException:
    """Create session limit exception."""
    return AppException(
        f"Too many active scan sessions (limit {limit})",
        "SESSION_LIMIT_REACHED",
        429,
        {"limit": limit}
    )


def no_results(session_id: Optional[str] = None) -> AppException:
    """Create nothing-scanned-yet exception."""
    details = {"session_id": session_id} if session_id else {}
    return AppException("No barcodes scanned yet", "NO_RESULTS", 409, details)


def invalid_result_index(index: int, size: int) -> AppException:
    """Create invalid result index exception."""
    return AppException(
        f"No scanned code at index {index}",
        "INVALID_RESULT_INDEX",
        400,
        {"index": index, "size": size}
    )


def internal_error(message: str = "Internal server error") -> AppException:
    """Create internal server error exception."""
    return AppException(message, "INTERNAL_ERROR", 500)
