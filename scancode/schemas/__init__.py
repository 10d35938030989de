"""
==============================================================================
Schemas Package - Pydantic Models
==============================================================================

Request and response schemas using Pydantic for validation.

This package provides:
- Common: Shared response schemas
- Session: Scan session status and result report schemas

==============================================================================
"""

from .common import MessageResponse
from .session import ScannedCode, ScanReport, SessionResponse, SessionStatus

__all__ = [
    "MessageResponse",
    "ScannedCode",
    "ScanReport",
    "SessionResponse",
    "SessionStatus",
]
