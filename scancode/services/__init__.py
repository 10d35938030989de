"""
==============================================================================
Services Package - Business Logic Layer
==============================================================================

Service classes sitting between the API layer and the scanner core.

This package provides:
- SessionManager: Registry and lifecycle owner of scan sessions

Architecture Pattern: Service Layer
----------------------------------
    ┌─────────────────┐
    │ REST / WebSocket│
    └────────┬────────┘
             │
    ┌────────▼────────┐
    │ SessionManager  │  ← Session registry
    └────────┬────────┘
             │
    ┌────────▼────────┐
    │  ScanSession    │  ← Camera + decode lifecycle
    └─────────────────┘

==============================================================================
"""

from .session_service import SessionManager, get_session_manager

__all__ = [
    "SessionManager",
    "get_session_manager",
]
