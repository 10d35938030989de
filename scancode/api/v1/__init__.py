"""
==============================================================================
API v1 Endpoints
==============================================================================

Version 1 of the REST API.

Routers:
--------
- health: Health check endpoints
- sessions: Scan session lifecycle

==============================================================================
"""

from . import health, sessions

__all__ = ["health", "sessions"]
