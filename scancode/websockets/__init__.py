"""
==============================================================================
WebSocket Package
==============================================================================

Real-time WebSocket handlers for barcode scanning.

Handlers:
---------
- scanner: Live scan session events and lifecycle commands

==============================================================================
"""

from .scanner import router as scanner_router

__all__ = ["scanner_router"]
