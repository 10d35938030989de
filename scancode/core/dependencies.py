"""
==============================================================================
FastAPI Dependencies Module
==============================================================================

Dependency injection functions shared by REST and WebSocket routes.

Secure Context:
--------------
Camera access mirrors the browser rule: a caller is trusted when it talks
to us over TLS (https/wss) or from a loopback address. Settings can turn
the check off for trusted networks.

Usage:
------
    @router.post("/sessions")
    async def create_session(secure: bool = Depends(get_secure_context)):
        ...

==============================================================================
"""

from __future__ import annotations

from fastapi import Depends
from fastapi.requests import HTTPConnection

from scancode.config import Settings, get_settings


SECURE_SCHEMES = frozenset({"https", "wss"})
LOOPBACK_HOSTS = frozenset({"127.0.0.1", "::1", "localhost"})


def is_secure_connection(connection: HTTPConnection, settings: Settings) -> bool:
    """
    Decide whether a connection counts as a secure context.

    Args:
        connection: Incoming HTTP request or WebSocket
        settings: Application settings

    Returns:
        True if camera access may be granted to this caller
    """
    if not settings.require_secure_context:
        return True

    if connection.url.scheme in SECURE_SCHEMES:
        return True

    client = connection.client
    return client is not None and client.host in LOOPBACK_HOSTS


def get_secure_context(
    connection: HTTPConnection,
    settings: Settings = Depends(get_settings)
) -> bool:
    """FastAPI dependency resolving the caller's secure-context flag."""
    return is_secure_connection(connection, settings)
