"""
==============================================================================
Scan Session Endpoints
==============================================================================

Create, drive and finalize camera scan sessions.

Flow:
-----
1. POST /sessions                 -> idle session
2. POST /sessions/{id}/start      -> camera acquired, scanning
3. GET  /sessions/{id}            -> live status (results, attempts, hint)
4. POST /sessions/{id}/finish     -> committed codes (or /close to abandon)
5. POST /sessions/{id}/retry      -> after a camera error

==============================================================================
"""

from fastapi import APIRouter, Depends, Query

from scancode.core import exceptions
from scancode.core.dependencies import get_secure_context
from scancode.scanner import ScanSession
from scancode.schemas.common import MessageResponse
from scancode.schemas.session import ScanReport, SessionResponse, SessionStatus
from scancode.services.session_service import SessionManager, get_session_manager


router = APIRouter(prefix="/sessions", tags=["Sessions"])


class SessionController:
    """Controller for scan session operations."""

    def __init__(self, manager: SessionManager):
        self._manager = manager

    @staticmethod
    def _status(session: ScanSession, debug: bool = False) -> SessionResponse:
        return SessionResponse(session=SessionStatus(**session.snapshot(include_debug=debug)))

    def create(self, secure_context: bool) -> SessionResponse:
        """Create an idle session."""
        session = self._manager.create(secure_context=secure_context)
        return self._status(session)

    def get(self, session_id: str, debug: bool) -> SessionResponse:
        """Get session status."""
        return self._status(self._manager.get(session_id), debug)

    async def start(self, session_id: str) -> SessionResponse:
        """Acquire the camera and start scanning."""
        session = self._manager.get(session_id)
        await session.start()
        return self._status(session)

    async def stop(self, session_id: str) -> SessionResponse:
        """Stop scanning and release the camera."""
        session = self._manager.get(session_id)
        await session.stop()
        return self._status(session)

    async def retry(self, session_id: str) -> SessionResponse:
        """Release and re-acquire the camera."""
        session = self._manager.get(session_id)
        await session.retry()
        return self._status(session)

    async def finish(self, session_id: str) -> ScanReport:
        """Commit scanned codes and end the session."""
        session = self._manager.get(session_id)
        results = await session.finish()

        if not results:
            raise exceptions.no_results(session_id)

        return ScanReport.create(session_id, results)

    async def close(self, session_id: str) -> MessageResponse:
        """Abandon the session."""
        session = self._manager.get(session_id)
        await session.close()
        return MessageResponse(message=f"Scan session '{session_id}' closed")

    def remove_result(self, session_id: str, index: int) -> SessionResponse:
        """Drop one scanned code."""
        session = self._manager.get(session_id)
        session.remove_result(index)
        return self._status(session)

    def report(self, session_id: str) -> ScanReport:
        """Committed codes of a finished session."""
        results = self._manager.completed_results(session_id)
        if results is None:
            raise exceptions.session_not_found(session_id)
        return ScanReport.create(session_id, results)

    async def delete(self, session_id: str) -> MessageResponse:
        """Dispose and forget a session."""
        await self._manager.remove(session_id)
        return MessageResponse(message=f"Scan session '{session_id}' disposed")


@router.post("", response_model=SessionResponse, status_code=201)
async def create_session(
    secure_context: bool = Depends(get_secure_context),
    manager: SessionManager = Depends(get_session_manager)
):
    """Create a new idle scan session."""
    return SessionController(manager).create(secure_context)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str,
    debug: bool = Query(False, description="Include the session debug log"),
    manager: SessionManager = Depends(get_session_manager)
):
    """Get scan session status."""
    return SessionController(manager).get(session_id, debug)


@router.post("/{session_id}/start", response_model=SessionResponse)
async def start_session(session_id: str, manager: SessionManager = Depends(get_session_manager)):
    """Acquire the camera and start scanning."""
    return await SessionController(manager).start(session_id)


@router.post("/{session_id}/stop", response_model=SessionResponse)
async def stop_session(session_id: str, manager: SessionManager = Depends(get_session_manager)):
    """Stop scanning and release the camera."""
    return await SessionController(manager).stop(session_id)


@router.post("/{session_id}/retry", response_model=SessionResponse)
async def retry_session(session_id: str, manager: SessionManager = Depends(get_session_manager)):
    """Retry camera acquisition after an error."""
    return await SessionController(manager).retry(session_id)


@router.post("/{session_id}/finish", response_model=ScanReport)
async def finish_session(session_id: str, manager: SessionManager = Depends(get_session_manager)):
    """Commit scanned codes and end the session."""
    return await SessionController(manager).finish(session_id)


@router.post("/{session_id}/close", response_model=MessageResponse)
async def close_session(session_id: str, manager: SessionManager = Depends(get_session_manager)):
    """Abandon the session without committing."""
    return await SessionController(manager).close(session_id)


@router.get("/{session_id}/report", response_model=ScanReport)
async def session_report(session_id: str, manager: SessionManager = Depends(get_session_manager)):
    """Get the committed codes of a finished session."""
    return SessionController(manager).report(session_id)


@router.delete("/{session_id}/results/{index}", response_model=SessionResponse)
async def remove_result(
    session_id: str,
    index: int,
    manager: SessionManager = Depends(get_session_manager)
):
    """Remove a scanned code by its position."""
    return SessionController(manager).remove_result(session_id, index)


@router.delete("/{session_id}", response_model=MessageResponse)
async def delete_session(session_id: str, manager: SessionManager = Depends(get_session_manager)):
    """Dispose a session."""
    return await SessionController(manager).delete(session_id)
