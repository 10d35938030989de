"""
==============================================================================
Session Service Module
==============================================================================

Registry of live scan sessions shared by the REST and WebSocket layers.

This module implements:
- SessionManager: Creates, looks up and disposes ScanSession instances
- Finished-session results kept for the result view (most recent only)

==============================================================================
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from functools import lru_cache
from typing import Callable, Dict, List, Optional

from scancode.config import Settings, get_settings
from scancode.core import exceptions
from scancode.scanner import BarcodeDecoder, OpenCVCamera, ScanSession
from scancode.scanner.decode_loop import Decoder
from scancode.scanner.negotiator import Camera


# Module logger
logger = logging.getLogger(__name__)


class SessionManager:
    """
    Owner of every ScanSession in the process.

    Sessions never share a camera stream or a result set; the manager only
    hands them out by id and cleans them up.

    Example:
        >>> manager = SessionManager()
        >>> session = manager.create(secure_context=True)
        >>> await session.start()
        >>> manager.get(session.id) is session
        True
    """

    def __init__(
        self,
        camera_factory: Optional[Callable[[], Camera]] = None,
        decoder_factory: Optional[Callable[[], Decoder]] = None,
        settings: Optional[Settings] = None
    ) -> None:
        self._settings = settings or get_settings()
        self._camera_factory = camera_factory or self._default_camera
        self._decoder_factory = decoder_factory or BarcodeDecoder
        self._sessions: Dict[str, ScanSession] = {}
        self._completed: "OrderedDict[str, List[str]]" = OrderedDict()

    def _default_camera(self) -> Camera:
        return OpenCVCamera(
            default_index=self._settings.camera_index,
            backend=self._settings.camera_backend,
            facing_mode_devices=self._settings.facing_mode_map
        )

    # =========================================================================
    # REGISTRY OPERATIONS
    # =========================================================================

    @property
    def active_count(self) -> int:
        return sum(1 for s in self._sessions.values() if not s.is_disposed)

    def camera_supported(self) -> bool:
        return self._camera_factory().is_supported()

    def create(self, secure_context: bool = True) -> ScanSession:
        """
        Register a new idle session.

        Raises:
            AppException: SESSION_LIMIT_REACHED if too many sessions are live
        """
        self._prune()

        if self.active_count >= self._settings.max_sessions:
            raise exceptions.session_limit_reached(self._settings.max_sessions)

        holder: Dict[str, str] = {}

        def on_scan(results: List[str]) -> None:
            self._store_completed(holder["id"], results)

        def on_close() -> None:
            self._completed.pop(holder["id"], None)

        session = ScanSession(
            camera=self._camera_factory(),
            decoder=self._decoder_factory(),
            settings=self._settings,
            secure_context=secure_context,
            on_scan=on_scan,
            on_close=on_close
        )
        holder["id"] = session.id
        self._sessions[session.id] = session

        logger.info(f"🆕 Scan session {session.id} created (secure={secure_context})")
        return session

    def get(self, session_id: str) -> ScanSession:
        """
        Raises:
            AppException: SESSION_NOT_FOUND
        """
        session = self._sessions.get(session_id)
        if session is None:
            raise exceptions.session_not_found(session_id)
        return session

    def completed_results(self, session_id: str) -> Optional[List[str]]:
        """Codes committed by a finished session, if any."""
        return self._completed.get(session_id)

    async def remove(self, session_id: str) -> None:
        """Dispose a session (if still alive) and forget it."""
        session = self.get(session_id)
        if not session.is_disposed:
            await session.dispose()
        self._sessions.pop(session_id, None)
        self._completed.pop(session_id, None)
        logger.info(f"🗑️ Scan session {session_id} removed")

    async def dispose_all(self) -> int:
        """
        Dispose every live session.

        Returns:
            Number of sessions disposed
        """
        count = 0
        for session in list(self._sessions.values()):
            if not session.is_disposed:
                await session.dispose()
                count += 1
        self._sessions.clear()

        if count > 0:
            logger.info(f"🛑 Disposed {count} scan session(s)")
        return count

    def _store_completed(self, session_id: str, results: List[str]) -> None:
        self._completed[session_id] = list(results)
        self._completed.move_to_end(session_id)
        while len(self._completed) > self._settings.report_history_limit:
            expired, _ = self._completed.popitem(last=False)
            logger.debug(f"Report for session {expired} expired")

    def _prune(self) -> None:
        for session_id in [sid for sid, s in self._sessions.items() if s.is_disposed]:
            self._sessions.pop(session_id, None)


@lru_cache(maxsize=1)
def get_session_manager() -> SessionManager:
    """Get the global SessionManager instance (singleton pattern)."""
    return SessionManager()
