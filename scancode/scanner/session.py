"""
==============================================================================
Scan Session Module
==============================================================================

Lifecycle of one scanning attempt: acquire a camera, bring the video
surface up, run the decode loop, and release everything on the way out.

State Machine:
-------------
    IDLE -> REQUESTING -> GRANTED -> LOADING -> READY -> SCANNING
      ^          |           |          |          |         |
      |          +-----------+----------+----------+-> ERROR |
      +---------------------- stop() ------------------------+
    any (not DISPOSED) -- dispose() --> DISPOSED (terminal)

Staleness:
---------
start(), stop() and dispose() bump a generation counter. Every await
inside start() is followed by a generation check, so a stream that
arrives after stop()/dispose() is released on the spot and never bound.

==============================================================================
"""

from __future__ import annotations

import asyncio
import enum
import logging
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, List, Optional, Sequence

from scancode.config import Settings, get_settings
from scancode.core.exceptions import (
    AppException,
    DecodeFault,
    DisplaySurfaceFault,
    SessionDisposed,
    internal_error,
    invalid_result_index,
)
from scancode.scanner.camera import CameraStream
from scancode.scanner.decode_loop import Decoder, FrameDecodeLoop, LoopHandle
from scancode.scanner.negotiator import AcquisitionAbandoned, Camera, DeviceNegotiator
from scancode.scanner.profiles import DEFAULT_PROFILES, ConstraintProfile
from scancode.scanner.results import DecodedValue, ResultSet
from scancode.scanner.surface import VideoSurface


# Module logger
logger = logging.getLogger(__name__)


HINT_MESSAGE = "No barcode detected yet. Try different lighting or distance."


class SessionState(str, enum.Enum):
    """Scan session states."""

    IDLE = "idle"
    REQUESTING = "requesting"
    GRANTED = "granted"
    LOADING = "loading"
    READY = "ready"
    SCANNING = "scanning"
    ERROR = "error"
    DISPOSED = "disposed"


STARTABLE_STATES = frozenset({SessionState.IDLE, SessionState.ERROR})

SessionListener = Callable[[Dict[str, Any]], None]


class ScanSession:
    """
    One camera-acquire -> scan -> finalize/abandon cycle.

    Attributes:
        id: Session identifier
        state: Current SessionState
        results: Distinct decoded values, in first-seen order
        scan_attempts: Frames submitted to the decoder since the last start
        retry_count: Number of retry() calls

    Example:
        >>> session = ScanSession(OpenCVCamera(), BarcodeDecoder(), on_scan=print)
        >>> await session.start()
        >>> ...
        >>> await session.finish()
        ['5901234123457', '4006381333931']
    """

    def __init__(
        self,
        camera: Camera,
        decoder: Decoder,
        surface: Optional[VideoSurface] = None,
        profiles: Sequence[ConstraintProfile] = DEFAULT_PROFILES,
        settings: Optional[Settings] = None,
        secure_context: bool = True,
        on_scan: Optional[Callable[[List[str]], None]] = None,
        on_close: Optional[Callable[[], None]] = None,
        session_id: Optional[str] = None
    ) -> None:
        settings = settings or get_settings()

        self.id = session_id or uuid.uuid4().hex
        self.created_at = datetime.now(timezone.utc)

        self._decoder = decoder
        self._surface = surface or VideoSurface()
        self._profiles = tuple(profiles)
        self._negotiator = DeviceNegotiator(camera, secure_context=secure_context)
        self._on_scan = on_scan
        self._on_close = on_close

        self._settle_delay = settings.retry_settle_delay
        self._readiness_max_retries = settings.readiness_max_retries
        self._readiness_poll_interval = settings.readiness_poll_interval
        self._decode_interval = settings.decode_interval
        self._hint_attempts = settings.scan_hint_attempts
        self._progress_every = settings.progress_log_every

        self._state = SessionState.IDLE
        self._generation = 0
        self._stream: Optional[CameraStream] = None
        self._loop: Optional[FrameDecodeLoop] = None
        self._handle: Optional[LoopHandle] = None
        self._results = ResultSet()
        self._error: Optional[AppException] = None
        self._retry_count = 0
        self._last_scanned: Optional[str] = None
        self._hint: Optional[str] = None
        self._debug_log: Deque[str] = deque(maxlen=settings.debug_log_limit)
        self._listeners: List[SessionListener] = []

        self._surface.add_listener(self._on_surface_event)

        logger.debug(f"Scan session {self.id} created")

    # =========================================================================
    # READ-ONLY STATE
    # =========================================================================

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def results(self) -> ResultSet:
        return self._results

    @property
    def stream(self) -> Optional[CameraStream]:
        return self._stream

    @property
    def surface(self) -> VideoSurface:
        return self._surface

    @property
    def error(self) -> Optional[AppException]:
        return self._error

    @property
    def scan_attempts(self) -> int:
        return self._loop.attempts if self._loop else 0

    @property
    def decode_faults(self) -> int:
        return self._loop.faults if self._loop else 0

    @property
    def retry_count(self) -> int:
        return self._retry_count

    @property
    def last_scanned(self) -> Optional[str]:
        return self._last_scanned

    @property
    def hint(self) -> Optional[str]:
        return self._hint

    @property
    def debug_log(self) -> List[str]:
        return list(self._debug_log)

    @property
    def is_disposed(self) -> bool:
        return self._state is SessionState.DISPOSED

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self) -> None:
        """
        Acquire a camera and start scanning.

        A no-op unless the session is IDLE or ERROR.

        Raises:
            SessionDisposed: If the session was disposed
            InsecureContext, UnsupportedEnvironment, NoCameraAvailable,
            DisplaySurfaceFault: After moving the session to ERROR
        """
        self._check_alive()

        if self._state not in STARTABLE_STATES:
            logger.debug(f"Session {self.id} already {self._state.value}, start ignored")
            return

        self._generation += 1
        generation = self._generation

        def is_current() -> bool:
            return self._generation == generation

        self._results = ResultSet()
        self._loop = None
        self._error = None
        self._last_scanned = None
        self._hint = None

        self._log("Initializing camera...")
        self._transition(SessionState.REQUESTING)

        try:
            stream = await self._negotiator.acquire(
                self._profiles,
                is_current=is_current,
                on_attempt=lambda profile: self._log(f"Trying {profile.describe()}")
            )
        except AcquisitionAbandoned:
            logger.info(f"Session {self.id} went stale during camera negotiation")
            return
        except BaseException as e:
            if is_current():
                await self._fail(e)
            raise

        self._stream = stream
        self._log(f"✅ Camera access granted ({stream.profile.name})")
        self._transition(SessionState.GRANTED)

        try:
            self._transition(SessionState.LOADING)
            self._surface.bind(stream)

            if not await self._wait_until_ready(is_current):
                return

            self._transition(SessionState.READY)
            self._log("🎥 Video stream started")

            self._loop = FrameDecodeLoop(
                self._decoder,
                self._results,
                interval=self._decode_interval,
                on_attempt=self._on_attempt
            )
            self._handle = self._loop.run(self._surface, self._on_result, self._on_fault)
            self._transition(SessionState.SCANNING)
            self._log("🔍 Starting barcode detection...")
        except BaseException as e:
            if is_current():
                await self._fail(e)
            raise

    async def stop(self) -> None:
        """Cancel scanning, release the camera and return to IDLE."""
        self._check_alive()
        self._generation += 1
        await self._release()
        self._error = None

        if self._state is not SessionState.IDLE:
            self._transition(SessionState.IDLE)

    async def retry(self) -> None:
        """Stop, wait for the hardware to settle, then start again."""
        self._check_alive()
        self._retry_count += 1

        logger.info(f"🔄 Session {self.id} retry #{self._retry_count}")
        self._log(f"🔄 Retrying camera (attempt {self._retry_count})")

        await self.stop()
        await asyncio.sleep(self._settle_delay)

        if self.is_disposed:
            logger.debug(f"Session {self.id} disposed while settling, retry dropped")
            return

        await self.start()

    async def dispose(self) -> None:
        """Release everything and enter the terminal DISPOSED state."""
        self._check_alive()
        self._generation += 1
        await self._release()
        self._transition(SessionState.DISPOSED)
        self._surface.remove_listener(self._on_surface_event)
        self._listeners.clear()

    # =========================================================================
    # CALLER ACTIONS
    # =========================================================================

    async def finish(self) -> List[str]:
        """
        Commit the scanned codes.

        Fires on_scan and disposes the session when at least one code was
        scanned; otherwise does nothing.

        Returns:
            The committed codes (empty if nothing was scanned)
        """
        self._check_alive()

        texts = self._results.texts()
        if not texts:
            self._log("Nothing scanned yet")
            return []

        logger.info(f"📦 Session {self.id} finished with {len(texts)} code(s)")

        if self._on_scan is not None:
            self._on_scan(texts)

        await self.dispose()
        return texts

    async def close(self) -> None:
        """Abandon the session without committing anything."""
        self._check_alive()

        logger.info(f"Session {self.id} closed by caller")

        if self._on_close is not None:
            self._on_close()

        await self.dispose()

    def remove_result(self, index: int) -> DecodedValue:
        """
        Drop a scanned code by its display index.

        Raises:
            AppException: INVALID_RESULT_INDEX if out of range
        """
        self._check_alive()

        try:
            value = self._results.remove(index)
        except IndexError:
            raise invalid_result_index(index, len(self._results))

        self._log(f"Removed: {value.text}")
        self._emit({"type": "removed", "index": index, "text": value.text})
        return value

    # =========================================================================
    # SUBSCRIPTIONS
    # =========================================================================

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """
        Receive session events as dicts.

        Returns:
            Function that removes the listener
        """
        self._check_alive()
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def snapshot(self, include_debug: bool = False) -> Dict[str, Any]:
        """Serializable view of the session."""
        data = {
            "id": self.id,
            "state": self._state.value,
            "results": [{"text": v.text, "format": v.format} for v in self._results],
            "count": len(self._results),
            "last_scanned": self._last_scanned,
            "scan_attempts": self.scan_attempts,
            "decode_faults": self.decode_faults,
            "retry_count": self._retry_count,
            "profile": self._stream.profile.name if self._stream else None,
            "hint": self._hint,
            "error": self._error.to_dict()["error"] if self._error else None,
            "created_at": self.created_at.isoformat(),
        }

        if include_debug:
            data["debug_log"] = self.debug_log

        return data

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _check_alive(self) -> None:
        if self._state is SessionState.DISPOSED:
            raise SessionDisposed(self.id)

    def _transition(self, state: SessionState) -> None:
        previous = self._state
        self._state = state
        logger.debug(f"Session {self.id}: {previous.value} -> {state.value}")
        self._emit({"type": "state", "state": state.value, "previous": previous.value})

    def _log(self, message: str) -> None:
        self._debug_log.append(message)

    def _emit(self, event: Dict[str, Any]) -> None:
        event = {"session_id": self.id, **event}
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Session listener error: {e}")

    async def _wait_until_ready(self, is_current: Callable[[], bool]) -> bool:
        """
        Poll the surface until it is playing with non-zero dimensions.

        Returns:
            True when ready, False if the session went stale meanwhile

        Raises:
            DisplaySurfaceFault: If readiness polls are exhausted
        """
        for poll in range(1, self._readiness_max_retries + 1):
            ready = await self._surface.poll_ready()

            if not is_current():
                return False
            if ready:
                logger.debug(
                    f"Surface ready after {poll} poll(s): "
                    f"{self._surface.width}x{self._surface.height}"
                )
                return True

            await asyncio.sleep(self._readiness_poll_interval)

            if not is_current():
                return False

        raise DisplaySurfaceFault(attempts=self._readiness_max_retries)

    async def _release(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            await handle.cancel()

        stream, self._stream = self._stream, None
        if stream is not None:
            stream.stop_all_tracks()

        self._surface.unbind()

    async def _fail(self, error: BaseException) -> None:
        if not isinstance(error, AppException):
            error = internal_error(f"Camera initialization failed: {error!r}")

        await self._release()
        self._error = error
        self._log(f"❌ Failed to access camera: {error.message}")
        logger.error(f"❌ Session {self.id} failed: [{error.code}] {error.message}")
        self._transition(SessionState.ERROR)

    def _on_result(self, value: DecodedValue) -> None:
        self._last_scanned = value.text
        self._log(f"✅ Found: {value.text} ({value.format})")
        logger.info(f"✅ Session {self.id} scanned {value.text} ({value.format})")
        self._emit({
            "type": "result",
            "text": value.text,
            "format": value.format,
            "index": len(self._results) - 1,
        })

    def _on_fault(self, fault: DecodeFault) -> None:
        self._log(f"⚠️ Scanner error: {fault.message}")
        self._emit({"type": "fault", "message": fault.message, "faults": self.decode_faults})

    def _on_attempt(self, attempts: int) -> None:
        if attempts % self._progress_every == 0:
            self._log(f"🔍 Scanning... ({attempts} attempts)")

        if attempts == self._hint_attempts and len(self._results) == 0:
            self._hint = HINT_MESSAGE
            logger.info(f"💡 Session {self.id}: no results after {attempts} attempts")
            self._emit({"type": "hint", "message": HINT_MESSAGE, "attempts": attempts})

    def _on_surface_event(self, event: str, surface: VideoSurface) -> None:
        if event == "metadataLoaded":
            self._log(f"Video metadata loaded ({surface.width}x{surface.height})")
        elif event == "error":
            self._log("Video frame not available yet")

    def __repr__(self) -> str:
        return f"ScanSession(id={self.id!r}, state={self._state.value}, results={len(self._results)})"
