"""
==============================================================================
Scanner WebSocket Module
==============================================================================

Live scan session events and controls over a WebSocket connection.

Protocol:
---------
1. Client connects to /ws/sessions/{session_id}
2. Server sends a snapshot of the session
3. Server pushes events: state, result, removed, hint, fault
4. Client may send commands: start, stop, retry, finish, close, remove
   (start and retry run in the background, so stop or close can interrupt
   a pending camera request)
5. Disconnecting stops the session (camera released, session kept)

==============================================================================
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from scancode.core.exceptions import AppException
from scancode.scanner import ScanSession
from scancode.schemas.session import ScanReport
from scancode.services.session_service import SessionManager, get_session_manager


# Module logger
logger = logging.getLogger(__name__)

router = APIRouter()


class ScannerWebSocketHandler:
    """
    Handler for one scan session WebSocket connection.

    Manages:
    - Event forwarding from the session to the client
    - Client commands driving the session lifecycle
    - Releasing the camera when the client goes away
    """

    def __init__(self, websocket: WebSocket, manager: SessionManager):
        self._websocket = websocket
        self._manager = manager
        self._session: Optional[ScanSession] = None
        self._events: "asyncio.Queue[Dict[str, Any]]" = asyncio.Queue()
        self._finished = False
        self._acquisitions: Set[asyncio.Task] = set()

    async def send_error(self, message: str, code: str = "ERROR") -> None:
        """Send error message to client."""
        await self._websocket.send_json({
            "type": "error",
            "code": code,
            "message": message
        })

    async def _forward_events(self) -> None:
        while True:
            event = await self._events.get()
            try:
                await self._websocket.send_json(event)
            except (WebSocketDisconnect, RuntimeError, OSError) as e:
                logger.debug(f"Event forwarding stopped: {e!r}")
                return

    async def _flush_events(self) -> None:
        while not self._events.empty():
            await self._websocket.send_json(self._events.get_nowait())

    def _spawn(self, operation: Callable[[], Awaitable[None]], command: str) -> None:
        task = asyncio.create_task(self._acquire(operation, command))
        self._acquisitions.add(task)
        task.add_done_callback(self._acquisitions.discard)

    async def _acquire(self, operation: Callable[[], Awaitable[None]], command: str) -> None:
        try:
            await operation()
        except AppException as e:
            logger.warning(f"⚠️ WebSocket '{command}' failed: [{e.code}] {e.message}")
            try:
                await self.send_error(e.message, e.code)
            except (WebSocketDisconnect, RuntimeError) as send_error:
                logger.debug(f"Could not report error to client: {send_error}")
        except Exception as e:
            logger.error(f"❌ WebSocket '{command}' crashed: {e}")

    async def handle_command(self, data: dict) -> None:
        """Run one client command against the session."""
        session = self._session
        command = data.get("type")

        if command == "start":
            self._spawn(session.start, command)
        elif command == "stop":
            await session.stop()
        elif command == "retry":
            self._spawn(session.retry, command)
        elif command == "remove":
            session.remove_result(int(data.get("index", -1)))
        elif command == "finish":
            results = await session.finish()
            if results:
                await self._flush_events()
                report = ScanReport.create(session.id, results)
                await self._websocket.send_json({"type": "finished", **report.model_dump()})
                self._finished = True
            else:
                await self.send_error("No barcodes scanned yet", "NO_RESULTS")
        elif command == "close":
            await session.close()
            await self._flush_events()
            self._finished = True
        elif command == "status":
            await self._websocket.send_json({"type": "snapshot", "session": session.snapshot()})
        else:
            await self.send_error(f"Unknown command: {command}", "UNKNOWN_COMMAND")

    async def run(self, session_id: str) -> None:
        """Main handler loop."""
        await self._websocket.accept()
        logger.info(f"📱 Session WebSocket connected ({session_id})")

        try:
            self._session = self._manager.get(session_id)
            unsubscribe = self._session.subscribe(self._events.put_nowait)
        except AppException as e:
            await self.send_error(e.message, e.code)
            await self._websocket.close()
            return

        await self._websocket.send_json({"type": "snapshot", "session": self._session.snapshot()})
        forwarder = asyncio.create_task(self._forward_events())

        try:
            while not self._finished:
                data = await self._websocket.receive_json()

                try:
                    await self.handle_command(data)
                except AppException as e:
                    await self.send_error(e.message, e.code)

        except WebSocketDisconnect:
            logger.info("📱 Client disconnected")
        except Exception as e:
            logger.error(f"WebSocket error: {e}")
            try:
                await self.send_error(str(e))
            except (WebSocketDisconnect, RuntimeError) as send_error:
                logger.debug(f"Could not report error to client: {send_error}")
        finally:
            # Stopping first makes pending acquisitions stale; they then
            # release any late stream themselves
            if not self._session.is_disposed:
                await self._session.stop()

            if self._acquisitions:
                await asyncio.wait(set(self._acquisitions))

            forwarder.cancel()
            try:
                await forwarder
            except asyncio.CancelledError:
                pass
            unsubscribe()

            if self._finished:
                await self._websocket.close()

            logger.info("✅ Session WebSocket closed")


@router.websocket("/ws/sessions/{session_id}")
async def websocket_session(
    websocket: WebSocket,
    session_id: str,
    manager: SessionManager = Depends(get_session_manager)
):
    """Live scan session events and controls."""
    handler = ScannerWebSocketHandler(websocket, manager)
    await handler.run(session_id)
