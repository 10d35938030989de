"""
==============================================================================
Video Surface Module
==============================================================================

The display surface a live camera stream is bound to.

Lifecycle events (delivered to listeners as the event name plus the surface):
---------
- metadataLoaded: first frame read, dimensions known
- canPlay: a frame is buffered
- playing: frames are flowing
- error: a frame read failed

==============================================================================
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional

import numpy as np

from scancode.scanner.camera import CameraStream


# Module logger
logger = logging.getLogger(__name__)


SurfaceListener = Callable[[str, "VideoSurface"], None]


class VideoSurface:
    """
    Holds the bound stream and reports readiness.

    Ready means: a stream is bound and active, dimensions are non-zero and
    the surface is playing.
    """

    def __init__(self) -> None:
        self._stream: Optional[CameraStream] = None
        self._width = 0
        self._height = 0
        self._playing = False
        self._listeners: List[SurfaceListener] = []

    # =========================================================================
    # LISTENERS
    # =========================================================================

    def add_listener(self, listener: SurfaceListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SurfaceListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, event: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, self)
            except Exception as e:
                logger.error(f"Surface listener error on '{event}': {e}")

    # =========================================================================
    # BINDING
    # =========================================================================

    @property
    def stream(self) -> Optional[CameraStream]:
        return self._stream

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def playing(self) -> bool:
        return self._playing

    @property
    def is_ready(self) -> bool:
        return (
            self._stream is not None
            and self._stream.active
            and self._width > 0
            and self._height > 0
            and self._playing
        )

    def bind(self, stream: CameraStream) -> None:
        """Attach a live stream, replacing any previous one."""
        if self._stream is not None:
            self.unbind()
        self._stream = stream
        logger.debug(f"Surface bound to {stream!r}")

    def unbind(self) -> None:
        """Detach the current stream. Does not release it."""
        self._stream = None
        self._width = 0
        self._height = 0
        self._playing = False

    # =========================================================================
    # FRAMES
    # =========================================================================

    async def poll_ready(self) -> bool:
        """
        Try to bring the surface to the playing state.

        Reads one frame off the event loop to learn the dimensions.

        Returns:
            True if the surface is ready
        """
        if self.is_ready:
            return True

        stream = self._stream
        if stream is None:
            return False

        frame = await asyncio.to_thread(stream.read)

        # Unbound or rebound while the read was in flight
        if self._stream is not stream:
            return False

        if frame is None:
            self._emit("error")
            return False

        self._height, self._width = frame.shape[:2]
        self._emit("metadataLoaded")
        self._emit("canPlay")
        self._playing = True
        self._emit("playing")
        return self.is_ready

    def read_frame(self) -> Optional[np.ndarray]:
        """Current frame from the bound stream (blocking)."""
        stream = self._stream
        if stream is None:
            return None
        return stream.read()
