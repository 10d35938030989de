"""
==============================================================================
Frame Decode Loop Module
==============================================================================

Continuously pulls frames from a source and decodes them.

- "Nothing found" is the normal outcome of an attempt, not a failure
- Each distinct text is reported once, in first-seen order
- DecodeFault on one frame is logged and counted; the loop keeps going
- The loop only ends when its handle is cancelled

==============================================================================
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional, Protocol

import numpy as np

from scancode.core.exceptions import DecodeFault
from scancode.scanner.results import DecodedValue, ResultSet


# Module logger
logger = logging.getLogger(__name__)


ResultCallback = Callable[[DecodedValue], None]
FaultCallback = Callable[[DecodeFault], None]


class FrameSource(Protocol):
    def read_frame(self) -> Optional[np.ndarray]: ...


class Decoder(Protocol):
    def decode(self, frame: np.ndarray) -> List[DecodedValue]: ...

    def reset(self) -> None: ...


class LoopHandle:
    """Cancellation token for a running decode loop."""

    def __init__(self) -> None:
        self._task: Optional[asyncio.Task] = None
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _attach(self, task: asyncio.Task) -> None:
        self._task = task

    async def cancel(self) -> None:
        """Stop the loop and wait for it to finish unwinding."""
        self._cancelled = True
        task = self._task
        if task is None:
            return
        if task.done():
            if not task.cancelled() and task.exception() is not None:
                logger.error(f"❌ Decode loop had already stopped: {task.exception()!r}")
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


class FrameDecodeLoop:
    """
    Decode loop for one session start.

    Attributes:
        attempts: Frames submitted so far (never reset)
        faults: Decoder faults seen so far

    Example:
        >>> loop = FrameDecodeLoop(BarcodeDecoder(), ResultSet())
        >>> handle = loop.run(surface, on_result=print)
        >>> await handle.cancel()
    """

    def __init__(
        self,
        decoder: Decoder,
        results: ResultSet,
        interval: float = 0.0,
        on_attempt: Optional[Callable[[int], None]] = None
    ) -> None:
        self._decoder = decoder
        self._results = results
        self._interval = interval
        self._on_attempt = on_attempt
        self._handle: Optional[LoopHandle] = None
        self.attempts = 0
        self.faults = 0

    @property
    def results(self) -> ResultSet:
        return self._results

    def run(
        self,
        source: FrameSource,
        on_result: ResultCallback,
        on_fault: Optional[FaultCallback] = None
    ) -> LoopHandle:
        """
        Start decoding in a background task.

        Raises:
            RuntimeError: If this loop was already started
        """
        if self._handle is not None:
            raise RuntimeError("Decode loop already started; create a new loop to restart")

        handle = LoopHandle()
        self._handle = handle
        handle._attach(asyncio.create_task(self._run(source, on_result, on_fault, handle)))
        logger.info("🔍 Decode loop started")
        return handle

    async def _run(
        self,
        source: FrameSource,
        on_result: ResultCallback,
        on_fault: Optional[FaultCallback],
        handle: LoopHandle
    ) -> None:
        try:
            while not handle.cancelled:
                await self.step(source, on_result, on_fault, handle)
                await asyncio.sleep(self._interval)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"❌ Decode loop crashed on attempt {self.attempts}: {e}")
            raise
        finally:
            self._decoder.reset()
            logger.info(f"🛑 Decode loop stopped after {self.attempts} attempts")

    async def step(
        self,
        source: FrameSource,
        on_result: ResultCallback,
        on_fault: Optional[FaultCallback] = None,
        handle: Optional[LoopHandle] = None
    ) -> List[DecodedValue]:
        """
        Perform one decode attempt.

        Returns:
            Values newly added to the result set by this attempt
        """
        self.attempts += 1
        if self._on_attempt is not None:
            self._on_attempt(self.attempts)

        try:
            frame = await asyncio.to_thread(source.read_frame)
            if frame is None or (handle is not None and handle.cancelled):
                return []
            values = await asyncio.to_thread(self._decoder.decode, frame)
        except DecodeFault as fault:
            self._record_fault(fault, on_fault)
            return []
        except Exception as e:
            fault = DecodeFault(f"Frame processing failed: {e!r}", e)
            self._record_fault(fault, on_fault)
            return []

        if handle is not None and handle.cancelled:
            return []

        added = []
        for value in values:
            if self._results.add(value):
                added.append(value)
                on_result(value)
        return added

    def _record_fault(self, fault: DecodeFault, on_fault: Optional[FaultCallback]) -> None:
        self.faults += 1
        logger.warning(f"⚠️ Decode fault #{self.faults} on attempt {self.attempts}: {fault.message}")
        if on_fault is not None:
            on_fault(fault)
