"""
==============================================================================
Device Negotiator Module
==============================================================================

Opens a camera by trying constraint profiles in order until one is granted.

Algorithm:
---------
1. Refuse immediately in a non-secure context or without a camera API
2. Request each profile in turn; the first granted stream wins
3. Record every failure; when all fail, raise NoCameraAvailable with the last one

==============================================================================
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional, Protocol, Sequence

from scancode.core.exceptions import (
    InsecureContext,
    NoCameraAvailable,
    UnsupportedEnvironment,
)
from scancode.scanner.camera import CameraStream
from scancode.scanner.profiles import ConstraintProfile


# Module logger
logger = logging.getLogger(__name__)


class Camera(Protocol):
    def is_supported(self) -> bool: ...

    def request_stream(self, profile: ConstraintProfile) -> CameraStream: ...


class AcquisitionAbandoned(Exception):
    """The requesting session went stale while a camera request was in flight."""


class DeviceNegotiator:
    """
    Retry-until-success combinator over constraint profiles.

    Attributes:
        attempts: Profiles tried by the last acquire() call
        errors: (profile name, error) pairs from the last acquire() call

    Example:
        >>> negotiator = DeviceNegotiator(OpenCVCamera())
        >>> stream = await negotiator.acquire(DEFAULT_PROFILES)
    """

    def __init__(self, camera: Camera, secure_context: bool = True) -> None:
        self._camera = camera
        self._secure_context = secure_context
        self.attempts: List[str] = []
        self.errors: List[tuple] = []

    def check_environment(self) -> None:
        """
        Raises:
            InsecureContext: If not running in a secure context
            UnsupportedEnvironment: If no camera API is available
        """
        if not self._secure_context:
            raise InsecureContext()
        if not self._camera.is_supported():
            raise UnsupportedEnvironment()

    async def acquire(
        self,
        profiles: Sequence[ConstraintProfile],
        is_current: Optional[Callable[[], bool]] = None,
        on_attempt: Optional[Callable[[ConstraintProfile], None]] = None
    ) -> CameraStream:
        """
        Open the first camera stream any profile grants.

        Args:
            profiles: Profiles ordered from most to least restrictive
            is_current: Liveness check consulted after every request resolves
            on_attempt: Called before each profile is requested

        Returns:
            The granted stream

        Raises:
            InsecureContext, UnsupportedEnvironment: Before any profile is tried
            NoCameraAvailable: If every profile failed
            AcquisitionAbandoned: If is_current() turned false mid-negotiation
        """
        self.attempts = []
        self.errors = []
        self.check_environment()

        last_error: Optional[BaseException] = None

        for profile in profiles:
            self.attempts.append(profile.name)
            if on_attempt is not None:
                on_attempt(profile)
            logger.debug(f"🎥 Requesting camera with profile {profile.describe()}")

            try:
                stream = await asyncio.to_thread(self._camera.request_stream, profile)
            except Exception as e:
                if is_current is not None and not is_current():
                    raise AcquisitionAbandoned() from e
                logger.warning(f"⚠️ Profile '{profile.name}' failed: {e}")
                self.errors.append((profile.name, e))
                last_error = e
                continue

            if is_current is not None and not is_current():
                logger.info(f"🗑️ Late stream from profile '{profile.name}' released")
                stream.stop_all_tracks()
                raise AcquisitionAbandoned()

            logger.info(f"✅ Camera granted with profile '{profile.name}'")
            return stream

        logger.error(f"❌ All {len(self.attempts)} camera profiles failed")
        raise NoCameraAvailable(last_error, attempted=len(self.attempts))
