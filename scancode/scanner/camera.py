"""
==============================================================================
Camera Capability Module
==============================================================================

OpenCV-backed camera access.

Classes:
--------
- CameraStream: One open capture handle (the "capture session")
- OpenCVCamera: Opens streams that satisfy a ConstraintProfile

A profile whose stream opens but violates the profile's hard bounds is
released here before the failure is raised, so callers never receive a
half-granted handle.

==============================================================================
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Optional

import cv2
import numpy as np

from scancode.core.exceptions import CameraAccessError
from scancode.scanner.profiles import ConstraintProfile


# Module logger
logger = logging.getLogger(__name__)


CAPTURE_BACKENDS: Dict[str, int] = {
    "any": cv2.CAP_ANY,
    "v4l2": cv2.CAP_V4L2,
    "dshow": cv2.CAP_DSHOW,
    "msmf": cv2.CAP_MSMF,
    "avfoundation": cv2.CAP_AVFOUNDATION,
    "gstreamer": cv2.CAP_GSTREAMER,
}


class CameraStream:
    """
    A live camera handle.

    Reads may happen on a worker thread while release happens on the event
    loop thread, so both go through one lock.
    """

    def __init__(self, capture: cv2.VideoCapture, profile: ConstraintProfile, device_index: int) -> None:
        self._capture = capture
        self._profile = profile
        self._device_index = device_index
        self._lock = threading.Lock()
        self._active = True

    @property
    def profile(self) -> ConstraintProfile:
        return self._profile

    @property
    def device_index(self) -> int:
        return self._device_index

    @property
    def active(self) -> bool:
        return self._active

    @property
    def width(self) -> int:
        return int(self._capture.get(cv2.CAP_PROP_FRAME_WIDTH)) if self._active else 0

    @property
    def height(self) -> int:
        return int(self._capture.get(cv2.CAP_PROP_FRAME_HEIGHT)) if self._active else 0

    def read(self) -> Optional[np.ndarray]:
        """Grab the next frame, or None when nothing could be read."""
        with self._lock:
            if not self._active:
                return None
            ok, frame = self._capture.read()
        if not ok or frame is None or frame.size == 0:
            return None
        return frame

    def stop_all_tracks(self) -> None:
        """Release the underlying device. Safe to call more than once."""
        with self._lock:
            if not self._active:
                return
            self._active = False
            self._capture.release()
        logger.debug(f"📷 Camera {self._device_index} released ({self._profile.name})")

    def __repr__(self) -> str:
        state = "active" if self._active else "released"
        return f"CameraStream(device={self._device_index}, profile={self._profile.name!r}, {state})"


class OpenCVCamera:
    """
    Camera capability over cv2.VideoCapture.

    Example:
        >>> camera = OpenCVCamera(default_index=0)
        >>> stream = camera.request_stream(DEFAULT_PROFILES[0])
        >>> frame = stream.read()
        >>> stream.stop_all_tracks()
    """

    def __init__(
        self,
        default_index: int = 0,
        backend: str = "any",
        facing_mode_devices: Optional[Dict[str, int]] = None
    ) -> None:
        self._default_index = default_index
        self._backend_name = backend
        self._backend = CAPTURE_BACKENDS.get(backend, cv2.CAP_ANY)
        self._facing_mode_devices = dict(facing_mode_devices or {})

    def is_supported(self) -> bool:
        """Check that OpenCV was built with at least one camera backend."""
        if not hasattr(cv2, "VideoCapture"):
            return False
        try:
            return len(cv2.videoio_registry.getCameraBackends()) > 0
        except (AttributeError, cv2.error):
            return False

    def request_stream(self, profile: ConstraintProfile) -> CameraStream:
        """
        Open a camera that satisfies the profile.

        Blocking; run it off the event loop.

        Raises:
            CameraAccessError: If the device cannot be opened or its
                negotiated format violates the profile
        """
        index = self._resolve_index(profile)

        try:
            capture = cv2.VideoCapture(index, self._backend)
        except cv2.error as e:
            raise CameraAccessError(f"Camera {index} failed to open: {e}", profile.name) from e

        if not capture.isOpened():
            capture.release()
            raise CameraAccessError(
                f"Cannot open camera {index} ({self._backend_name})",
                profile.name
            )

        try:
            self._apply_constraints(capture, profile)
            self._verify_constraints(capture, profile)
        except CameraAccessError:
            capture.release()
            raise
        except Exception as e:
            capture.release()
            raise CameraAccessError(f"Camera {index} rejected profile settings: {e}", profile.name) from e

        logger.info(f"📷 Camera {index} opened with profile {profile.describe()}")
        return CameraStream(capture, profile, index)

    def _resolve_index(self, profile: ConstraintProfile) -> int:
        if profile.facing_mode is None:
            return self._default_index
        return self._facing_mode_devices.get(profile.facing_mode, self._default_index)

    @staticmethod
    def _apply_constraints(capture: cv2.VideoCapture, profile: ConstraintProfile) -> None:
        if profile.width.ideal:
            capture.set(cv2.CAP_PROP_FRAME_WIDTH, profile.width.ideal)
        if profile.height.ideal:
            capture.set(cv2.CAP_PROP_FRAME_HEIGHT, profile.height.ideal)
        if profile.frame_rate.ideal:
            capture.set(cv2.CAP_PROP_FPS, profile.frame_rate.ideal)

    @staticmethod
    def _verify_constraints(capture: cv2.VideoCapture, profile: ConstraintProfile) -> None:
        width = capture.get(cv2.CAP_PROP_FRAME_WIDTH)
        height = capture.get(cv2.CAP_PROP_FRAME_HEIGHT)
        fps = capture.get(cv2.CAP_PROP_FPS)

        if not profile.width.accepts(width) or not profile.height.accepts(height):
            raise CameraAccessError(
                f"Negotiated resolution {int(width)}x{int(height)} outside profile bounds",
                profile.name
            )

        # Many drivers report 0 fps; only enforce when a rate is known
        if fps > 0 and not profile.frame_rate.accepts(fps):
            raise CameraAccessError(
                f"Negotiated frame rate {fps:.1f} outside profile bounds",
                profile.name
            )
