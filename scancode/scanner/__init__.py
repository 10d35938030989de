"""
==============================================================================
Scanner Package - Camera Acquisition and Barcode Decoding
==============================================================================

Camera sessions with OpenCV and pyzbar.

Classes:
--------
- ScanSession: Full lifecycle of one scanning attempt
- DeviceNegotiator: Constraint-profile fallback when opening a camera
- FrameDecodeLoop: Continuous, deduplicating decode loop
- OpenCVCamera / CameraStream: Camera capability
- BarcodeDecoder: pyzbar decode capability
- VideoSurface: Display surface and readiness tracking

==============================================================================
"""

from .camera import CameraStream, OpenCVCamera
from .decode_loop import FrameDecodeLoop, LoopHandle
from .decoder import BarcodeDecoder
from .negotiator import AcquisitionAbandoned, DeviceNegotiator
from .profiles import DEFAULT_PROFILES, ConstraintProfile, Range
from .results import DecodedValue, ResultSet
from .session import ScanSession, SessionState
from .surface import VideoSurface

__all__ = [
    "AcquisitionAbandoned",
    "BarcodeDecoder",
    "CameraStream",
    "ConstraintProfile",
    "DEFAULT_PROFILES",
    "DecodedValue",
    "DeviceNegotiator",
    "FrameDecodeLoop",
    "LoopHandle",
    "OpenCVCamera",
    "Range",
    "ResultSet",
    "ScanSession",
    "SessionState",
    "VideoSurface",
]
