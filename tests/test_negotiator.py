"""
==============================================================================
Device Negotiator and Camera Tests
==============================================================================

Profile fallback order, environment refusal, stale acquisitions, and the
OpenCV camera's release of half-granted handles.

==============================================================================
"""

import dataclasses

import cv2
import pytest

from fakes import FakeCamera
from scancode.core.exceptions import (
    CameraAccessError,
    InsecureContext,
    NoCameraAvailable,
    UnsupportedEnvironment,
)
from scancode.scanner import (
    AcquisitionAbandoned,
    CameraStream,
    ConstraintProfile,
    DEFAULT_PROFILES,
    DeviceNegotiator,
    OpenCVCamera,
    Range,
)


@pytest.mark.asyncio
class TestDeviceNegotiator:
    """Tests for constraint-profile fallback."""

    async def test_first_success_wins(self, profiles):
        """Test the first granting profile is used."""
        camera = FakeCamera()
        stream = await DeviceNegotiator(camera).acquire(profiles)

        assert stream.profile.name == "A"
        assert camera.requested == ["A"]

    async def test_falls_back_in_order(self):
        """Test profiles are tried from strict to loose."""
        camera = FakeCamera(failing=["environment-hd", "environment"])
        stream = await DeviceNegotiator(camera).acquire(DEFAULT_PROFILES)

        assert stream.profile.name == "any"
        assert camera.requested == ["environment-hd", "environment", "any"]

    async def test_never_tries_profile_after_success(self):
        """Test iteration stops at the first success."""
        camera = FakeCamera(failing=["environment-hd"])
        negotiator = DeviceNegotiator(camera)

        await negotiator.acquire(DEFAULT_PROFILES)

        assert camera.requested == ["environment-hd", "environment"]
        assert negotiator.attempts == ["environment-hd", "environment"]
        assert [name for name, _ in negotiator.errors] == ["environment-hd"]

    async def test_all_profiles_fail(self, profiles):
        """Test NoCameraAvailable carries the last camera error."""
        camera = FakeCamera(failing=["A", "B"])

        with pytest.raises(NoCameraAvailable) as exc_info:
            await DeviceNegotiator(camera).acquire(profiles)

        error = exc_info.value
        assert isinstance(error.last_error, CameraAccessError)
        assert error.last_error.profile == "B"
        assert error.details["profiles_attempted"] == 2
        assert camera.streams == []

    async def test_unexpected_driver_error_falls_through(self, profiles):
        """Test a non-camera exception on one profile still tries the next."""
        camera = FakeCamera(errors={"A": RuntimeError("driver hiccup")})
        negotiator = DeviceNegotiator(camera)

        stream = await negotiator.acquire(profiles)

        assert stream.profile.name == "B"
        assert camera.requested == ["A", "B"]
        assert isinstance(negotiator.errors[0][1], RuntimeError)

    async def test_unexpected_errors_on_every_profile(self, profiles):
        """Test NoCameraAvailable carries the last unexpected error."""
        camera = FakeCamera(errors={"A": RuntimeError("a"), "B": ValueError("b")})

        with pytest.raises(NoCameraAvailable) as exc_info:
            await DeviceNegotiator(camera).acquire(profiles)

        assert isinstance(exc_info.value.last_error, ValueError)
        assert exc_info.value.details["profiles_attempted"] == 2

    async def test_insecure_context_tries_nothing(self, profiles):
        """Test an insecure context fails before any request."""
        camera = FakeCamera()

        with pytest.raises(InsecureContext):
            await DeviceNegotiator(camera, secure_context=False).acquire(profiles)

        assert camera.requested == []

    async def test_unsupported_environment_tries_nothing(self, profiles):
        """Test a missing camera API fails before any request."""
        camera = FakeCamera(supported=False)

        with pytest.raises(UnsupportedEnvironment):
            await DeviceNegotiator(camera).acquire(profiles)

        assert camera.requested == []

    async def test_late_stream_released_when_stale(self, profiles):
        """Test a stream arriving after staleness is released."""
        camera = FakeCamera()
        current = {"value": True}

        def on_attempt(profile):
            current["value"] = False

        with pytest.raises(AcquisitionAbandoned):
            await DeviceNegotiator(camera).acquire(
                profiles,
                is_current=lambda: current["value"],
                on_attempt=on_attempt
            )

        assert len(camera.streams) == 1
        assert camera.streams[0].active is False
        assert camera.requested == ["A"]

    async def test_stale_failure_stops_iterating(self, profiles):
        """Test a failure after staleness ends negotiation."""
        camera = FakeCamera(failing=["A"])
        current = {"value": True}

        def on_attempt(profile):
            current["value"] = False

        with pytest.raises(AcquisitionAbandoned):
            await DeviceNegotiator(camera).acquire(
                profiles,
                is_current=lambda: current["value"],
                on_attempt=on_attempt
            )

        assert camera.requested == ["A"]


class FakeCapture:
    """cv2.VideoCapture double reporting a fixed native resolution."""

    instances = []
    events = []
    native = (3840.0, 2160.0, 30.0)
    opened = True
    set_error = None

    def __init__(self, index, backend):
        self.index = index
        self.backend = backend
        self.released = False
        self.props = {}
        FakeCapture.instances.append(self)
        FakeCapture.events.append(("open", index))

    def isOpened(self):
        return FakeCapture.opened

    def set(self, prop, value):
        if FakeCapture.set_error is not None:
            raise FakeCapture.set_error
        self.props[prop] = value
        return True

    def get(self, prop):
        width, height, fps = FakeCapture.native
        return {
            cv2.CAP_PROP_FRAME_WIDTH: width,
            cv2.CAP_PROP_FRAME_HEIGHT: height,
            cv2.CAP_PROP_FPS: fps,
        }.get(prop, 0.0)

    def read(self):
        return False, None

    def release(self):
        self.released = True
        FakeCapture.events.append(("release", self.index))


@pytest.fixture
def fake_capture(monkeypatch):
    FakeCapture.instances = []
    FakeCapture.events = []
    FakeCapture.native = (3840.0, 2160.0, 30.0)
    FakeCapture.opened = True
    FakeCapture.set_error = None
    monkeypatch.setattr(cv2, "VideoCapture", FakeCapture)
    return FakeCapture


class TestOpenCVCamera:
    """Tests for the OpenCV camera capability."""

    def test_applies_ideal_values(self, fake_capture):
        """Test ideal profile values are applied to the capture."""
        fake_capture.native = (1280.0, 720.0, 30.0)
        camera = OpenCVCamera(default_index=2)

        stream = camera.request_stream(DEFAULT_PROFILES[0])

        capture = fake_capture.instances[0]
        assert isinstance(stream, CameraStream)
        assert capture.props[cv2.CAP_PROP_FRAME_WIDTH] == 1280
        assert capture.props[cv2.CAP_PROP_FRAME_HEIGHT] == 720
        assert capture.props[cv2.CAP_PROP_FPS] == 30

    def test_out_of_bounds_stream_is_released(self, fake_capture):
        """Test an out-of-bounds resolution releases the device."""
        camera = OpenCVCamera()

        with pytest.raises(CameraAccessError):
            camera.request_stream(DEFAULT_PROFILES[0])

        assert fake_capture.instances[0].released is True

    def test_unopened_device_is_released(self, fake_capture):
        """Test a device that fails to open is released."""
        fake_capture.opened = False

        with pytest.raises(CameraAccessError):
            OpenCVCamera().request_stream(DEFAULT_PROFILES[-1])

        assert fake_capture.instances[0].released is True

    def test_driver_error_while_configuring_is_released(self, fake_capture):
        """Test an OpenCV error while applying settings releases the device."""
        fake_capture.set_error = cv2.error("set failed")

        with pytest.raises(CameraAccessError) as exc_info:
            OpenCVCamera().request_stream(DEFAULT_PROFILES[0])

        assert exc_info.value.profile == "environment-hd"
        assert fake_capture.instances[0].released is True

    def test_facing_mode_selects_device(self, fake_capture):
        """Test facing mode maps to its configured device."""
        camera = OpenCVCamera(default_index=0, facing_mode_devices={"environment": 3})

        stream = camera.request_stream(ConstraintProfile(name="rear", facing_mode="environment"))

        assert stream.device_index == 3
        assert fake_capture.instances[0].index == 3

    def test_unknown_facing_mode_uses_default(self, fake_capture):
        """Test unmapped facing modes use the default device."""
        camera = OpenCVCamera(default_index=1, facing_mode_devices={})

        stream = camera.request_stream(ConstraintProfile(name="front", facing_mode="user"))

        assert stream.device_index == 1

    def test_stop_all_tracks_is_idempotent(self, fake_capture):
        """Test releasing twice releases the device once."""
        stream = OpenCVCamera().request_stream(DEFAULT_PROFILES[-1])

        stream.stop_all_tracks()
        stream.stop_all_tracks()

        assert stream.active is False
        assert fake_capture.events.count(("release", 0)) == 1
        assert stream.read() is None

    @pytest.mark.asyncio
    async def test_partial_grant_released_before_next_profile(self, fake_capture):
        """Test a half-granted device is released before the next profile."""
        profiles = [
            ConstraintProfile(name="hd", width=Range(ideal=1280, max=1920)),
            ConstraintProfile(name="any"),
        ]

        stream = await DeviceNegotiator(OpenCVCamera()).acquire(profiles)

        assert stream.profile.name == "any"
        assert fake_capture.events == [("open", 0), ("release", 0), ("open", 0)]
        assert fake_capture.instances[0].released is True
        assert fake_capture.instances[1].released is False


class TestProfiles:
    """Tests for constraint profile values."""

    def test_defaults_run_from_strict_to_loose(self):
        """Test the default profile ladder."""
        assert [p.name for p in DEFAULT_PROFILES] == ["environment-hd", "environment", "any"]
        assert DEFAULT_PROFILES[-1].is_unconstrained
        assert not DEFAULT_PROFILES[0].is_unconstrained

    def test_range_bounds(self):
        """Test range min and max checks."""
        bounds = Range(ideal=720, min=480, max=1080)
        assert bounds.accepts(720)
        assert not bounds.accepts(2160)
        assert not bounds.accepts(240)
        assert Range().accepts(99999)

    def test_profiles_are_immutable(self):
        """Test profiles cannot be modified."""
        with pytest.raises(dataclasses.FrozenInstanceError):
            DEFAULT_PROFILES[0].name = "other"
