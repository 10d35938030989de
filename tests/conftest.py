"""
==============================================================================
Pytest Configuration and Fixtures
==============================================================================

Provides fast test settings, session factories and API client fixtures.
Capability doubles live in fakes.py.

==============================================================================
"""

import asyncio
import time
from typing import Callable, Generator, List, Optional

import pytest
from fastapi.testclient import TestClient

from fakes import FakeCamera, FakeDecoder, found
from scancode.config import Settings
from scancode.main import app
from scancode.scanner import ScanSession, VideoSurface
from scancode.scanner.profiles import ConstraintProfile
from scancode.services.session_service import SessionManager, get_session_manager


# ============================================================================
# SETTINGS / PROFILE FIXTURES
# ============================================================================

@pytest.fixture
def settings() -> Settings:
    """Settings with no artificial delays."""
    return Settings(
        retry_settle_delay=0.0,
        readiness_max_retries=3,
        readiness_poll_interval=0.0,
        decode_interval=0.0,
        scan_hint_attempts=20,
        progress_log_every=10,
        max_sessions=2,
    )


@pytest.fixture
def profiles() -> List[ConstraintProfile]:
    return [
        ConstraintProfile(name="A", facing_mode="environment"),
        ConstraintProfile(name="B"),
    ]


@pytest.fixture
def wait_until() -> Callable:
    """Async poll helper: await wait_until(lambda: cond)."""

    async def _wait(predicate: Callable[[], bool], timeout: float = 3.0) -> None:
        deadline = time.monotonic() + timeout
        while not predicate():
            if time.monotonic() > deadline:
                raise AssertionError("condition not met before timeout")
            await asyncio.sleep(0.005)

    return _wait


@pytest.fixture
def make_session(settings, profiles):
    """Factory building a ScanSession around fakes."""

    def _make(
        camera: Optional[FakeCamera] = None,
        decoder: Optional[FakeDecoder] = None,
        **kwargs
    ) -> ScanSession:
        kwargs.setdefault("profiles", profiles)
        kwargs.setdefault("settings", settings)
        return ScanSession(
            camera=camera or FakeCamera(),
            decoder=decoder or FakeDecoder(),
            surface=VideoSurface(),
            **kwargs
        )

    return _make


# ============================================================================
# API FIXTURES
# ============================================================================

@pytest.fixture
def fake_camera() -> FakeCamera:
    return FakeCamera()


@pytest.fixture
def fake_decoder() -> FakeDecoder:
    return FakeDecoder([[], found("123"), found("123", "456")])


@pytest.fixture
def manager(settings, fake_camera, fake_decoder) -> SessionManager:
    return SessionManager(
        camera_factory=lambda: fake_camera,
        decoder_factory=lambda: fake_decoder,
        settings=settings
    )


@pytest.fixture
def client(manager: SessionManager) -> Generator[TestClient, None, None]:
    """Test client over HTTPS so requests count as a secure context."""
    app.dependency_overrides[get_session_manager] = lambda: manager

    with TestClient(app, base_url="https://testserver") as test_client:
        yield test_client
        test_client.portal.call(manager.dispose_all)

    app.dependency_overrides.clear()


@pytest.fixture
def insecure_client(manager: SessionManager) -> Generator[TestClient, None, None]:
    """Test client over plain HTTP from a non-loopback host."""
    app.dependency_overrides[get_session_manager] = lambda: manager

    with TestClient(app) as test_client:
        yield test_client
        test_client.portal.call(manager.dispose_all)

    app.dependency_overrides.clear()
