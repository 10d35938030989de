"""
==============================================================================
Health Check Endpoints
==============================================================================

System health status endpoints for monitoring and orchestration.

==============================================================================
"""

from fastapi import APIRouter, Depends

from scancode.services.session_service import SessionManager, get_session_manager


router = APIRouter(prefix="/health", tags=["Health"])


class HealthController:
    """Controller for health check operations."""

    def __init__(self, manager: SessionManager):
        self._manager = manager

    def check_camera(self) -> str:
        """Check that a camera backend is available."""
        try:
            return "healthy" if self._manager.camera_supported() else "unsupported"
        except Exception:
            return "unhealthy"

    def get_health(self) -> dict:
        """Get full health status."""
        camera_status = self.check_camera()

        overall = "healthy" if camera_status == "healthy" else "degraded"

        return {
            "status": overall,
            "components": {
                "api": "healthy",
                "camera": camera_status
            },
            "details": {
                "active_sessions": self._manager.active_count
            }
        }


@router.get("")
async def health_check(manager: SessionManager = Depends(get_session_manager)):
    """
    Health check endpoint.

    Returns API status, camera backend availability and session count.
    """
    return HealthController(manager).get_health()


@router.get("/ready")
async def readiness_check():
    """Readiness check for container orchestration."""
    return {"ready": True}


@router.get("/live")
async def liveness_check():
    """Liveness check for container orchestration."""
    return {"alive": True}
