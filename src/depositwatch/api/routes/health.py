"""Health check endpoint with deposit watcher status."""

from typing import Any

from fastapi import APIRouter, Request

from depositwatch.api.dependencies import SettingsDep

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request, settings: SettingsDep) -> dict[str, Any]:
    """
    Health check endpoint.

    Returns:
        dict with overall status, version and watcher status. The status is
        "degraded" when the watcher is missing, stopped or its last cycle failed.
    """
    watcher = getattr(request.app.state, "deposit_watcher", None)
    if watcher is None:
        return {
            "status": "degraded",
            "version": settings.app_version,
            "watcher": {"running": False, "current_state": "stopped"},
        }

    watcher_status = watcher.get_status()
    healthy = watcher_status["running"] and watcher_status["current_state"] != "error"

    return {
        "status": "ok" if healthy else "degraded",
        "version": settings.app_version,
        "watcher": watcher_status,
    }
