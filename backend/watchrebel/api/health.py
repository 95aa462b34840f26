"""Health and system status endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Service health check: reports which external integrations are configured."""
    state = request.app.state
    return {
        "status": "ok",
        "version": "0.1.0",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "integrations": {
            "tmdb": state.catalog is not None,
            "telegram": state.settings.has_telegram,
        },
        "websocketConnections": state.connections.active_connections,
    }
