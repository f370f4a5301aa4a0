"""
Health route: feed health snapshot, breaker states and cache stats.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Request

from mto.config import settings
from mto.serving.dependencies import get_service
from mto.serving.models.responses import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
def health(request: Request):
    """Service status. Feed failures degrade the payload, never the status code."""
    service = get_service(request)
    snapshot = service.health_snapshot()
    feeds_ok = all(entry.get("ok", True) for entry in snapshot["feeds"].values())
    return HealthResponse(
        status="ok" if feeds_ok else "degraded",
        version=settings.version,
        odds_feed_enabled=settings.odds_feed_active,
        feeds=snapshot["feeds"],
        breakers=snapshot["breakers"],
        caches=snapshot["caches"],
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
