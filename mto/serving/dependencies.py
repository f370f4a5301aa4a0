"""
Shared dependencies for API routes.

State accessors and request-parameter parsing used by every route module.
"""

from typing import Optional

from fastapi import HTTPException, Request

from mto.config import settings
from mto.pipeline.orchestrator import SlateService
from mto.sports import Sport
from mto.utils.dates import parse_iso_date, resolve_zone, today_iso


def get_service(request: Request) -> SlateService:
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Slate service not initialized")
    return service


def parse_sport(sport: str) -> Sport:
    try:
        return Sport.parse(sport)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown sport: {sport}")


def resolve_date_params(date: Optional[str], tz: Optional[str]) -> tuple[str, str]:
    """Validate the ?date=&tz= pair, defaulting to today in the configured zone."""
    tz_name = tz or settings.default_timezone
    try:
        resolve_zone(tz_name)
        iso_date = date or today_iso(tz_name)
        parse_iso_date(iso_date)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return iso_date, tz_name
