"""
Pydantic models for API responses.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class GamesResponse(BaseModel):
    """Fused games for one sport and local date."""

    sport: str
    date: str
    timezone: str
    count: int
    games: List[Dict[str, Any]]


class PredictionsResponse(BaseModel):
    """Floor predictions for the open games of a slate."""

    sport: str
    date: str
    timezone: str
    count: int
    stay_away_count: int
    predictions: List[Dict[str, Any]]


class PredictionResponse(BaseModel):
    """Floor prediction for a single game."""

    game: Dict[str, Any]
    prediction: Dict[str, Any]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    odds_feed_enabled: bool
    feeds: Dict[str, Any]
    breakers: Dict[str, Any]
    caches: List[Dict[str, Any]]
    timestamp: Optional[str] = None
