"""Shared pytest fixtures and configuration hooks."""

from __future__ import annotations

import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

# Ensure the project root (which contains the `mto` package) is importable
PROJECT_ROOT = Path(__file__).resolve().parents[1]
PROJECT_ROOT_STR = str(PROJECT_ROOT)
if PROJECT_ROOT_STR not in sys.path:
    sys.path.insert(0, PROJECT_ROOT_STR)


# =============================================================================
# Environment Variables Setup - MUST run before any mto imports
# =============================================================================
# mto.config builds its Settings at import time, so the test environment has
# to be in place first. The odds feed stays off unless a test enables it.

TEST_ENV_VARS = {
    "THE_ODDS_API_KEY": "test_the_odds_api_key_12345",
    "ENABLE_ODDSAPI": "false",
    "THE_ODDS_BASE_URL": "https://api.the-odds-api.com/v4",
    "ESPN_BASE_URL": "https://site.api.espn.com/apis/site/v2/sports",
    "DEFAULT_TIMEZONE": "America/New_York",
    "FEED_RETRY_ATTEMPTS": "2",
    "FEED_RETRY_BACKOFF": "0",
    "MTO_PARAMETERS_FILE": "",
    # Logging
    "LOG_LEVEL": "WARNING",
}

for key, value in TEST_ENV_VARS.items():
    if key not in os.environ:
        os.environ[key] = value


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """Ensure test environment variables are set for each test."""
    for key, value in TEST_ENV_VARS.items():
        monkeypatch.setenv(key, value)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


async def no_sleep(_seconds: float) -> None:
    return None


@pytest.fixture
def recording_transport():
    """
    Build an httpx.MockTransport from a handler and keep every request it saw.

    Usage:
        transport, requests = recording_transport(lambda req: httpx.Response(200, json={}))
    """

    def _build(handler: Callable[[httpx.Request], httpx.Response]):
        seen: list[httpx.Request] = []

        def _handle(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return handler(request)

        return httpx.MockTransport(_handle), seen

    return _build


def espn_event(
    event_id: str,
    home: str,
    away: str,
    start: str,
    home_id: str = "1",
    away_id: str = "2",
    state: str = "pre",
    over_under: Any = None,
    venue: str = "Arena",
) -> dict[str, Any]:
    """Minimal ESPN scoreboard event."""
    competition: dict[str, Any] = {
        "date": start,
        "venue": {"fullName": venue},
        "status": {"type": {"state": state}},
        "competitors": [
            {"homeAway": "home", "team": {"id": home_id, "displayName": home, "logo": f"https://a.espncdn.com/{home_id}.png"}},
            {"homeAway": "away", "team": {"id": away_id, "displayName": away, "logo": f"https://a.espncdn.com/{away_id}.png"}},
        ],
    }
    if over_under is not None:
        competition["odds"] = [{"overUnder": over_under}]
    return {"id": event_id, "date": start, "competitions": [competition]}


def odds_event(
    event_id: str,
    home: str,
    away: str,
    start: str,
    books: list[tuple[str, float]],
) -> dict[str, Any]:
    """Minimal The Odds API v4 event with one totals market per book."""
    return {
        "id": event_id,
        "commence_time": start,
        "home_team": home,
        "away_team": away,
        "bookmakers": [
            {
                "key": key,
                "last_update": "2025-01-15T18:00:00Z",
                "markets": [{
                    "key": "totals",
                    "outcomes": [
                        {"name": "Over", "price": -110, "point": line},
                        {"name": "Under", "price": -110, "point": line},
                    ],
                }],
            }
            for key, line in books
        ],
    }


def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


def team_schedule(team_id: str, opponent_id: str, scored: float, allowed: float, games: int = 12) -> dict[str, Any]:
    """ESPN team schedule with `games` completed results on consecutive days."""
    events = []
    for i in range(games):
        events.append({
            "date": f"2024-12-{i + 1:02d}T01:00Z",
            "competitions": [{
                "status": {"type": {"completed": True}},
                "competitors": [
                    {"id": team_id, "score": {"value": scored + (4 if i % 2 else -4)}},
                    {"id": opponent_id, "score": {"value": allowed}},
                ],
            }],
        })
    return {"events": events}


def slate_handler(odds_status: int = 200) -> Callable[[httpx.Request], httpx.Response]:
    """
    Upstream for one NBA night (2025-01-15, New York): Celtics @ Lakers open
    with a 3-book market, Heat @ Jazz already final.
    """
    scoreboard = {"events": [
        espn_event("401", "Los Angeles Lakers", "Boston Celtics", "2025-01-16T03:30Z",
                   home_id="13", away_id="2"),
        espn_event("402", "Utah Jazz", "Miami Heat", "2025-01-16T02:00Z",
                   home_id="26", away_id="14", state="post"),
    ]}
    odds = [odds_event("abc", "LA Lakers", "Boston Celtics", "2025-01-16T03:40:00Z",
                       [("fanduel", 224.0), ("draftkings", 224.5), ("betmgm", 225.0)])]
    schedules = {
        "13": team_schedule("13", "99", 112.0, 110.0),
        "2": team_schedule("2", "99", 110.0, 112.0),
    }

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if request.url.host == "api.the-odds-api.com":
            if odds_status != 200:
                return httpx.Response(odds_status, json={})
            return httpx.Response(200, json=odds)
        if path.endswith("/scoreboard"):
            return httpx.Response(200, json=scoreboard)
        if "/teams/" in path:
            team_id = path.split("/teams/")[1].split("/")[0]
            return httpx.Response(200, json=schedules.get(team_id, {"events": []}))
        return httpx.Response(404, json={})

    return handler


@pytest.fixture
def make_service(recording_transport):
    """Build a SlateService whose feeds talk to a mocked upstream."""
    from mto.config import Settings
    from mto.ingestion.errors import FeedError, TransientFeedError
    from mto.ingestion.espn import ESPNScheduleFeed
    from mto.ingestion.models import FeedHealthRegistry
    from mto.ingestion.the_odds import TheOddsFeed
    from mto.pipeline.orchestrator import SlateService
    from mto.utils.api_cache import TTLCache
    from mto.utils.circuit_breaker import BreakerConfig, BreakerRegistry
    from mto.utils.retry import RetryPolicy

    def _build(handler: Callable[[httpx.Request], httpx.Response]):
        transport, seen = recording_transport(handler)
        cfg = Settings(the_odds_api_key="test-key", the_odds_enabled=True)
        shared = {
            "client": httpx.AsyncClient(transport=transport),
            "cache": TTLCache(120, name="feeds"),
            "health": FeedHealthRegistry(),
            "breakers": BreakerRegistry(BreakerConfig(counted=FeedError)),
            "retry_policy": RetryPolicy(attempts=2, backoff_seconds=0.0,
                                        retry_on=(TransientFeedError,), sleep=no_sleep),
            "settings": cfg,
        }
        service = SlateService(
            schedule_feed=ESPNScheduleFeed(**shared),
            odds_feed=TheOddsFeed(**shared),
            settings=cfg,
        )
        return service, seen

    return _build
