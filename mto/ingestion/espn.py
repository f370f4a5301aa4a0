"""
ESPN site API - schedule/score feed.

ESPN is the identity-rich feed: numeric team ids, logos, venue and live
status. Its scoreboard sometimes carries a single `overUnder` line, which is
kept as a one-book consensus total.

Endpoints:
    {base}/{sport}/{league}/scoreboard?dates=YYYYMMDD[-YYYYMMDD]
    {base}/{sport}/{league}/teams/{team_id}/schedule
"""
from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Optional

from mto.config import settings as default_settings
from mto.ingestion.base import FeedAdapter, failure_tag
from mto.ingestion.errors import FeedError, MalformedPayloadError
from mto.ingestion.models import SCHEDULE_SOURCE, RawGame, parse_utc
from mto.sports import ESPN_PATHS, Sport
from mto.utils.circuit_breaker import CircuitOpenError
from mto.utils.dates import DateWindow
from mto.utils.logging import get_logger

logger = get_logger(__name__)

# Team schedules trip their own breaker; a bad team id never blocks the scoreboard
TEAM_BREAKER_SOURCE = f"{SCHEDULE_SOURCE}-team"

# ESPN status.type.state -> Game.status
STATE_MAP = {
    "pre": "scheduled",
    "in": "live",
    "post": "completed",
}


def parse_score(value: Any) -> Optional[float]:
    """ESPN scores come as "112", 112 or {"value": 112.0, "displayValue": "112"}."""
    if isinstance(value, dict):
        value = value.get("value", value.get("displayValue"))
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        score = float(value)
    except (TypeError, ValueError):
        return None
    return score if math.isfinite(score) else None


def _first(items: Any) -> Optional[dict[str, Any]]:
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0]
    return None


def _state(event: dict[str, Any], competition: dict[str, Any]) -> Optional[str]:
    for holder in (competition, event):
        status_type = (holder.get("status") or {}).get("type") or {}
        state = status_type.get("state")
        if isinstance(state, str) and state.lower() in STATE_MAP:
            return STATE_MAP[state.lower()]
    return None


class ESPNScheduleFeed(FeedAdapter):
    """Client for the ESPN scoreboard and team schedule endpoints."""

    source = SCHEDULE_SOURCE

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None, **kwargs):
        cfg = kwargs.get("settings") or default_settings
        super().__init__(
            base_url=base_url or cfg.espn_base_url,
            timeout=cfg.espn_timeout if timeout is None else timeout,
            **kwargs,
        )

    def supports(self, sport: Sport) -> bool:
        return ESPN_PATHS.get(sport) is not None

    def _sport_url(self, sport: Sport) -> str:
        path = ESPN_PATHS[sport]
        if path is None:
            raise ValueError(f"ESPN has no path for {sport.value}")
        return f"{self.base_url}/{path[0]}/{path[1]}"

    def games_request(self, sport: Sport, window: DateWindow) -> tuple[str, dict[str, Any]]:
        days = window.utc_dates()
        dates = days[0].strftime("%Y%m%d")
        if len(days) > 1:
            dates = f"{dates}-{days[-1].strftime('%Y%m%d')}"
        return f"{self._sport_url(sport)}/scoreboard", {"dates": dates}

    def validate_payload(self, payload: Any) -> None:
        if not isinstance(payload, dict):
            raise MalformedPayloadError("ESPN payload is not a JSON object")
        events = payload.get("events", [])
        if events is not None and not isinstance(events, list):
            raise MalformedPayloadError("ESPN 'events' is not a list")

    def parse_games(self, payload: Any, sport: Sport) -> list[RawGame]:
        events = payload.get("events") or []
        return self.build_records(events, self._event_fields, self.source)

    def _event_fields(self, event: dict[str, Any]) -> Optional[dict[str, Any]]:
        competition = _first(event.get("competitions"))
        if competition is None:
            return None
        competitors = competition.get("competitors") or []
        home = next((c for c in competitors if isinstance(c, dict) and c.get("homeAway") == "home"), None)
        away = next((c for c in competitors if isinstance(c, dict) and c.get("homeAway") == "away"), None)
        if home is None or away is None:
            return None
        home_team = home.get("team") or {}
        away_team = away.get("team") or {}

        odds = _first(competition.get("odds"))
        over_under = odds.get("overUnder") if odds else None

        return {
            "id": str(event.get("id") or ""),
            "home_name": home_team.get("displayName") or home_team.get("name") or "",
            "away_name": away_team.get("displayName") or away_team.get("name") or "",
            "home_id": home_team.get("id"),
            "away_id": away_team.get("id"),
            "home_logo": home_team.get("logo"),
            "away_logo": away_team.get("logo"),
            "start_time_utc": event.get("date") or competition.get("date"),
            "venue": (competition.get("venue") or {}).get("fullName"),
            "status": _state(event, competition),
            "consensus_total": over_under,
            "quote_count": 1 if over_under is not None else None,
            "source_tag": self.source,
        }

    async def fetch_team_results(
        self,
        sport: Sport | str,
        team_id: Optional[str],
    ) -> tuple[tuple[float, float], ...]:
        """
        Completed results for one team as (team_score, opponent_score), oldest first.

        Returns an empty tuple when the team id is unknown or the feed fails.
        """
        sport = Sport.parse(sport)
        if not team_id or not self.supports(sport):
            return ()

        url = f"{self._sport_url(sport)}/teams/{team_id}/schedule"
        try:
            payload, _ = await self._load(
                sport,
                (self.source, sport.value, f"team:{team_id}"),
                url,
                breaker_source=TEAM_BREAKER_SOURCE,
            )
        except (FeedError, CircuitOpenError) as e:
            logger.warning(f"ESPN schedule for team {team_id} ({sport.value}) failed: {failure_tag(e)}")
            return ()

        results = []
        for event in payload.get("events") or []:
            if not isinstance(event, dict):
                continue
            result = self._team_result(event, str(team_id))
            if result is not None:
                results.append(result)
        results.sort(key=lambda r: r[0])
        return tuple((scored, allowed) for _, scored, allowed in results)

    @staticmethod
    def _team_result(event: dict[str, Any], team_id: str) -> Optional[tuple[datetime, float, float]]:
        competition = _first(event.get("competitions"))
        if competition is None:
            return None
        status_type = (competition.get("status") or event.get("status") or {}).get("type") or {}
        if status_type.get("completed") is False:
            return None

        competitors = [c for c in competition.get("competitors") or [] if isinstance(c, dict)]
        if len(competitors) != 2:
            return None

        def _cid(c: dict[str, Any]) -> str:
            return str(c.get("id") or (c.get("team") or {}).get("id") or "")

        team = next((c for c in competitors if _cid(c) == team_id), None)
        opponent = next((c for c in competitors if _cid(c) != team_id), None)
        if team is None or opponent is None:
            return None

        scored = parse_score(team.get("score"))
        allowed = parse_score(opponent.get("score"))
        if scored is None or allowed is None:
            return None
        try:
            played_at = parse_utc(event.get("date") or competition.get("date"))
        except ValueError:
            return None
        return played_at, scored, allowed
