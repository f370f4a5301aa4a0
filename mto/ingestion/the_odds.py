"""
The Odds API v4 - sportsbook odds feed.

Two payload shapes are accepted:

- the raw upstream array of events, each with `bookmakers`; the market
  summarizer derives the consensus total, book count and dispersion
- a boundary envelope `{"ok": ..., "games" | "data": [...]}` whose items may
  already carry a summarized total (`total`/`consensus_total`,
  `numBooks`/`quote_count`, `stdBooks`/`total_dispersion`)

A JSON object with a `message` field is an upstream API error (bad key,
quota exhausted) and is not retried.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from mto.config import settings as default_settings
from mto.ingestion.base import FeedAdapter, failure_tag
from mto.ingestion.errors import FeedError, FeedRejectedError, MalformedPayloadError
from mto.ingestion.models import ODDS_SOURCE, RawGame
from mto.markets.summary import summarize_totals
from mto.sports import ODDS_SPORT_KEYS, Sport
from mto.utils.circuit_breaker import CircuitOpenError
from mto.utils.dates import DateWindow
from mto.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class OddsEventsResult:
    """Raw odds events for per-game market summaries."""

    ok: bool
    events: tuple[dict[str, Any], ...] = ()
    error: Optional[str] = None
    from_cache: bool = False


def _iso_z(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _pick(item: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = item.get(key)
        if value is not None:
            return value
    return None


def extract_events(payload: Any) -> list[Any]:
    """Event list from either the raw array or the boundary envelope."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ("games", "data"):
            if isinstance(payload.get(key), list):
                return payload[key]
    return []


class TheOddsFeed(FeedAdapter):
    """Client for The Odds API /sports/{sport_key}/odds endpoint."""

    source = ODDS_SOURCE

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        api_key: Optional[str] = None,
        enabled: Optional[bool] = None,
        **kwargs,
    ):
        cfg = kwargs.get("settings") or default_settings
        super().__init__(
            base_url=base_url or cfg.the_odds_base_url,
            timeout=cfg.odds_timeout if timeout is None else timeout,
            **kwargs,
        )
        self.api_key = api_key if api_key is not None else cfg.the_odds_api_key
        self.enabled = cfg.the_odds_enabled if enabled is None else enabled

    def supports(self, sport: Sport) -> bool:
        return ODDS_SPORT_KEYS.get(sport) is not None

    def disabled_reason(self) -> Optional[str]:
        if not self.api_key or not self.enabled:
            return "disabled"
        return None

    def games_request(self, sport: Sport, window: DateWindow) -> tuple[str, dict[str, Any]]:
        params = {
            "apiKey": self.api_key,
            "regions": self.settings.odds_regions,
            "markets": self.settings.odds_markets,
            "oddsFormat": "american",
            "dateFormat": "iso",
            "commenceTimeFrom": _iso_z(window.start_utc),
            "commenceTimeTo": _iso_z(window.end_utc),
        }
        if self.settings.odds_bookmakers:
            params["bookmakers"] = self.settings.odds_bookmakers
        return f"{self.base_url}/sports/{ODDS_SPORT_KEYS[sport]}/odds", params

    def validate_payload(self, payload: Any) -> None:
        if isinstance(payload, list):
            return
        if not isinstance(payload, dict):
            raise MalformedPayloadError("Odds payload is neither a list nor an object")
        if payload.get("ok") is False:
            raise FeedRejectedError(f"Odds boundary error: {payload.get('error')}", tag="api_error")
        if any(isinstance(payload.get(key), list) for key in ("games", "data")):
            return
        if payload.get("message"):
            raise FeedRejectedError(f"Odds API error: {payload['message']}", tag="api_error")
        raise MalformedPayloadError("Odds payload has no event list")

    def parse_games(self, payload: Any, sport: Sport) -> list[RawGame]:
        return self.build_records(extract_events(payload), self._event_fields, self.source)

    def _event_fields(self, item: dict[str, Any]) -> Optional[dict[str, Any]]:
        fields: dict[str, Any] = {
            "id": str(_pick(item, "id", "event_id") or ""),
            "home_name": _pick(item, "home_team", "homeName", "home_name") or "",
            "away_name": _pick(item, "away_team", "awayName", "away_name") or "",
            "start_time_utc": _pick(item, "commence_time", "startTimeUTC", "start_time_utc"),
            "source_tag": self.source,
        }
        if isinstance(item.get("bookmakers"), list):
            market = summarize_totals([item])
            fields["consensus_total"] = market.median_total
            fields["quote_count"] = market.quote_count
            fields["total_dispersion"] = market.std_total
        else:
            fields["consensus_total"] = _pick(item, "consensus_total", "consensusTotal", "total")
            count = _pick(item, "quote_count", "quoteCount", "numBooks")
            fields["quote_count"] = count if isinstance(count, int) and not isinstance(count, bool) else None
            fields["total_dispersion"] = _pick(item, "total_dispersion", "totalDispersion", "stdBooks")
        return fields

    async def fetch_events(self, sport: Sport | str, window: DateWindow) -> OddsEventsResult:
        """
        Raw odds events for the window (shares the games cache entry).

        Never raises for upstream faults.
        """
        sport = Sport.parse(sport)
        if not self.supports(sport):
            return OddsEventsResult(ok=True)
        reason = self.disabled_reason()
        if reason is not None:
            return OddsEventsResult(ok=True, error=reason)

        url, params = self.games_request(sport, window)
        try:
            payload, from_cache = await self._load(sport, self._cache_key(sport, window), url, params)
        except (FeedError, CircuitOpenError) as e:
            tag = failure_tag(e)
            self._record(sport, False, tag, 0)
            return OddsEventsResult(ok=False, error=tag)

        events = tuple(e for e in extract_events(payload) if isinstance(e, dict))
        self._record(sport, True, None, len(events))
        return OddsEventsResult(ok=True, events=events, from_cache=from_cache)
