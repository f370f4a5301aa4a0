"""
Slate orchestration: feeds -> fusion -> floor predictions.

SlateService owns every piece of process-local state (feed cache,
prediction cache, health registry, circuit breakers) so nothing lives in
module globals. Both feeds are requested concurrently and joined before
fusion; per-game inputs (both teams' schedules and the odds events) are
fetched concurrently as well.
"""
from __future__ import annotations

import asyncio
from datetime import date, datetime
from typing import Any, Optional

from mto.config import Settings, settings as default_settings
from mto.ingestion.errors import FeedError
from mto.ingestion.espn import ESPNScheduleFeed
from mto.ingestion.models import FeedHealthRegistry
from mto.ingestion.the_odds import TheOddsFeed
from mto.markets.summary import market_features_for_game
from mto.models import CalculationInput, Game, GameContext, MTOPrediction
from mto.pipeline.fusion import fuse_games
from mto.prediction.engine import MTOFloorEngine
from mto.prediction.parameters import load_parameters
from mto.prediction.team_form import build_team_stats
from mto.sports import Sport
from mto.utils.api_cache import TTLCache
from mto.utils.circuit_breaker import BreakerConfig, BreakerRegistry
from mto.utils.dates import local_day_window, resolve_zone
from mto.utils.logging import get_logger

logger = get_logger(__name__)


class SlateService:
    """Games and predictions for one sport on one local calendar date."""

    def __init__(
        self,
        schedule_feed: ESPNScheduleFeed,
        odds_feed: TheOddsFeed,
        engine: Optional[MTOFloorEngine] = None,
        prediction_cache: Optional[TTLCache] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or default_settings
        self.schedule_feed = schedule_feed
        self.odds_feed = odds_feed
        self.engine = engine if engine is not None else MTOFloorEngine(load_parameters(self.settings.parameters_file))
        self.prediction_cache = prediction_cache if prediction_cache is not None else TTLCache(
            self.settings.prediction_cache_ttl_seconds, name="predictions"
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "SlateService":
        """Wire adapters that share one feed cache, health registry and breaker set."""
        cfg = settings or default_settings
        feed_cache = TTLCache(cfg.feed_cache_ttl_seconds, name="feeds")
        health = FeedHealthRegistry()
        breakers = BreakerRegistry(BreakerConfig(counted=FeedError))
        shared = {"cache": feed_cache, "health": health, "breakers": breakers, "settings": cfg}
        return cls(
            schedule_feed=ESPNScheduleFeed(**shared),
            odds_feed=TheOddsFeed(**shared),
            settings=cfg,
        )

    async def aclose(self) -> None:
        await asyncio.gather(self.schedule_feed.aclose(), self.odds_feed.aclose())

    def _today(self, tz_name: Optional[str] = None) -> date:
        return datetime.now(resolve_zone(tz_name or self.settings.default_timezone)).date()

    async def list_games(
        self,
        sport: Sport | str,
        iso_date: str,
        tz_name: Optional[str] = None,
    ) -> list[Game]:
        """
        Fused, sorted games for a local date. Feed failures yield fewer games,
        never an exception.
        """
        sport = Sport.parse(sport)
        window = local_day_window(iso_date, tz_name or self.settings.default_timezone)
        schedule, odds = await asyncio.gather(
            self.schedule_feed.fetch_raw_games(sport, window),
            self.odds_feed.fetch_raw_games(sport, window),
        )
        for result in (schedule, odds):
            if not result.ok:
                logger.warning(f"{result.source} unavailable for {sport.value} {iso_date}: {result.error}")
        return fuse_games(sport, schedule, odds, bucket_minutes=self.settings.fuse_bucket_minutes)

    async def _compute_prediction(
        self,
        game: Game,
        as_of: date,
        tz_name: Optional[str],
    ) -> MTOPrediction:
        zone = resolve_zone(tz_name or self.settings.default_timezone)
        game_day = game.start_time_utc.astimezone(zone).date().isoformat()
        window = local_day_window(game_day, zone.key)

        home_results, away_results, odds = await asyncio.gather(
            self.schedule_feed.fetch_team_results(game.sport, game.home_team_id),
            self.schedule_feed.fetch_team_results(game.sport, game.away_team_id),
            self.odds_feed.fetch_events(game.sport, window),
        )

        league = self.engine.parameters.for_sport(game.sport).league
        home_stats = build_team_stats(game.home_team_id, game.home_team, home_results, league)
        away_stats = build_team_stats(game.away_team_id, game.away_team, away_results, league)
        market = market_features_for_game(
            odds.events, game, source="cached" if odds.from_cache else "live"
        )

        return self.engine.predict(CalculationInput(
            game_id=game.id,
            sport=game.sport,
            home_stats=home_stats,
            away_stats=away_stats,
            context=GameContext(),
            sportsbook_line=game.sportsbook_line,
            market=market,
            as_of_date=as_of,
        ))

    async def predict_game(
        self,
        game: Game,
        as_of_date: Optional[date] = None,
        tz_name: Optional[str] = None,
    ) -> MTOPrediction:
        """Prediction for one game, cached by (game id, as-of date)."""
        as_of = as_of_date or self._today(tz_name)
        return await self.prediction_cache.get_or_fetch(
            key=(game.id, as_of.isoformat()),
            fetch_fn=lambda: self._compute_prediction(game, as_of, tz_name),
            source="engine",
        )

    async def predict_slate(
        self,
        sport: Sport | str,
        iso_date: str,
        tz_name: Optional[str] = None,
    ) -> list[MTOPrediction]:
        """Predictions for the scheduled and live games of a date."""
        games = await self.list_games(sport, iso_date, tz_name)
        open_games = [g for g in games if g.status != "completed"]
        as_of = self._today(tz_name)
        return list(await asyncio.gather(
            *(self.predict_game(g, as_of, tz_name) for g in open_games)
        ))

    def health_snapshot(self) -> dict[str, Any]:
        feed_caches = {id(a.cache): a.cache for a in (self.schedule_feed, self.odds_feed)}
        breaker_sets = {id(a.breakers): a.breakers for a in (self.schedule_feed, self.odds_feed)}
        health_sets = {id(a.health): a.health for a in (self.schedule_feed, self.odds_feed)}

        feeds: dict[str, Any] = {}
        for registry in health_sets.values():
            feeds.update(registry.snapshot())
        breakers: dict[str, Any] = {}
        for registry in breaker_sets.values():
            breakers.update(registry.get_stats())

        return {
            "feeds": feeds,
            "breakers": breakers,
            "caches": [c.get_stats() for c in feed_caches.values()] + [self.prediction_cache.get_stats()],
        }
