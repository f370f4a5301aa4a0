"""
MTO Floor Prediction Engine

A single linear pass over a working state (mu, sigma, notes, key factors):

1. Center estimate from team form vs. opponent defense, pace-adjusted
2. Base sigma from recent-form spread
3. Contextual adjustments (low tempo, weather, injuries, early season,
   defensive matchup / rivalry), in that order
4. Sigma clamped to the sport's bounds
5. Bounded market blend
6. Floor at the sport's tail quantile: max(0, mu - z * sigma)
7. Floor capped at a fraction of the sportsbook line and market mean
8. Stay-away signal when the reference is within the sport's margin
9. Confidence from completeness, sample sufficiency and market dispersion

Missing inputs never raise; they lower data completeness and confidence.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Optional

import numpy as np

from mto.markets.blend import bounded_market_blend
from mto.models import CalculationInput, KeyFactor, MTOPrediction, MarketFeatures, TeamStats
from mto.prediction.confidence import (
    calculate_confidence,
    calculate_data_completeness,
    has_season_averages,
)
from mto.prediction.parameters import (
    DEFAULT_PARAMETERS,
    AdjustmentParameters,
    EngineParameters,
    SportParameters,
)
from mto.sports import Sport
from mto.utils.distributions import population_std, z_for_quantile
from mto.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class _WorkingState:
    mu: float
    sigma: float
    notes: list[str] = field(default_factory=list)
    key_factors: list[KeyFactor] = field(default_factory=list)

    def note(self, tag: str) -> None:
        if tag not in self.notes:
            self.notes.append(tag)

    def factor(self, factor: str, impact: str, weight: float, description: str) -> None:
        self.key_factors.append(KeyFactor(factor=factor, impact=impact, weight=weight, description=description))


def _positive(value: Optional[float]) -> Optional[float]:
    if value is None or not np.isfinite(value) or value <= 0:
        return None
    return float(value)


class MTOFloorEngine:
    """Conservative floor estimate for a game's combined score."""

    def __init__(self, parameters: Optional[EngineParameters] = None):
        self.parameters = parameters or DEFAULT_PARAMETERS

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _side_points(
        self,
        team: TeamStats,
        opponent: TeamStats,
        fallback: float,
        adj: AdjustmentParameters,
    ) -> float:
        season = team.avg_points_scored if has_season_averages(team) else fallback
        allowed = opponent.avg_points_allowed if has_season_averages(opponent) else fallback
        form = team.recent_form[-adj.recent_games:]
        recent = float(np.mean(form)) if form else season
        offense = adj.recent_weight * recent + (1.0 - adj.recent_weight) * season
        return adj.offense_weight * offense + (1.0 - adj.offense_weight) * allowed

    def _center(self, inputs: CalculationInput, sp: SportParameters, adj: AdjustmentParameters) -> tuple[float, list[KeyFactor]]:
        league = sp.league
        half = league.avg_total / 2.0
        home_side = self._side_points(inputs.home_stats, inputs.away_stats, half, adj)
        away_side = self._side_points(inputs.away_stats, inputs.home_stats, half, adj)
        mu = home_side + away_side

        factors = [KeyFactor(
            factor="Team Scoring Trends",
            impact="positive" if mu > league.avg_total else "negative",
            weight=0.45,
            description=f"Model center: {mu:.1f} vs league {league.avg_total:.1f}",
        )]

        home_pace = _positive(inputs.home_stats.pace)
        away_pace = _positive(inputs.away_stats.pace)
        league_pace = _positive(league.avg_pace)
        if home_pace and away_pace and league_pace:
            avg_pace = (home_pace + away_pace) / 2.0
            shift = mu * (avg_pace - league_pace) / league_pace * adj.pace_factor
            mu += shift
            factors.append(KeyFactor(
                factor="Pace",
                impact="positive" if shift > 0 else "negative" if shift < 0 else "neutral",
                weight=abs(avg_pace - league_pace) / league_pace,
                description=f"Avg pace {avg_pace:.1f} vs league {league_pace:.1f} ({shift:+.1f})",
            ))
        return mu, factors

    def _base_sigma(self, home: TeamStats, away: TeamStats, sp: SportParameters) -> float:
        home_std = population_std(home.recent_form)
        away_std = population_std(away.recent_form)
        if home_std is not None and away_std is not None:
            sigma = float(np.sqrt(home_std ** 2 + away_std ** 2))
            if sigma > 0:
                return sigma
        return (home.avg_points_scored + away.avg_points_scored) * sp.default_sigma_pct

    def _contextual_adjustments(
        self,
        state: _WorkingState,
        inputs: CalculationInput,
        sp: SportParameters,
        adj: AdjustmentParameters,
    ) -> None:
        ctx = inputs.context

        conference = (ctx.conference or "").lower()
        if conference and any(name.lower() in conference for name in sp.low_tempo_conferences):
            state.sigma *= adj.low_tempo_sigma
            state.mu += adj.low_tempo_mu_shift
            state.note("conf-pace")
            state.factor(
                "Low Tempo Conference", "negative", 0.20,
                f"{ctx.conference} (low pace) - reduced mu, inflated sigma",
            )

        weather = ctx.weather
        if weather is not None and not weather.indoor:
            windy = weather.wind_speed is not None and weather.wind_speed >= adj.wind_mph_threshold
            cold = weather.temperature is not None and weather.temperature <= adj.cold_temp_threshold
            if windy or cold or weather.precipitation:
                state.sigma *= adj.weather_sigma
                state.mu += adj.weather_mu_shift
                state.note("weather")
                parts = []
                if weather.temperature is not None:
                    parts.append(f"Temp {weather.temperature:.0f}F")
                if weather.wind_speed is not None:
                    parts.append(f"Wind {weather.wind_speed:.0f}mph")
                if weather.precipitation:
                    parts.append("Precipitation")
                state.factor("Adverse Weather", "negative", 0.20, ", ".join(parts))

        key_injuries = [
            i for i in (ctx.injuries or ())
            if i.impact == "high" and i.status in ("out", "questionable")
        ]
        if key_injuries:
            n = len(key_injuries)
            state.sigma *= 1.0 + adj.injury_sigma_per * n
            state.mu += adj.injury_mu_shift_per * n
            state.note("injuries")
            state.factor(
                "Key Injuries", "negative", adj.injury_sigma_per * n,
                f"{n} high-impact player(s) out/questionable",
            )

        min_games = min(inputs.home_stats.games_played, inputs.away_stats.games_played)
        if ctx.early_season or min_games < adj.early_season_games:
            w = adj.early_season_model_weight
            state.mu = w * state.mu + (1.0 - w) * sp.league.avg_total
            state.sigma *= adj.early_season_sigma
            state.note("early-season-shrink")
            state.factor(
                "Early Season Adjustment", "negative", 0.15,
                f"<{adj.early_season_games} games played - shrink toward league avg, inflate sigma",
            )

        elite = adj.elite_defense_rank
        both_elite = (
            ctx.defensive_rank_home is not None
            and ctx.defensive_rank_away is not None
            and ctx.defensive_rank_home <= elite
            and ctx.defensive_rank_away <= elite
        )
        if both_elite or ctx.rivalry:
            state.mu += adj.defense_mu_shift
            state.sigma *= adj.defense_sigma
            state.note("defensive-rivalry")
            state.factor(
                "Defensive Matchup / Rivalry", "negative", 0.10,
                "Both teams strong defensively or rivalry game",
            )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def predict(self, inputs: CalculationInput) -> MTOPrediction:
        """
        Floor prediction for one game.

        Args:
            inputs: Team stats, context and optional line / market features

        Returns:
            A new MTOPrediction
        """
        params = self.parameters
        sport = Sport.parse(inputs.sport)
        sp = params.for_sport(sport)
        adj = params.adjustments
        market = inputs.market if inputs.market is not None else MarketFeatures.none()

        # 1-2. center and base dispersion
        mu, center_factors = self._center(inputs, sp, adj)
        state = _WorkingState(mu=mu, sigma=self._base_sigma(inputs.home_stats, inputs.away_stats, sp))
        state.key_factors.extend(center_factors)

        # 3. context
        self._contextual_adjustments(state, inputs, sp, adj)

        # 4. bounds
        state.sigma = float(np.clip(state.sigma, sp.sigma_min, sp.sigma_max))
        mu_model, sigma_model = state.mu, state.sigma

        # 5. market blend
        blend = bounded_market_blend(state.mu, state.sigma, market, sport, params)
        state.mu, state.sigma = blend.mu, blend.sigma
        if blend.weight > 0:
            state.note("market-blend")
            state.factor(
                "Market Blend", "neutral", blend.weight,
                f"Market {market.mean_total:.1f} ({market.quote_count or 1} books, "
                f"w={blend.weight * 100:.0f}%)",
            )
        else:
            state.factor("Market Blend", "neutral", 0.0, "No market data - model only")

        # 6. floor
        q = sp.floor_quantile
        z = z_for_quantile(q)
        floor = max(0.0, state.mu - z * state.sigma)
        floor_uncapped = floor

        # 7. cap against external references
        line = _positive(inputs.sportsbook_line)
        market_mean = _positive(market.mean_total) if market.available else None
        for reference in (line, market_mean):
            if reference is not None and floor > params.floor_cap_fraction * reference:
                floor = params.floor_cap_fraction * reference
                state.note("market-cap")

        # 8. stay-away
        reference = line if line is not None else market_mean
        stays_away = reference is not None and (reference - floor) <= sp.stay_away_margin

        # 9. confidence
        completeness = calculate_data_completeness(
            inputs.home_stats, inputs.away_stats, inputs.context, sport, market
        )
        confidence = calculate_confidence(
            completeness,
            inputs.home_stats.games_played,
            inputs.away_stats.games_played,
            blend.confidence_adjustment,
            min_confidence=params.confidence_min,
            max_confidence=params.confidence_max,
            full_games=params.sufficiency_games,
        )

        as_of = inputs.as_of_date or datetime.now(timezone.utc).date()
        logger.debug(
            f"{inputs.game_id}: mu={state.mu:.2f} sigma={state.sigma:.2f} "
            f"floor={floor:.2f} stays_away={stays_away}"
        )

        return MTOPrediction(
            game_id=inputs.game_id,
            sport=sport,
            home_team=inputs.home_stats.team_name,
            away_team=inputs.away_stats.team_name,
            as_of_date=as_of,
            expected_total=round(state.mu, 1),
            mto_floor=round(floor, 1),
            coverage_target=round(1.0 - q, 3),
            stays_away=stays_away,
            confidence=round(confidence, 2),
            data_completeness=round(completeness, 2),
            sportsbook_line=round(line, 1) if line is not None else None,
            key_factors=tuple(state.key_factors),
            notes=tuple(state.notes),
            market_features=market,
            diagnostics=MappingProxyType({
                "mu_model": round(mu_model, 3),
                "sigma_model": round(sigma_model, 3),
                "sigma": round(state.sigma, 3),
                "z": round(z, 4),
                "q": q,
                "blend_weight": round(blend.weight, 4),
                "floor_uncapped": round(floor_uncapped, 3),
            }),
        )
