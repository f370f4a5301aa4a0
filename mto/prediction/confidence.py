"""
Data completeness and confidence scoring for floor predictions.

Completeness starts at 1.0 and loses a fixed amount per missing modeling
input. Confidence combines completeness with sample sufficiency (how many
games both teams have played) and the market blend's dispersion penalty,
then is clipped to the configured band.
"""
from typing import Optional

import numpy as np

from mto.models import GameContext, MarketFeatures, TeamStats
from mto.sports import OUTDOOR_SPORTS, Sport

MISSING_AVERAGES_PENALTY = 0.15
SHORT_FORM_PENALTY = 0.05
MISSING_INPUT_PENALTY = 0.05


def has_season_averages(stats: TeamStats) -> bool:
    return stats.has_history and stats.avg_points_scored > 0 and stats.avg_points_allowed > 0


def calculate_data_completeness(
    home: TeamStats,
    away: TeamStats,
    context: GameContext,
    sport: Sport,
    market: Optional[MarketFeatures],
) -> float:
    """
    Fraction of modeling inputs that were actually available.

    Returns:
        Completeness in [0, 1]
    """
    completeness = 1.0
    for team in (home, away):
        if not has_season_averages(team):
            completeness -= MISSING_AVERAGES_PENALTY
        if len(team.recent_form) < 2:
            completeness -= SHORT_FORM_PENALTY

    if home.pace is None or away.pace is None:
        completeness -= MISSING_INPUT_PENALTY
    efficiencies = (
        home.offensive_efficiency, home.defensive_efficiency,
        away.offensive_efficiency, away.defensive_efficiency,
    )
    if any(e is None for e in efficiencies):
        completeness -= MISSING_INPUT_PENALTY
    if sport in OUTDOOR_SPORTS and context.weather is None:
        completeness -= MISSING_INPUT_PENALTY
    if context.injuries is None:
        completeness -= MISSING_INPUT_PENALTY
    if market is None or not market.available:
        completeness -= MISSING_INPUT_PENALTY

    return float(np.clip(completeness, 0.0, 1.0))


def sample_sufficiency(home_games: int, away_games: int, full_games: int = 10) -> float:
    """1.0 once both teams have more than `full_games` games, else a partial credit."""
    if home_games > full_games and away_games > full_games:
        return 1.0
    return min(home_games, away_games) / full_games * 0.5


def calculate_confidence(
    data_completeness: float,
    home_games: int,
    away_games: int,
    confidence_adjustment: float = 0.0,
    min_confidence: float = 0.35,
    max_confidence: float = 0.95,
    full_games: int = 10,
) -> float:
    """
    Confidence in a floor prediction.

    Args:
        data_completeness: Output of calculate_data_completeness
        home_games: Games played by the home team
        away_games: Games played by the away team
        confidence_adjustment: Market-blend adjustment in percentage points (<= 0)
        min_confidence: Lower clip
        max_confidence: Upper clip

    Returns:
        Confidence between min_confidence and max_confidence
    """
    base = data_completeness * 0.85 + 0.15 * sample_sufficiency(home_games, away_games, full_games)
    confidence = base + confidence_adjustment / 100.0
    if not np.isfinite(confidence):
        return min_confidence
    return float(np.clip(confidence, min_confidence, max_confidence))
