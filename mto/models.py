"""
Domain model shared by fusion, the market summarizer and the floor engine.

All values are frozen: a recomputation produces a new object, nothing is
mutated after construction. `to_dict()` gives the JSON shape served to
clients.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Literal, Mapping, Optional

from mto.sports import Sport

GameStatus = Literal["scheduled", "live", "completed"]
DataSource = Literal["espn", "the_odds", "merged"]
MarketSource = Literal["live", "cached", "none"]
Impact = Literal["positive", "negative", "neutral"]


def _round(value: Optional[float], digits: int = 1) -> Optional[float]:
    return None if value is None else round(value, digits)


@dataclass(frozen=True)
class Game:
    """One real event after fusion."""

    id: str
    sport: Sport
    home_team: str
    away_team: str
    start_time_utc: datetime
    home_team_id: Optional[str] = None
    away_team_id: Optional[str] = None
    venue: str = "TBD"
    status: GameStatus = "scheduled"
    sportsbook_line: Optional[float] = None
    data_source: DataSource = "espn"
    home_logo: Optional[str] = None
    away_logo: Optional[str] = None
    quote_count: Optional[int] = None
    total_dispersion: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sport": self.sport.value,
            "home_team": self.home_team,
            "away_team": self.away_team,
            "home_team_id": self.home_team_id,
            "away_team_id": self.away_team_id,
            "home_logo": self.home_logo,
            "away_logo": self.away_logo,
            "start_time_utc": self.start_time_utc.isoformat(),
            "venue": self.venue,
            "status": self.status,
            "sportsbook_line": self.sportsbook_line,
            "quote_count": self.quote_count,
            "total_dispersion": self.total_dispersion,
            "data_source": self.data_source,
        }


@dataclass(frozen=True)
class TeamStats:
    """Rolling per-team snapshot derived from recent completed games."""

    team_id: Optional[str]
    team_name: str
    avg_points_scored: float
    avg_points_allowed: float
    recent_form: tuple[float, ...] = ()  # points scored, most recent last
    games_played: int = 0
    pace: Optional[float] = None
    offensive_efficiency: Optional[float] = None
    defensive_efficiency: Optional[float] = None
    has_history: bool = True


@dataclass(frozen=True)
class WeatherCondition:
    temperature: Optional[float] = None  # Fahrenheit
    wind_speed: Optional[float] = None  # mph
    precipitation: bool = False
    indoor: bool = False
    conditions: str = ""


@dataclass(frozen=True)
class InjuryReport:
    player_name: str
    impact: Literal["high", "medium", "low"]
    status: Literal["out", "doubtful", "questionable"]


@dataclass(frozen=True)
class GameContext:
    venue: Literal["home", "away", "neutral"] = "home"
    weather: Optional[WeatherCondition] = None
    rest_days: int = 1
    # None means the injury report is unknown, () means "no injuries"
    injuries: Optional[tuple[InjuryReport, ...]] = None
    travel_distance: Optional[float] = None
    conference: Optional[str] = None
    early_season: bool = False
    defensive_rank_home: Optional[int] = None
    defensive_rank_away: Optional[int] = None
    rivalry: bool = False


@dataclass(frozen=True)
class AltLine:
    line: float
    over_price: Optional[float] = None
    under_price: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {"line": self.line, "over_price": self.over_price, "under_price": self.under_price}


@dataclass(frozen=True)
class MarketFeatures:
    """Consensus statistics over bookmaker totals lines."""

    mean_total: Optional[float] = None
    median_total: Optional[float] = None
    std_total: Optional[float] = None
    quote_count: Optional[int] = None
    alt_lines: tuple[AltLine, ...] = ()
    last_updated: Optional[str] = None
    source: MarketSource = "none"

    def __post_init__(self) -> None:
        if self.source == "none" and any(
            v is not None for v in (self.mean_total, self.median_total, self.std_total, self.quote_count)
        ):
            raise ValueError("MarketFeatures with source 'none' cannot carry numbers")

    @classmethod
    def none(cls) -> "MarketFeatures":
        return cls()

    @property
    def available(self) -> bool:
        return self.source != "none" and self.mean_total is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "mean_total": _round(self.mean_total, 2),
            "median_total": _round(self.median_total, 2),
            "std_total": _round(self.std_total, 2),
            "quote_count": self.quote_count,
            "alt_lines": [a.to_dict() for a in self.alt_lines],
            "last_updated": self.last_updated,
            "source": self.source,
        }


@dataclass(frozen=True)
class KeyFactor:
    factor: str
    impact: Impact
    weight: float
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "factor": self.factor,
            "impact": self.impact,
            "weight": round(self.weight, 3),
            "description": self.description,
        }


@dataclass(frozen=True)
class CalculationInput:
    game_id: str
    sport: Sport
    home_stats: TeamStats
    away_stats: TeamStats
    context: GameContext = field(default_factory=GameContext)
    sportsbook_line: Optional[float] = None
    market: Optional[MarketFeatures] = None
    as_of_date: Optional[date] = None


@dataclass(frozen=True)
class MTOPrediction:
    """Floor estimate for one game as of one date."""

    game_id: str
    sport: Sport
    home_team: str
    away_team: str
    as_of_date: date
    expected_total: float
    mto_floor: float
    coverage_target: float
    stays_away: bool
    confidence: float
    data_completeness: float
    sportsbook_line: Optional[float] = None
    key_factors: tuple[KeyFactor, ...] = ()
    notes: tuple[str, ...] = ()
    market_features: MarketFeatures = field(default_factory=MarketFeatures.none)
    diagnostics: Mapping[str, float] = field(default_factory=dict, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "game_id": self.game_id,
            "sport": self.sport.value,
            "home_team": self.home_team,
            "away_team": self.away_team,
            "as_of_date": self.as_of_date.isoformat(),
            "expected_total": self.expected_total,
            "mto_floor": self.mto_floor,
            "coverage_target": self.coverage_target,
            "stays_away": self.stays_away,
            "confidence": self.confidence,
            "data_completeness": self.data_completeness,
            "sportsbook_line": self.sportsbook_line,
            "key_factors": [k.to_dict() for k in self.key_factors],
            "notes": list(self.notes),
            "market_features": self.market_features.to_dict(),
            "diagnostics": dict(self.diagnostics),
        }
