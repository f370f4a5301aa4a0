"""
Per-sport model parameters.

The floor quantile, sigma bounds, blend constants and contextual adjustments
are policy, not correctness: they live here as one canonical parameter set
and can be overridden per deployment with a YAML file (MTO_PARAMETERS_FILE):

    floor_cap_fraction: 0.8
    blend:
      max_weight: 0.25
    adjustments:
      weather_mu_shift: -2.5
    sports:
      NBA:
        stay_away_margin: 5
        sigma_bounds: [8, 15]
        league:
          avg_total: 226.0
"""
from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional

import yaml

from mto.sports import Sport
from mto.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class LeagueAverages:
    avg_total: float
    avg_pace: Optional[float] = None
    avg_offensive_efficiency: Optional[float] = None
    avg_defensive_efficiency: Optional[float] = None

    def __post_init__(self) -> None:
        if self.avg_total <= 0:
            raise ValueError("League avg_total must be positive")


@dataclass(frozen=True)
class SportParameters:
    floor_quantile: float
    sigma_min: float
    sigma_max: float
    default_sigma_pct: float
    stay_away_margin: float
    default_dispersion: float  # used when the market gives no std
    league: LeagueAverages
    low_tempo_conferences: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not 0.0 < self.floor_quantile < 0.5:
            raise ValueError(f"floor_quantile must be in (0, 0.5), got {self.floor_quantile}")
        if self.sigma_min <= 0 or self.sigma_max < self.sigma_min:
            raise ValueError(f"Invalid sigma bounds [{self.sigma_min}, {self.sigma_max}]")
        if self.default_sigma_pct <= 0:
            raise ValueError("default_sigma_pct must be positive")
        if self.stay_away_margin < 0 or self.default_dispersion < 0:
            raise ValueError("stay_away_margin and default_dispersion must not be negative")


@dataclass(frozen=True)
class BlendParameters:
    min_weight: float = 0.05
    max_weight: float = 0.30
    base_weight: float = 0.10
    max_book_bonus: float = 0.20
    book_saturation: float = 20.0
    max_dispersion_penalty: float = 0.10
    dispersion_scale: float = 20.0
    mu_band: float = 0.20  # blended mu stays within +/- 20% of the model mu
    sigma_inflation_threshold: float = 1.0
    sigma_inflation: float = 1.10
    sigma_inflation_high_threshold: float = 1.5
    sigma_inflation_high: float = 1.15
    max_confidence_penalty: float = 15.0
    confidence_penalty_per_point: float = 2.0

    def __post_init__(self) -> None:
        if not 0.0 <= self.min_weight <= self.max_weight <= 1.0:
            raise ValueError("Blend weights must satisfy 0 <= min_weight <= max_weight <= 1")
        if self.book_saturation <= 0 or self.dispersion_scale <= 0:
            raise ValueError("book_saturation and dispersion_scale must be positive")
        if self.mu_band < 0:
            raise ValueError("mu_band must not be negative")


@dataclass(frozen=True)
class AdjustmentParameters:
    recent_games: int = 5
    recent_weight: float = 0.5
    offense_weight: float = 0.5
    pace_factor: float = 0.10
    low_tempo_sigma: float = 1.20
    low_tempo_mu_shift: float = -3.0
    weather_sigma: float = 1.20
    weather_mu_shift: float = -3.0
    wind_mph_threshold: float = 12.0
    cold_temp_threshold: float = 45.0
    injury_sigma_per: float = 0.10
    injury_mu_shift_per: float = -2.0
    early_season_games: int = 5
    early_season_model_weight: float = 0.70
    early_season_sigma: float = 1.15
    elite_defense_rank: int = 8
    defense_mu_shift: float = -3.0
    defense_sigma: float = 1.10


@dataclass(frozen=True)
class EngineParameters:
    sports: Mapping[Sport, SportParameters]
    blend: BlendParameters = field(default_factory=BlendParameters)
    adjustments: AdjustmentParameters = field(default_factory=AdjustmentParameters)
    floor_cap_fraction: float = 0.80
    confidence_min: float = 0.35
    confidence_max: float = 0.95
    sufficiency_games: int = 10

    def __post_init__(self) -> None:
        object.__setattr__(self, "sports", MappingProxyType(dict(self.sports)))
        missing = [s.value for s in Sport if s not in self.sports]
        if missing:
            raise ValueError(f"Missing parameters for sports: {missing}")
        if not 0.0 < self.floor_cap_fraction <= 1.0:
            raise ValueError("floor_cap_fraction must be in (0, 1]")
        if not 0.0 <= self.confidence_min <= self.confidence_max <= 1.0:
            raise ValueError("Confidence bounds must satisfy 0 <= min <= max <= 1")

    def for_sport(self, sport: Sport) -> SportParameters:
        return self.sports[Sport.parse(sport)]


LOW_TEMPO_CONFERENCES = (
    "Big Ten", "B1G", "Big 10", "Wisconsin", "Iowa", "Northwestern",
    "Penn State", "Army", "Navy", "Air Force",
)

DEFAULT_SPORT_PARAMETERS: dict[Sport, SportParameters] = {
    Sport.NFL: SportParameters(
        floor_quantile=0.05, sigma_min=5.0, sigma_max=10.0, default_sigma_pct=0.18,
        stay_away_margin=4.0, default_dispersion=1.0,
        league=LeagueAverages(avg_total=44.5, avg_pace=64.0),
    ),
    Sport.NBA: SportParameters(
        floor_quantile=0.05, sigma_min=7.0, sigma_max=14.0, default_sigma_pct=0.15,
        stay_away_margin=4.0, default_dispersion=1.5,
        league=LeagueAverages(avg_total=223.0, avg_pace=99.5),
    ),
    Sport.NHL: SportParameters(
        floor_quantile=0.05, sigma_min=2.0, sigma_max=4.0, default_sigma_pct=0.30,
        stay_away_margin=0.5, default_dispersion=0.25,
        league=LeagueAverages(avg_total=6.2, avg_pace=60.0),
    ),
    Sport.MLB: SportParameters(
        floor_quantile=0.05, sigma_min=2.0, sigma_max=4.0, default_sigma_pct=0.25,
        stay_away_margin=1.0, default_dispersion=0.5,
        league=LeagueAverages(avg_total=8.8),
    ),
    Sport.NCAA_FB: SportParameters(
        floor_quantile=0.03, sigma_min=6.0, sigma_max=15.0, default_sigma_pct=0.20,
        stay_away_margin=5.0, default_dispersion=1.5,
        league=LeagueAverages(avg_total=56.0, avg_pace=72.0),
        low_tempo_conferences=LOW_TEMPO_CONFERENCES,
    ),
    Sport.NCAA_BB: SportParameters(
        floor_quantile=0.05, sigma_min=6.0, sigma_max=12.0, default_sigma_pct=0.18,
        stay_away_margin=4.0, default_dispersion=1.5,
        league=LeagueAverages(avg_total=144.0, avg_pace=70.0),
    ),
    Sport.SOCCER: SportParameters(
        floor_quantile=0.05, sigma_min=1.5, sigma_max=3.0, default_sigma_pct=0.35,
        stay_away_margin=0.5, default_dispersion=0.25,
        league=LeagueAverages(avg_total=2.8),
    ),
    Sport.TENNIS: SportParameters(
        floor_quantile=0.05, sigma_min=1.0, sigma_max=2.0, default_sigma_pct=0.30,
        stay_away_margin=0.5, default_dispersion=0.5,
        league=LeagueAverages(avg_total=3.5),
    ),
}

DEFAULT_PARAMETERS = EngineParameters(sports=DEFAULT_SPORT_PARAMETERS)


def _apply(obj: Any, overrides: Mapping[str, Any], where: str) -> Any:
    """dataclasses.replace with unknown-key checking."""
    if not isinstance(overrides, Mapping):
        raise ValueError(f"{where}: expected a mapping, got {type(overrides).__name__}")
    known = {f.name for f in dataclasses.fields(obj)}
    unknown = sorted(set(overrides) - known)
    if unknown:
        raise ValueError(f"{where}: unknown parameter(s) {unknown}")
    return dataclasses.replace(obj, **overrides)


def _sport_overrides(base: SportParameters, raw: Mapping[str, Any], where: str) -> SportParameters:
    values = dict(raw)
    bounds = values.pop("sigma_bounds", None)
    if bounds is not None:
        if not isinstance(bounds, (list, tuple)) or len(bounds) != 2:
            raise ValueError(f"{where}.sigma_bounds must be a [min, max] pair")
        values["sigma_min"], values["sigma_max"] = float(bounds[0]), float(bounds[1])
    if "league" in values:
        values["league"] = _apply(base.league, values["league"], f"{where}.league")
    if "low_tempo_conferences" in values:
        values["low_tempo_conferences"] = tuple(values["low_tempo_conferences"] or ())
    return _apply(base, values, where)


def parameters_from_mapping(
    raw: Mapping[str, Any],
    base: EngineParameters = DEFAULT_PARAMETERS,
) -> EngineParameters:
    """Layer a parsed override document over a base parameter set."""
    values = dict(raw or {})
    sports = dict(base.sports)
    for name, sport_raw in (values.pop("sports", None) or {}).items():
        sport = Sport.parse(name)
        sports[sport] = _sport_overrides(sports[sport], sport_raw, f"sports.{sport.value}")
    values["sports"] = sports
    if "blend" in values:
        values["blend"] = _apply(base.blend, values["blend"], "blend")
    if "adjustments" in values:
        values["adjustments"] = _apply(base.adjustments, values["adjustments"], "adjustments")
    return _apply(base, values, "parameters")


def load_parameters(path: Optional[str | Path] = None) -> EngineParameters:
    """
    Load the parameter set.

    Args:
        path: YAML override file; settings.parameters_file when omitted

    Returns:
        DEFAULT_PARAMETERS, or the defaults with the file's overrides applied

    Raises:
        ValueError: If the file is malformed or names unknown parameters
        FileNotFoundError: If the named file does not exist
    """
    if path is None:
        from mto.config import settings

        path = settings.parameters_file
    if not path:
        return DEFAULT_PARAMETERS

    with open(path, "r", encoding="utf-8") as f:
        try:
            raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid parameter file {path}: {e}") from e

    params = parameters_from_mapping(raw)
    logger.info(f"Loaded model parameter overrides from {path}")
    return params
