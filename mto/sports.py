"""Supported sports and their identifiers on each upstream feed."""
from __future__ import annotations

from enum import Enum
from typing import Dict, Optional, Tuple


class Sport(str, Enum):
    NFL = "NFL"
    NBA = "NBA"
    NHL = "NHL"
    MLB = "MLB"
    NCAA_FB = "NCAA_FB"
    NCAA_BB = "NCAA_BB"
    SOCCER = "SOCCER"
    TENNIS = "TENNIS"

    @classmethod
    def parse(cls, value: "str | Sport") -> "Sport":
        """Resolve a sport from its name, case-insensitively.

        Raises:
            ValueError: If the value names no supported sport
        """
        if isinstance(value, Sport):
            return value
        key = str(value).strip().upper().replace("-", "_")
        try:
            return cls(key)
        except ValueError:
            raise ValueError(f"Unsupported sport: {value!r}") from None


# ESPN site API path segments: (league, sport)
ESPN_PATHS: Dict[Sport, Optional[Tuple[str, str]]] = {
    Sport.NFL: ("football", "nfl"),
    Sport.NBA: ("basketball", "nba"),
    Sport.NHL: ("hockey", "nhl"),
    Sport.MLB: ("baseball", "mlb"),
    Sport.NCAA_FB: ("football", "college-football"),
    Sport.NCAA_BB: ("basketball", "mens-college-basketball"),
    Sport.SOCCER: ("soccer", "eng.1"),
    Sport.TENNIS: None,
}

# The Odds API sport keys
ODDS_SPORT_KEYS: Dict[Sport, Optional[str]] = {
    Sport.NFL: "americanfootball_nfl",
    Sport.NBA: "basketball_nba",
    Sport.NHL: "icehockey_nhl",
    Sport.MLB: "baseball_mlb",
    Sport.NCAA_FB: "americanfootball_ncaaf",
    Sport.NCAA_BB: "basketball_ncaab",
    Sport.SOCCER: "soccer_epl",
    Sport.TENNIS: None,
}

# Sports played outdoors where weather is a modeling input
OUTDOOR_SPORTS = frozenset({Sport.NFL, Sport.NCAA_FB, Sport.MLB, Sport.SOCCER})
