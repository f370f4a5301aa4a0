"""
Adapter-boundary data model.

RawGame is the validated, source-specific record an adapter emits. Anything
that fails validation here (no team names, no parseable start time) is
dropped by the adapter; downstream code only ever sees valid RawGames.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Callable, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

SourceTag = Literal["espn", "the_odds"]
GameStatus = Literal["scheduled", "live", "completed"]

SCHEDULE_SOURCE = "espn"
ODDS_SOURCE = "the_odds"


def parse_utc(value: Any) -> datetime:
    """Parse an ISO timestamp (or datetime) into an aware UTC datetime.

    Naive values are taken as UTC; feeds report UTC with or without a zone.
    """
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z") or text.endswith("z"):
            text = text[:-1] + "+00:00"
        moment = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Unparseable start time: {value!r}")
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


class RawGame(BaseModel):
    """One game as reported by a single feed."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(min_length=1)
    home_name: str = Field(min_length=1)
    away_name: str = Field(min_length=1)
    home_id: Optional[str] = None
    away_id: Optional[str] = None
    home_logo: Optional[str] = None
    away_logo: Optional[str] = None
    start_time_utc: datetime
    venue: Optional[str] = None
    status: Optional[GameStatus] = None
    consensus_total: Optional[float] = None
    quote_count: Optional[int] = Field(default=None, ge=0)
    total_dispersion: Optional[float] = None
    source_tag: SourceTag

    @field_validator("start_time_utc", mode="before")
    @classmethod
    def _parse_start(cls, value: Any) -> datetime:
        return parse_utc(value)

    @field_validator("home_id", "away_id", "home_logo", "away_logo", "venue", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("consensus_total", mode="before")
    @classmethod
    def _positive_total(cls, value: Any) -> Optional[float]:
        # A missing or nonsensical line is absent, not a reason to drop the game
        number = _as_float(value)
        if number is None or number <= 0:
            return None
        return number

    @field_validator("total_dispersion", mode="before")
    @classmethod
    def _non_negative_dispersion(cls, value: Any) -> Optional[float]:
        number = _as_float(value)
        if number is None or number < 0:
            return None
        return number

    @property
    def has_total(self) -> bool:
        return self.consensus_total is not None


def _as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


@dataclass(frozen=True)
class FeedResult:
    """Tagged outcome of one adapter call. Never carries an exception."""

    source: str
    sport: str
    ok: bool
    games: tuple[RawGame, ...] = ()
    error: Optional[str] = None
    from_cache: bool = False

    @classmethod
    def failure(cls, source: str, sport: str, error: str) -> "FeedResult":
        return cls(source=source, sport=sport, ok=False, games=(), error=error)

    @classmethod
    def empty(cls, source: str, sport: str, hint: Optional[str] = None) -> "FeedResult":
        return cls(source=source, sport=sport, ok=True, games=(), error=hint)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "sport": self.sport,
            "ok": self.ok,
            "count": len(self.games),
            "error": self.error,
            "from_cache": self.from_cache,
        }


@dataclass(frozen=True)
class FeedHealth:
    ok: bool
    last_error: Optional[str]
    last_checked_at: datetime
    last_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "last_error": self.last_error,
            "last_checked_at": self.last_checked_at.isoformat(),
            "last_count": self.last_count,
        }


class FeedHealthRegistry:
    """Per-(source, sport) health snapshot for monitoring."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._entries: dict[tuple[str, str], FeedHealth] = {}
        self._lock = Lock()

    def record(
        self,
        source: str,
        sport: str,
        ok: bool,
        error: Optional[str],
        count: int,
    ) -> FeedHealth:
        health = FeedHealth(
            ok=ok,
            last_error=error,
            last_checked_at=self._clock(),
            last_count=count,
        )
        with self._lock:
            self._entries[(source, sport)] = health
        return health

    def get(self, source: str, sport: str) -> Optional[FeedHealth]:
        with self._lock:
            return self._entries.get((source, sport))

    def snapshot(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            items = sorted(self._entries.items())
        return {f"{source}:{sport}": health.to_dict() for (source, sport), health in items}
