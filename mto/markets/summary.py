"""
Market summarizer: bookmaker totals quotes -> consensus statistics.

Input events follow The Odds API v4 shape:

    {"id", "commence_time", "home_team", "away_team",
     "bookmakers": [{"key", "last_update",
                     "markets": [{"key": "totals" | "alternate_totals",
                                  "last_update",
                                  "outcomes": [{"name": "Over", "price", "point"}, ...]}]}]}
"""
from __future__ import annotations

import math
import statistics
from typing import Any, Iterable, Optional

from mto.ingestion.standardize import teams_match
from mto.models import AltLine, Game, MarketFeatures, MarketSource

TOTALS_MARKETS = frozenset({"totals", "alternate_totals"})
MAX_ALT_LINES = 30


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    return value if math.isfinite(value) else None


def _outcome(outcomes: list[Any], prefix: str) -> Optional[dict[str, Any]]:
    for outcome in outcomes:
        if isinstance(outcome, dict) and str(outcome.get("name") or "").lower().startswith(prefix):
            return outcome
    return None


def _median(values: list[float]) -> float:
    # Even length -> mean of the two middle values
    return float(statistics.median(values))


def dedupe_alt_lines(items: Iterable[AltLine], limit: int = MAX_ALT_LINES) -> tuple[AltLine, ...]:
    """First occurrence per line (rounded to 2dp) wins, ascending, capped."""
    seen: dict[float, AltLine] = {}
    for item in items:
        key = round(item.line, 2)
        if key not in seen:
            seen[key] = item
    return tuple(sorted(seen.values(), key=lambda a: a.line)[:limit])


def summarize_totals(events: Iterable[dict[str, Any]], source: MarketSource = "live") -> MarketFeatures:
    """
    Reduce totals quotes to mean / median / sample std / distinct book count.

    Args:
        events: Odds events (usually one game's event)
        source: Provenance tag for a non-empty result ("live" or "cached")

    Returns:
        MarketFeatures; MarketFeatures.none() when no line was found
    """
    lines: list[float] = []
    books: set[str] = set()
    alt: list[AltLine] = []
    last_updated: Optional[str] = None

    for event in events or ():
        if not isinstance(event, dict):
            continue
        for book in event.get("bookmakers") or ():
            if not isinstance(book, dict):
                continue
            for market in book.get("markets") or ():
                if not isinstance(market, dict) or market.get("key") not in TOTALS_MARKETS:
                    continue
                outcomes = market.get("outcomes") or []
                over = _outcome(outcomes, "over")
                under = _outcome(outcomes, "under")
                line = _number(over.get("point")) if over else None
                if line is None and under:
                    line = _number(under.get("point"))
                if line is None:
                    continue

                lines.append(line)
                books.add(str(book.get("key") or book.get("title") or ""))
                alt.append(AltLine(
                    line=line,
                    over_price=_number(over.get("price")) if over else None,
                    under_price=_number(under.get("price")) if under else None,
                ))
                stamp = market.get("last_update") or book.get("last_update")
                if isinstance(stamp, str) and (last_updated is None or stamp > last_updated):
                    last_updated = stamp

    if not lines:
        return MarketFeatures.none()

    return MarketFeatures(
        mean_total=sum(lines) / len(lines),
        median_total=_median(lines),
        std_total=statistics.stdev(lines) if len(lines) >= 2 else None,
        quote_count=len(books),
        alt_lines=dedupe_alt_lines(alt),
        last_updated=last_updated,
        source=source,
    )


def find_event(events: Iterable[dict[str, Any]], home: str, away: str) -> Optional[dict[str, Any]]:
    """The odds event naming the same two teams, in either order."""
    for event in events or ():
        if isinstance(event, dict) and teams_match(home, away, event.get("home_team"), event.get("away_team")):
            return event
    return None


def market_features_for_game(
    events: Iterable[dict[str, Any]],
    game: Game,
    source: MarketSource = "live",
) -> MarketFeatures:
    """
    Market features for one fused game.

    Summarizes the matching odds event; without one, falls back to the
    consensus total the game already carries from fusion.
    """
    event = find_event(events, game.home_team, game.away_team)
    if event is not None:
        features = summarize_totals([event], source=source)
        if features.available:
            return features

    if game.sportsbook_line is None:
        return MarketFeatures.none()
    return MarketFeatures(
        mean_total=game.sportsbook_line,
        median_total=game.sportsbook_line,
        std_total=game.total_dispersion,
        quote_count=game.quote_count,
        source=source,
    )
