"""
Fusion of RawGame records from several feeds into one Game per real event.

Records are pooled from every input list and clustered on
(order-independent normalized team pair, start-time bucket). Every choice
made inside a cluster depends only on the pooled set, never on input order,
so fusion is commutative, associative and idempotent.

Per cluster:
- identity (id, names, start, status): schedule feed first, then odds feed,
  ties broken by id
- market total: an odds-feed record's total when one exists, else any
  record's; its quote count and dispersion travel with it
- ids, logos, venue, status: backfilled from the other records, flipping
  home/away when a source reports the teams the other way round
"""
from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Optional, Union

from mto.ingestion.models import ODDS_SOURCE, SCHEDULE_SOURCE, FeedResult, RawGame
from mto.ingestion.standardize import AliasTable, canonical_game_key, normalize_team_name
from mto.models import Game
from mto.sports import Sport
from mto.utils.logging import get_logger

logger = get_logger(__name__)

SOURCE_PRIORITY = {SCHEDULE_SOURCE: 0, ODDS_SOURCE: 1}

FuseKey = tuple[tuple[str, str], int]
FeedInput = Union[FeedResult, Iterable[RawGame]]


def fuse_key(raw: RawGame, bucket_seconds: int, table: Optional[AliasTable] = None) -> FuseKey:
    bucket = int(raw.start_time_utc.timestamp() // bucket_seconds)
    return canonical_game_key(raw.home_name, raw.away_name, table), bucket


def _order(raw: RawGame) -> tuple:
    # Total order over distinct records so per-cluster picks are deterministic
    return SOURCE_PRIORITY.get(raw.source_tag, 99), raw.id, raw.model_dump_json()


def _records(feed: FeedInput) -> Iterable[RawGame]:
    if isinstance(feed, FeedResult):
        return feed.games
    return feed


def _oriented(raw: RawGame, home_key: str, table: Optional[AliasTable]) -> dict[str, Optional[str]]:
    """Side-specific fields of raw, expressed relative to the identity's home team."""
    same_side = normalize_team_name(raw.home_name, table) == home_key
    home = {"id": raw.home_id, "logo": raw.home_logo}
    away = {"id": raw.away_id, "logo": raw.away_logo}
    if not same_side:
        home, away = away, home
    return {
        "home_team_id": home["id"],
        "away_team_id": away["id"],
        "home_logo": home["logo"],
        "away_logo": away["logo"],
    }


def _merge_cluster(sport: Sport, records: list[RawGame], table: Optional[AliasTable]) -> Game:
    records = sorted(records, key=_order)
    identity = records[0]
    home_key = normalize_team_name(identity.home_name, table)

    with_total = [r for r in records if r.has_total]
    odds_totals = [r for r in with_total if r.source_tag == ODDS_SOURCE]
    market = (odds_totals or with_total or [None])[0]

    side_fields: dict[str, Optional[str]] = {
        "home_team_id": None, "away_team_id": None, "home_logo": None, "away_logo": None,
    }
    for record in records:
        for name, value in _oriented(record, home_key, table).items():
            if side_fields[name] is None and value is not None:
                side_fields[name] = value

    venue = next((r.venue for r in records if r.venue), None)
    status = next((r.status for r in records if r.status), None)

    sources = {r.source_tag for r in records}
    data_source = "merged" if {SCHEDULE_SOURCE, ODDS_SOURCE} <= sources else identity.source_tag

    return Game(
        id=f"{sport.value}-{identity.id}",
        sport=sport,
        home_team=identity.home_name,
        away_team=identity.away_name,
        start_time_utc=identity.start_time_utc,
        venue=venue or "TBD",
        status=status or "scheduled",
        sportsbook_line=market.consensus_total if market else None,
        quote_count=market.quote_count if market else None,
        total_dispersion=market.total_dispersion if market else None,
        data_source=data_source,
        **side_fields,
    )


def fuse_games(
    sport: Sport | str,
    *feeds: FeedInput,
    bucket_minutes: int = 30,
    table: Optional[AliasTable] = None,
) -> list[Game]:
    """
    Merge records from any number of feeds into one Game per event.

    Args:
        sport: Sport the records belong to
        *feeds: FeedResults or iterables of RawGame, in any order
        bucket_minutes: Start-time bucket width
        table: Alias table for team normalization

    Returns:
        Games sorted by (start_time_utc, id)
    """
    if bucket_minutes <= 0:
        raise ValueError("bucket_minutes must be positive")
    sport = Sport.parse(sport)
    bucket_seconds = bucket_minutes * 60

    pool: set[RawGame] = set()
    for feed in feeds:
        pool.update(_records(feed))

    clusters: dict[FuseKey, list[RawGame]] = defaultdict(list)
    for raw in pool:
        clusters[fuse_key(raw, bucket_seconds, table)].append(raw)

    games = [_merge_cluster(sport, records, table) for records in clusters.values()]
    games.sort(key=lambda g: (g.start_time_utc, g.id))

    merged = sum(1 for g in games if g.data_source == "merged")
    logger.info(f"Fused {len(pool)} records into {len(games)} {sport.value} games ({merged} merged)")
    return games
