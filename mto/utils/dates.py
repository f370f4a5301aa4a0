"""Local calendar date -> UTC instant window."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


@dataclass(frozen=True)
class DateWindow:
    """Half-open UTC range [start_utc, end_utc)."""

    start_utc: datetime
    end_utc: datetime

    def __post_init__(self) -> None:
        if self.start_utc.tzinfo is None or self.end_utc.tzinfo is None:
            raise ValueError("DateWindow bounds must be timezone-aware")
        if self.end_utc <= self.start_utc:
            raise ValueError("DateWindow end must be after start")

    def contains(self, moment: datetime) -> bool:
        if moment.tzinfo is None:
            return False
        return self.start_utc <= moment < self.end_utc

    def utc_dates(self) -> list[date]:
        """Every UTC calendar date touched by the window, ascending."""
        first = self.start_utc.astimezone(timezone.utc).date()
        last = (self.end_utc - timedelta(microseconds=1)).astimezone(timezone.utc).date()
        days = (last - first).days
        return [first + timedelta(days=i) for i in range(days + 1)]

    def key(self) -> str:
        """Stable string used in cache keys."""
        return f"{self.start_utc.isoformat()}/{self.end_utc.isoformat()}"


def parse_iso_date(iso_date: str) -> date:
    try:
        return date.fromisoformat(iso_date)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid date {iso_date!r}, expected YYYY-MM-DD")


def resolve_zone(tz_name: Optional[str] = None) -> ZoneInfo:
    if tz_name is None:
        from mto.config import settings

        tz_name = settings.default_timezone
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown time zone {tz_name!r}")


def local_day_window(iso_date: str, tz_name: Optional[str] = None) -> DateWindow:
    """
    UTC window covering one local calendar day.

    Args:
        iso_date: Local date as YYYY-MM-DD
        tz_name: IANA zone name; settings.default_timezone when omitted

    Returns:
        DateWindow from local midnight to the next local midnight
    """
    day = parse_iso_date(iso_date)
    zone = resolve_zone(tz_name)
    start_local = datetime.combine(day, time.min, tzinfo=zone)
    end_local = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone)
    return DateWindow(
        start_utc=start_local.astimezone(timezone.utc),
        end_utc=end_local.astimezone(timezone.utc),
    )


def today_iso(tz_name: Optional[str] = None) -> str:
    return datetime.now(resolve_zone(tz_name)).date().isoformat()
