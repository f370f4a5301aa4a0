"""
Print the MTO floor slate for one sport and local date.

Usage:
    mto-slate --sport NBA
    mto-slate --sport NCAA_FB --date 2025-11-01 --tz America/Chicago --json
"""
import argparse
import asyncio
import json
import sys
from typing import List, Optional

from dotenv import load_dotenv

from mto.models import MTOPrediction
from mto.sports import Sport
from mto.utils.dates import today_iso
from mto.utils.logging import get_logger

logger = get_logger(__name__)


def format_table(predictions: List[MTOPrediction]) -> str:
    if not predictions:
        return "No open games."
    lines = [
        f"{'Matchup':<48} {'Line':>7} {'Exp':>7} {'Floor':>7} {'Conf':>5}  Flag",
        "-" * 84,
    ]
    for p in predictions:
        matchup = f"{p.away_team} @ {p.home_team}"[:48]
        line = f"{p.sportsbook_line:.1f}" if p.sportsbook_line is not None else "-"
        flag = "STAY AWAY" if p.stays_away else ""
        lines.append(
            f"{matchup:<48} {line:>7} {p.expected_total:>7.1f} {p.mto_floor:>7.1f} "
            f"{p.confidence:>5.2f}  {flag}"
        )
    return "\n".join(lines)


async def run(sport: Sport, iso_date: str, tz_name: Optional[str]) -> List[MTOPrediction]:
    from mto.pipeline.orchestrator import SlateService

    service = SlateService.from_settings()
    try:
        return await service.predict_slate(sport, iso_date, tz_name)
    finally:
        await service.aclose()


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()

    parser = argparse.ArgumentParser(description="MTO floor predictions for a slate")
    parser.add_argument("--sport", required=True, help=f"One of: {', '.join(s.value for s in Sport)}")
    parser.add_argument("--date", default=None, help="Local date YYYY-MM-DD (default: today)")
    parser.add_argument("--tz", default=None, help="IANA time zone (default: DEFAULT_TIMEZONE)")
    parser.add_argument("--json", action="store_true", help="Print JSON instead of a table")
    args = parser.parse_args(argv)

    try:
        sport = Sport.parse(args.sport)
        iso_date = args.date or today_iso(args.tz)
        predictions = asyncio.run(run(sport, iso_date, args.tz))
    except ValueError as e:
        parser.error(str(e))

    if args.json:
        print(json.dumps([p.to_dict() for p in predictions], indent=2))
    else:
        print(f"{sport.value} slate for {iso_date}")
        print(format_table(predictions))
    return 0


if __name__ == "__main__":
    sys.exit(main())
