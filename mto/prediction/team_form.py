"""Team form derived from a team's most recent completed games."""
from __future__ import annotations

from typing import Optional, Sequence

import numpy as np

from mto.models import TeamStats
from mto.prediction.parameters import LeagueAverages


def build_team_stats(
    team_id: Optional[str],
    team_name: str,
    results: Sequence[tuple[float, float]],
    league: LeagueAverages,
    window: int = 10,
) -> TeamStats:
    """
    Rolling averages over the last `window` results.

    Args:
        team_id: Upstream team id (may be None)
        team_name: Display name
        results: (points_scored, points_allowed) pairs, oldest first
        league: League averages used when there is no history
        window: Number of most recent games to keep

    Returns:
        TeamStats; league defaults with has_history=False when results is empty
    """
    if window < 1:
        raise ValueError("window must be at least 1")

    recent = np.asarray(list(results)[-window:], dtype=float).reshape(-1, 2)
    if recent.size == 0:
        half = league.avg_total / 2.0
        return TeamStats(
            team_id=team_id,
            team_name=team_name,
            avg_points_scored=half,
            avg_points_allowed=half,
            recent_form=(),
            games_played=0,
            has_history=False,
        )

    # games_played counts every completed result, not just the window
    scored, allowed = recent[:, 0], recent[:, 1]
    return TeamStats(
        team_id=team_id,
        team_name=team_name,
        avg_points_scored=float(scored.mean()),
        avg_points_allowed=float(allowed.mean()),
        recent_form=tuple(float(s) for s in scored),
        games_played=len(results),
    )
