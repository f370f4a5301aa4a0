"""
Upstream feed ingestion.

- espn: schedule/score feed (identity, status, team schedules)
- the_odds: sportsbook odds feed (totals markets)
- standardize: team-name normalization shared by every source
"""
