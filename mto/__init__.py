"""
MTO floor predictor.

Fuses a schedule/score feed (ESPN) with a sportsbook odds feed (The Odds API)
into one normalized game list, and produces a conservative "floor" estimate of
each game's combined score with a confidence score and a stay-away signal.
"""

__version__ = "1.0.0"
