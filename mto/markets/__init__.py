"""Bookmaker market summaries and the bounded market blend."""
