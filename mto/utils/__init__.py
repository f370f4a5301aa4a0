"""
Utility modules for the MTO predictor.

Common utilities: logging, caching, circuit breaking, retries, date windows.
"""

from mto.utils.logging import get_logger

__all__ = [
    "get_logger",
]
