"""Feed failure taxonomy.

Every exception carries a short `tag` that ends up in FeedResult.error and
the health snapshot. Adapters never let these escape to callers.
"""
from __future__ import annotations


class FeedError(Exception):
    """Base class for upstream feed failures."""

    tag = "feed_error"

    def __init__(self, message: str = "", tag: str | None = None):
        super().__init__(message or self.tag)
        if tag is not None:
            self.tag = tag


class TransientFeedError(FeedError):
    """Timeouts, connection errors, 429 and 5xx - worth one more attempt."""

    tag = "network"


class MalformedPayloadError(FeedError):
    """HTML error page, non-JSON body or an unexpected JSON shape."""

    tag = "bad_shape"


class FeedRejectedError(FeedError):
    """Upstream refused the request (4xx, invalid key, API error message)."""

    tag = "http_4xx"


def tag_for_status(status_code: int) -> str:
    if status_code == 429:
        return "http_429"
    if status_code >= 500:
        return "http_5xx"
    return "http_4xx"


def error_for_status(status_code: int, url: str) -> FeedError:
    """Map a non-2xx status to the matching feed error."""
    tag = tag_for_status(status_code)
    message = f"HTTP {status_code} from {url}"
    # 408 behaves like a timeout even though it is a 4xx
    if status_code in (408, 429) or status_code >= 500:
        return TransientFeedError(message, tag=tag)
    return FeedRejectedError(message, tag=tag)
