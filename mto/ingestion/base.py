"""
Shared machinery for upstream feed adapters.

One request = one attempt under `asyncio.wait_for`, validated as JSON (an
HTML error page with HTTP 200 is a failure), retried by the RetryPolicy only
for transient faults, wrapped in the (source, sport) circuit breaker and
cached by key. Public adapter methods turn every FeedError and
CircuitOpenError into a FeedResult(ok=False); CancelledError and
programming errors propagate.
"""
from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Callable, Hashable, Optional

import httpx

from mto.config import Settings, settings as default_settings
from mto.ingestion.errors import (
    FeedError,
    MalformedPayloadError,
    TransientFeedError,
    error_for_status,
)
from mto.ingestion.models import FeedHealthRegistry, FeedResult, RawGame
from mto.sports import Sport
from mto.utils.api_cache import TTLCache
from mto.utils.circuit_breaker import (
    BreakerConfig,
    BreakerRegistry,
    CircuitOpenError,
)
from mto.utils.dates import DateWindow
from mto.utils.logging import get_logger
from mto.utils.retry import RetryPolicy

logger = get_logger(__name__)

_HTML_MARKERS = ("<!doctype", "<html")


def looks_like_html(body: str) -> bool:
    head = body.lstrip()[:64].lower()
    return head.startswith(_HTML_MARKERS)


def failure_tag(error: BaseException) -> str:
    if isinstance(error, CircuitOpenError):
        return "circuit_open"
    if isinstance(error, FeedError):
        return error.tag
    return "network"


class FeedAdapter(ABC):
    """Base class for one upstream source."""

    source: str = "feed"

    def __init__(
        self,
        base_url: str,
        timeout: float,
        retry_policy: Optional[RetryPolicy] = None,
        client: Optional[httpx.AsyncClient] = None,
        cache: Optional[TTLCache] = None,
        health: Optional[FeedHealthRegistry] = None,
        breakers: Optional[BreakerRegistry] = None,
        settings: Optional[Settings] = None,
    ):
        if timeout <= 0:
            raise ValueError(f"{self.source} timeout must be positive, got {timeout}")
        self.settings = settings or default_settings
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_policy = retry_policy if retry_policy is not None else RetryPolicy(
            attempts=self.settings.retry_attempts,
            backoff_seconds=self.settings.retry_backoff_seconds,
            retry_on=(TransientFeedError,),
        )
        # an empty TTLCache is falsy
        self.cache = cache if cache is not None else TTLCache(self.settings.feed_cache_ttl_seconds, name="feeds")
        self.health = health if health is not None else FeedHealthRegistry()
        self.breakers = breakers if breakers is not None else BreakerRegistry(BreakerConfig(counted=FeedError))
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers={"Accept": "application/json"},
                follow_redirects=True,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def supports(self, sport: Sport) -> bool:
        """Whether the upstream has a path/key for this sport."""

    def disabled_reason(self) -> Optional[str]:
        """Non-None when the adapter is switched off by configuration."""
        return None

    @abstractmethod
    def games_request(self, sport: Sport, window: DateWindow) -> tuple[str, dict[str, Any]]:
        """URL and query parameters for the games listing."""

    @abstractmethod
    def parse_games(self, payload: Any, sport: Sport) -> list[RawGame]:
        """Convert a validated payload into RawGames, dropping invalid records."""

    def validate_payload(self, payload: Any) -> None:
        """Raise a FeedError if the decoded JSON is an upstream error document."""

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _get_json_once(self, url: str, params: Optional[dict[str, Any]] = None) -> Any:
        """Single attempt: request, validate content, decode JSON."""
        logger.debug(f"Fetching {self.source} endpoint: {url}")
        try:
            resp = await asyncio.wait_for(
                self.client.get(url, params=params or {}),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            raise TransientFeedError(f"{self.source} timed out after {self.timeout}s", tag="timeout")
        except httpx.TimeoutException as e:
            raise TransientFeedError(f"{self.source} timed out: {e}", tag="timeout")
        except httpx.RequestError as e:
            raise TransientFeedError(f"{self.source} request failed: {e}", tag="network")

        body = resp.text
        if looks_like_html(body):
            raise MalformedPayloadError(
                f"{self.source} returned an HTML page (HTTP {resp.status_code})", tag="html"
            )
        if resp.status_code >= 400:
            raise error_for_status(resp.status_code, url)

        content_type = resp.headers.get("content-type", "").lower()
        if "json" not in content_type:
            raise MalformedPayloadError(
                f"{self.source} returned non-JSON content-type {content_type!r}", tag="non_json"
            )
        try:
            return resp.json()
        except ValueError:
            raise MalformedPayloadError(f"{self.source} returned an undecodable body", tag="non_json")

    async def _load(
        self,
        sport: Sport,
        cache_key: Hashable,
        url: str,
        params: Optional[dict[str, Any]] = None,
        breaker_source: Optional[str] = None,
    ) -> tuple[Any, bool]:
        """
        Fetch a validated payload through cache, breaker and retry policy.

        `breaker_source` names the breaker to go through (default: self.source).

        Returns:
            (payload, from_cache)

        Raises:
            FeedError: upstream failure after retries
            CircuitOpenError: source is short-circuited
        """
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached, True

        async def _attempts() -> Any:
            payload = await self.retry_policy.run(self._get_json_once, url, params)
            self.validate_payload(payload)
            return payload

        breaker = self.breakers.get(breaker_source or self.source, sport.value)
        payload = await breaker.call_async(_attempts)
        self.cache.set(cache_key, payload, source=self.source)
        return payload, False

    def _record(self, sport: Sport, ok: bool, error: Optional[str], count: int) -> None:
        self.health.record(self.source, sport.value, ok, error, count)
        if not ok:
            logger.warning(f"{self.source} feed failed for {sport.value}: {error}")

    # ------------------------------------------------------------------
    # Public contract
    # ------------------------------------------------------------------

    async def fetch_raw_games(self, sport: Sport | str, window: DateWindow) -> FeedResult:
        """
        Games for one sport inside [window.start_utc, window.end_utc).

        Never raises for upstream faults: failures come back as
        FeedResult(ok=False, error=<tag>) with no games.
        """
        sport = Sport.parse(sport)
        if not self.supports(sport):
            return FeedResult.empty(self.source, sport.value)
        reason = self.disabled_reason()
        if reason is not None:
            return FeedResult.empty(self.source, sport.value, hint=reason)

        url, params = self.games_request(sport, window)
        try:
            payload, from_cache = await self._load(sport, self._cache_key(sport, window), url, params)
            games = self.parse_games(payload, sport)
        except (FeedError, CircuitOpenError) as e:
            tag = failure_tag(e)
            self._record(sport, False, tag, 0)
            return FeedResult.failure(self.source, sport.value, tag)

        in_window = tuple(g for g in games if window.contains(g.start_time_utc))
        self._record(sport, True, None, len(in_window))
        logger.info(
            f"{self.source} {sport.value}: {len(in_window)} games in window"
            f" ({len(games) - len(in_window)} outside){' [cached]' if from_cache else ''}"
        )
        return FeedResult(
            source=self.source,
            sport=sport.value,
            ok=True,
            games=in_window,
            from_cache=from_cache,
        )

    def _cache_key(self, sport: Sport, window: DateWindow) -> tuple[str, str, str]:
        return (self.source, sport.value, window.key())

    @staticmethod
    def build_records(
        items: list[Any],
        build: Callable[[Any], Optional[dict[str, Any]]],
        source: str,
    ) -> list[RawGame]:
        """Validate candidate records, dropping the ones without identity."""
        games: list[RawGame] = []
        dropped = 0
        for item in items:
            fields = build(item) if isinstance(item, dict) else None
            if fields is None:
                dropped += 1
                continue
            try:
                games.append(RawGame.model_validate(fields))
            except ValueError as e:
                dropped += 1
                logger.debug(f"Dropping {source} record {fields.get('id')}: {e}")
        if dropped:
            logger.debug(f"Dropped {dropped} invalid {source} records")
        return games
