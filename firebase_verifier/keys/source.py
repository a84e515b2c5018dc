"""
Public key sources for Firebase ID token verification.

Firebase publishes its token signing certificates as a flat JSON object
mapping key id to PEM. ``HttpKeySource`` fetches that document on every call;
``CachingKeySource`` can be layered on top to keep it in memory.
"""

import asyncio
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import httpx

from ..config import GOOGLE_SECURETOKEN_KEYS_URL
from ..errors import KeyRetrievalError
from ..logging import get_logger
from ..metrics import VerifierMetrics, get_verifier_metrics
from ..retry import RetryConfig, RetryError, retry_on_exception

_MAX_AGE_RE = re.compile(r"max-age=(\d+)")


@dataclass(frozen=True)
class FetchedKeys:
    """A retrieved key set plus the freshness lifetime the endpoint advertised."""

    keys: Dict[str, str]
    max_age: Optional[int] = None


class KeySource(ABC):
    """Capability that yields the current ``kid -> PEM`` mapping."""

    @abstractmethod
    async def fetch_key_set(self) -> FetchedKeys:
        """Retrieve the key set; raises ``KeyRetrievalError`` on failure."""

    async def fetch_keys(self) -> Dict[str, str]:
        fetched = await self.fetch_key_set()
        return fetched.keys

    def invalidate(self) -> bool:
        """Drop retained keys so the next fetch goes to the endpoint.

        Returns whether anything was dropped; uncached sources return False.
        """
        return False


class _TransientFetchError(Exception):
    """Fetch failure worth retrying (transport error or 5xx)."""


def parse_key_set(body: Any) -> Dict[str, str]:
    """Validate a decoded key document and return it as ``kid -> PEM``."""
    if not isinstance(body, dict):
        raise KeyRetrievalError(
            "Key endpoint did not return a JSON object",
            details={"body_type": type(body).__name__}
        )

    for kid, pem in body.items():
        if not isinstance(pem, str):
            raise KeyRetrievalError(
                "Key endpoint returned a non-string key",
                details={"kid": kid, "value_type": type(pem).__name__}
            )

    return dict(body)


def parse_max_age(cache_control: Optional[str]) -> Optional[int]:
    if not cache_control:
        return None
    match = _MAX_AGE_RE.search(cache_control)
    return int(match.group(1)) if match else None


class HttpKeySource(KeySource):
    """Fetches the key set over HTTPS on every call, with a timeout and bounded retries."""

    def __init__(
        self,
        keys_url: str = GOOGLE_SECURETOKEN_KEYS_URL,
        *,
        timeout: float = 10.0,
        attempts: int = 1,
        retry_base_delay: float = 0.2,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        metrics: Optional[VerifierMetrics] = None,
    ) -> None:
        self.keys_url = keys_url
        self.timeout = timeout
        self.retry_config = RetryConfig(
            max_attempts=attempts,
            base_delay=retry_base_delay,
            max_delay=5.0,
        )
        self.transport = transport
        self.metrics = metrics or get_verifier_metrics()
        self.logger = get_logger("firebase.keys")

    async def fetch_key_set(self) -> FetchedKeys:
        fetch = retry_on_exception(
            (_TransientFetchError,), self.retry_config, url=self.keys_url
        )(self._fetch_once)

        with self.metrics.time_key_fetch():
            try:
                fetched = await fetch()
            except RetryError as e:
                self.metrics.record_fetch_failure()
                self.logger.error(
                    "Failed to fetch public keys",
                    url=self.keys_url,
                    attempts=e.attempts,
                    error=str(e.last_exception)
                )
                raise KeyRetrievalError(
                    f"Failed to fetch public keys: {e.last_exception}",
                    details={"url": self.keys_url, "attempts": e.attempts}
                ) from e.last_exception
            except KeyRetrievalError as e:
                self.metrics.record_fetch_failure()
                self.logger.error("Failed to fetch public keys", url=self.keys_url, error=e.message)
                raise

        self.logger.debug("Public keys fetched", keys_count=len(fetched.keys), max_age=fetched.max_age)
        return fetched

    async def _fetch_once(self) -> FetchedKeys:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(self.keys_url)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            if status_code >= 500:
                raise _TransientFetchError(f"Key endpoint returned HTTP {status_code}") from e
            raise KeyRetrievalError(
                f"Key endpoint returned HTTP {status_code}",
                details={"url": self.keys_url, "status_code": status_code}
            ) from e
        except httpx.TransportError as e:
            raise _TransientFetchError(f"{type(e).__name__}: {e}") from e
        except httpx.HTTPError as e:
            raise KeyRetrievalError(
                f"Key request failed: {e}",
                details={"url": self.keys_url, "error_type": type(e).__name__}
            ) from e

        try:
            body = response.json()
        except ValueError as e:
            raise KeyRetrievalError(
                "Key endpoint returned malformed JSON",
                details={"url": self.keys_url}
            ) from e

        return FetchedKeys(
            keys=parse_key_set(body),
            max_age=parse_max_age(response.headers.get("Cache-Control")),
        )


class CachingKeySource(KeySource):
    """In-memory cache over another source.

    Entries live for the endpoint's ``Cache-Control: max-age`` when the inner
    source reports one, otherwise for ``ttl`` seconds. Early refreshes via
    ``invalidate`` are refused until ``min_refresh_interval`` seconds have
    passed since the last fetch, so unknown key ids cannot defeat the cache.
    """

    def __init__(
        self,
        inner: KeySource,
        ttl: float = 3600,
        *,
        min_refresh_interval: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.inner = inner
        self.ttl = ttl
        self.min_refresh_interval = min_refresh_interval
        self._clock = clock
        self._cached: Optional[FetchedKeys] = None
        self._expires_at: float = 0.0
        self._fetched_at: Optional[float] = None
        self._lock = asyncio.Lock()
        self.logger = get_logger("firebase.keys.cache")

    def _fresh(self) -> Optional[FetchedKeys]:
        if self._cached is not None and self._clock() < self._expires_at:
            return self._cached
        return None

    async def fetch_key_set(self) -> FetchedKeys:
        cached = self._fresh()
        if cached is not None:
            return cached

        async with self._lock:
            cached = self._fresh()
            if cached is not None:
                return cached

            fetched = await self.inner.fetch_key_set()
            ttl = fetched.max_age if fetched.max_age is not None else self.ttl
            self._cached = fetched
            self._fetched_at = self._clock()
            self._expires_at = self._fetched_at + ttl

            self.logger.info(
                "Public keys refreshed",
                keys_count=len(fetched.keys),
                ttl=ttl
            )
            return fetched

    def invalidate(self) -> bool:
        if self._fetched_at is not None and self._clock() - self._fetched_at < self.min_refresh_interval:
            self.logger.debug("Public key cache refresh throttled", min_refresh_interval=self.min_refresh_interval)
            return False

        self._cached = None
        self._expires_at = 0.0
        self.logger.info("Public key cache cleared")
        return True
