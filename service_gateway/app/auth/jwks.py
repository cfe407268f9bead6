"""
JSON Web Key Set (JWKS) resolution for the Access Gateway.

The resolver owns the process-wide key set. Each fetch builds a brand new
immutable ``SigningKeySet`` and swaps it in by reference, so concurrent
verifications always read a complete snapshot.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional

import httpx

from shared.errors import KeyFetchError, UnknownKeyError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

logger = get_logger("gateway.auth.jwks")


@dataclass(frozen=True)
class SigningKey:
    """A single public signing key published by the identity provider."""

    kid: str
    key_type: str
    algorithm: Optional[str]
    jwk: Mapping[str, Any]


class SigningKeySet:
    """Immutable mapping of key id to signing key."""

    def __init__(self, keys: Mapping[str, SigningKey]):
        self._keys = MappingProxyType(dict(keys))

    @classmethod
    def from_jwks(cls, document: Any) -> "SigningKeySet":
        """Build a key set from a JWKS document.

        Raises:
            KeyFetchError: if the document is not a key set or holds no
                usable keys.
        """
        if not isinstance(document, dict):
            raise KeyFetchError("JWKS response is not a JSON object")
        entries = document.get("keys")
        if not isinstance(entries, list):
            raise KeyFetchError("JWKS response missing 'keys' array")

        keys: Dict[str, SigningKey] = {}
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            kid = entry.get("kid")
            key_type = entry.get("kty")
            if not isinstance(kid, str) or not kid or not isinstance(key_type, str):
                logger.warning("Skipping JWK without kid or kty", kid=kid)
                continue
            if entry.get("use") not in (None, "sig"):
                continue
            if kid in keys:
                logger.warning("Duplicate key id in JWKS, keeping first", kid=kid)
                continue
            algorithm = entry.get("alg")
            keys[kid] = SigningKey(
                kid=kid,
                key_type=key_type,
                algorithm=algorithm if isinstance(algorithm, str) else None,
                jwk=MappingProxyType(dict(entry)),
            )

        if not keys:
            raise KeyFetchError("JWKS response contained no usable signing keys")
        return cls(keys)

    def get(self, kid: str) -> Optional[SigningKey]:
        return self._keys.get(kid)

    def __contains__(self, kid: object) -> bool:
        return kid in self._keys

    def __iter__(self) -> Iterator[str]:
        return iter(self._keys)

    def __len__(self) -> int:
        return len(self._keys)

    def kids(self) -> frozenset:
        return frozenset(self._keys)


class KeyResolver:
    """Fetches, caches and rotates the identity provider's signing keys."""

    def __init__(
        self,
        jwks_url: str,
        *,
        refresh_interval: Optional[float] = 300,
        http_timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.jwks_url = jwks_url
        self.refresh_interval = refresh_interval or None
        self.metrics = metrics

        self._key_set: Optional[SigningKeySet] = None
        self._generation = 0  # bumped on every fetch attempt, successful or not
        self._last_refresh: float = 0.0
        self._lock = asyncio.Lock()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=http_timeout)

    @property
    def key_set(self) -> Optional[SigningKeySet]:
        """The current snapshot, or None before the first successful fetch."""
        return self._key_set

    async def start(self) -> SigningKeySet:
        """Perform the initial fetch. Failure here must stop the process."""
        key_set = await self.refresh()
        logger.info("Loaded JWKS", jwks_url=self.jwks_url, kids=sorted(key_set.kids()))
        return key_set

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._owns_client:
            await self._client.aclose()

    async def get_key(self, kid: str) -> SigningKey:
        """Return the key for ``kid``, refreshing once on a miss.

        Raises:
            UnknownKeyError: the key is absent even after one refresh.
            KeyFetchError: the miss-triggered refresh failed.
        """
        generation = self._generation
        await self._refresh_if_stale()

        key_set = self._key_set
        key = key_set.get(kid) if key_set is not None else None
        if key is not None:
            return key

        logger.info("Signing key not cached, refreshing JWKS", kid=kid)
        await self._refresh_after_miss(generation)

        key_set = self._key_set
        key = key_set.get(kid) if key_set is not None else None
        if key is None:
            logger.warning("Signing key not found after refresh", kid=kid)
            raise UnknownKeyError(kid)
        return key

    async def refresh(self) -> SigningKeySet:
        """Fetch the key set and replace the cached snapshot."""
        async with self._lock:
            return await self._fetch_and_swap()

    async def _refresh_after_miss(self, seen_generation: int) -> None:
        async with self._lock:
            if self._generation != seen_generation:
                # A fetch was attempted since the caller looked at the cache.
                return
            await self._fetch_and_swap()

    async def _refresh_if_stale(self) -> None:
        if self.refresh_interval is None or self._key_set is None:
            return
        if time.monotonic() - self._last_refresh < self.refresh_interval:
            return

        generation = self._generation
        async with self._lock:
            if self._generation != generation:
                return
            try:
                await self._fetch_and_swap()
            except KeyFetchError as exc:
                # Next scheduled attempt waits a full interval.
                self._last_refresh = time.monotonic()
                logger.warning("Scheduled JWKS refresh failed, serving cached keys", error=exc.message)

    async def _fetch_and_swap(self) -> SigningKeySet:
        start = time.monotonic()
        try:
            document = await self._fetch_document()
            key_set = SigningKeySet.from_jwks(document)
        except KeyFetchError as exc:
            self._generation += 1
            self._record_refresh("error", start)
            logger.error("Failed to fetch JWKS", jwks_url=self.jwks_url, error=exc.message)
            raise

        self._key_set = key_set
        self._generation += 1
        self._last_refresh = time.monotonic()
        self._record_refresh("success", start, len(key_set))
        logger.info("JWKS refreshed successfully", keys_count=len(key_set))
        return key_set

    async def _fetch_document(self) -> Any:
        try:
            response = await self._client.get(self.jwks_url)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            raise KeyFetchError(
                f"JWKS endpoint returned {exc.response.status_code}",
                details={"status_code": exc.response.status_code},
            ) from exc
        except httpx.HTTPError as exc:
            raise KeyFetchError(f"JWKS request failed: {exc}") from exc
        except ValueError as exc:
            raise KeyFetchError("JWKS response is not valid JSON") from exc

    def _record_refresh(self, status: str, start: float, keys_loaded: Optional[int] = None) -> None:
        if self.metrics is None:
            return
        self.metrics.record_jwks_refresh(status, time.monotonic() - start, keys_loaded)
