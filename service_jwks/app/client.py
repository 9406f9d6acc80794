"""
JWK Set client that resolves keys across a local store and remote JWK Sets.

Lookups consult the local ("given") store and every remote store in a
fixed order, treat a missing key as "try the next source", and abort on
any other failure. When no source knows a key ID, the client may force
one rate-limited refresh of the remote sets and look again, because
remote sets rotate keys on their own schedule.
"""

from __future__ import annotations

import asyncio
import dataclasses
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import httpx

from shared.errors import (
    ClientConstructionError,
    KeyNotFoundError,
    RateLimitWaitError,
    StorageError,
)
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from .jwk.models import JWK, JWKMarshalOptions, JWKSMarshal, JWKValidateOptions
from .ratelimit.token_bucket import TokenBucketRateLimiter, every
from .storage.base import Storage
from .storage.http import HTTPClientStorageOptions, HTTPStorage
from .storage.memory import MemoryStorage

logger = get_logger("jwks.client")

DEFAULT_REFRESH_INTERVAL = 3600.0
DEFAULT_REFRESH_UNKNOWN_KID_INTERVAL = 300.0
DEFAULT_RATE_LIMIT_WAIT_MAX = 60.0


@dataclass
class HTTPClientOptions:
    """Options for creating an ``HTTPClient``."""

    # Keys known from outside the remote JWK Sets.
    given: Optional[Storage] = None
    # Remote JWK Set URL -> its store; None builds a store from the URL.
    http_urls: Dict[str, Optional[HTTPStorage]] = field(default_factory=dict)
    # Consult remote stores before the given store.
    prioritize_http: bool = False
    # Seconds to wait for refresh permission; 0 waits as long as the caller does.
    rate_limit_wait_max: float = 0.0
    # Refresh remote stores when a key ID is unknown; None disables it.
    refresh_unknown_kid: Optional[TokenBucketRateLimiter] = None
    # Applied to the stores built from bare URLs.
    storage_options: HTTPClientStorageOptions = field(default_factory=HTTPClientStorageOptions)
    # Start and close the supplied stores along with the client.
    owns_http_storage: bool = False
    metrics: Optional[MetricsCollector] = None


def _parse_url(raw: str) -> str:
    """Return the canonical form of an absolute URL."""
    try:
        parsed = httpx.URL(raw)
    except (httpx.InvalidURL, TypeError) as e:
        raise ClientConstructionError(
            f"failed to parse given URL {raw!r}",
            {"url": raw, "error": str(e)}
        ) from e
    if not parsed.scheme or not parsed.host:
        raise ClientConstructionError(
            f"failed to parse given URL {raw!r}: not an absolute URL",
            {"url": raw}
        )
    return str(parsed)


def _canonical_id(raw: str) -> str:
    try:
        return _parse_url(raw)
    except ClientConstructionError:
        return raw


class HTTPClient(Storage):
    """A single logical key store over a given store and remote JWK Sets.

    Remote stores are consulted in the insertion order of
    ``HTTPClientOptions.http_urls``. ``key_read_all`` concatenates every
    source without removing duplicate key IDs; exports go through
    ``combine_storage`` where a later duplicate overwrites an earlier one.
    """

    def __init__(self, options: HTTPClientOptions):
        if options.given is None and not options.http_urls:
            raise ClientConstructionError(
                "failed to create new JWK Set client: no given keys or HTTP URLs"
            )

        # Validate every identifier before building stores that own HTTP clients.
        canonical: Dict[str, Optional[HTTPStorage]] = {}
        for raw, store in options.http_urls.items():
            url = _parse_url(raw) if store is None else _canonical_id(raw)
            if url in canonical:
                raise ClientConstructionError(
                    f"duplicate JWK Set URL {url!r}",
                    {"url": url}
                )
            canonical[url] = store

        http_urls: Dict[str, HTTPStorage] = {}
        owned: List[HTTPStorage] = []
        for url, store in canonical.items():
            if store is None:
                store = HTTPStorage(url, dataclasses.replace(options.storage_options))
                owned.append(store)
            elif options.owns_http_storage:
                owned.append(store)
            http_urls[url] = store

        self.given: Storage = options.given if options.given is not None else MemoryStorage()
        self.http_urls = http_urls
        self.prioritize_http = options.prioritize_http
        self.rate_limit_wait_max = options.rate_limit_wait_max
        self.refresh_unknown_kid = options.refresh_unknown_kid
        self.metrics = options.metrics
        self._owned = owned

    async def __aenter__(self) -> "HTTPClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def start(self) -> None:
        """Start the remote stores this client owns."""
        for store in self._owned:
            await store.start()

    async def close(self) -> None:
        """Close the remote stores this client owns."""
        for store in self._owned:
            await store.close()

    async def _try_read(self, store: Storage, key_id: str, source: str) -> Optional[JWK]:
        try:
            return await store.key_read(key_id)
        except KeyNotFoundError:
            return None
        except Exception as e:
            raise StorageError(
                f"failed to find JWK with ID {key_id!r} in {source} due to error",
                {"kid": key_id, "source": source, "error": str(e)}
            ) from e

    async def _try_delete(self, store: Storage, key_id: str, source: str) -> bool:
        try:
            return await store.key_delete(key_id)
        except KeyNotFoundError:
            return False
        except Exception as e:
            raise StorageError(
                f"failed to delete key with ID {key_id!r} from {source} due to error",
                {"kid": key_id, "source": source, "error": str(e)}
            ) from e

    async def key_delete(self, key_id: str) -> bool:
        if await self._try_delete(self.given, key_id, "given storage"):
            return True
        for url, store in self.http_urls.items():
            if await self._try_delete(store, key_id, f"HTTP storage {url!r}"):
                return True
        return False

    async def key_read(self, key_id: str) -> JWK:
        try:
            jwk = await self._resolve(key_id)
        except KeyNotFoundError:
            self._record_lookup("miss")
            raise
        except Exception:
            self._record_lookup("error")
            raise
        self._record_lookup("hit")
        return jwk

    async def _resolve(self, key_id: str) -> JWK:
        if not self.prioritize_http:
            jwk = await self._try_read(self.given, key_id, "given storage")
            if jwk is not None:
                return jwk

        for url, store in self.http_urls.items():
            jwk = await self._try_read(store, key_id, f"HTTP storage {url!r}")
            if jwk is not None:
                return jwk

        if self.prioritize_http:
            jwk = await self._try_read(self.given, key_id, "given storage")
            if jwk is not None:
                return jwk

        if self.refresh_unknown_kid is not None:
            jwk = await self._refresh_and_read(key_id)
            if jwk is not None:
                return jwk

        raise KeyNotFoundError(key_id)

    async def _refresh_and_read(self, key_id: str) -> Optional[JWK]:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.rate_limit_wait_max if self.rate_limit_wait_max > 0 else None
        await self._wait_for_refresh(key_id)

        logger.info("Refreshing remote JWK Sets for unknown key ID", kid=key_id)
        for url, store in self.http_urls.items():
            try:
                if deadline is None:
                    await store.refresh()
                else:
                    # The wait and the refreshes share one deadline.
                    await asyncio.wait_for(store.refresh(), max(0.0, deadline - loop.time()))
            except Exception as e:
                store.report_refresh_error(e)
                continue
            jwk = await self._try_read(store, key_id, f"HTTP storage {url!r}")
            if jwk is not None:
                return jwk
        return None

    async def _wait_for_refresh(self, key_id: str) -> None:
        limiter = self.refresh_unknown_kid
        timeout = self.rate_limit_wait_max if self.rate_limit_wait_max > 0 else None
        try:
            if timeout is None:
                await limiter.wait()
            else:
                await asyncio.wait_for(limiter.wait(timeout=timeout), timeout)
        except (RateLimitWaitError, asyncio.TimeoutError) as e:
            raise RateLimitWaitError(
                "failed to wait for JWK Set refresh rate limiter due to error",
                {"kid": key_id, "error": str(e) or type(e).__name__}
            ) from e

    async def key_read_all(self) -> List[JWK]:
        """Every key from every source, duplicates included."""
        try:
            jwks = list(await self.given.key_read_all())
        except Exception as e:
            raise StorageError(
                "failed to snapshot given keys due to error",
                {"error": str(e)}
            ) from e

        for url, store in self.http_urls.items():
            try:
                jwks.extend(await store.key_read_all())
            except Exception as e:
                raise StorageError(
                    f"failed to snapshot HTTP keys from {url!r} due to error",
                    {"url": url, "error": str(e)}
                ) from e
        return jwks

    async def key_write(self, jwk: JWK) -> None:
        await self.given.key_write(jwk)

    async def combine_storage(self) -> MemoryStorage:
        """Snapshot every source into one fresh in-memory store."""
        jwks = await self.key_read_all()
        combined = MemoryStorage()
        for jwk in jwks:
            try:
                await combined.key_write(jwk)
            except Exception as e:
                raise StorageError(
                    "failed to write key to memory storage due to error",
                    {"kid": jwk.kid, "error": str(e)}
                ) from e
        return combined

    async def marshal_with_options(
        self,
        marshal_options: JWKMarshalOptions,
        validate_options: JWKValidateOptions,
        *,
        private_only: bool = False,
    ) -> JWKSMarshal:
        combined = await self.combine_storage()
        return await combined.marshal_with_options(
            marshal_options, validate_options, private_only=private_only
        )

    def _record_lookup(self, result: str) -> None:
        if self.metrics is not None:
            self.metrics.record_lookup(result)


def default_http_client_options(
    urls: List[str],
    *,
    given: Optional[Storage] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    refresh_interval: float = DEFAULT_REFRESH_INTERVAL,
    refresh_unknown_kid: Optional[TokenBucketRateLimiter] = None,
    rate_limit_wait_max: float = DEFAULT_RATE_LIMIT_WAIT_MAX,
    http_timeout: float = 10.0,
    metrics: Optional[MetricsCollector] = None,
) -> HTTPClientOptions:
    """Options with the default behaviour for a list of JWK Set URLs.

    1. Refresh remote JWK Sets every hour.
    2. Prioritize keys from remote JWK Sets over the given store.
    3. Refresh remote JWK Sets when a key ID is unknown, at most once
       every 5 minutes.
    4. Log refresh failures instead of failing the first fetch.
    """
    if refresh_unknown_kid is None:
        refresh_unknown_kid = TokenBucketRateLimiter(every(DEFAULT_REFRESH_UNKNOWN_KID_INTERVAL), 1)

    parsed: List[str] = []
    for raw in urls:
        url = _parse_url(raw)
        if url in parsed:
            raise ClientConstructionError(f"duplicate JWK Set URL {url!r}", {"url": url})
        parsed.append(url)

    http_urls: Dict[str, Optional[HTTPStorage]] = {}
    for url in parsed:

        def refresh_error_handler(error: Exception, url: str = url) -> None:
            logger.error(
                "Failed to refresh HTTP JWK Set from remote HTTP resource",
                url=url,
                error=str(error)
            )

        storage_options = HTTPClientStorageOptions(
            client=http_client,
            http_timeout=http_timeout,
            refresh_interval=refresh_interval,
            refresh_error_handler=refresh_error_handler,
            no_error_return_first_http_req=True,
            metrics=metrics,
        )
        http_urls[url] = HTTPStorage(url, storage_options)

    return HTTPClientOptions(
        given=given,
        http_urls=http_urls,
        prioritize_http=True,
        rate_limit_wait_max=rate_limit_wait_max,
        refresh_unknown_kid=refresh_unknown_kid,
        metrics=metrics,
        owns_http_storage=True,
    )


async def new_default_http_client(urls: List[str], **kwargs) -> HTTPClient:
    """Create and start a client with ``default_http_client_options``."""
    client = HTTPClient(default_http_client_options(urls, **kwargs))
    await client.start()
    return client
