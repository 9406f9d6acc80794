"""
Remote JWK Set storage backed by an HTTP endpoint.
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import httpx

from shared.circuit_breaker import CircuitBreaker
from shared.errors import KeyValidationError, StorageError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from ..jwk.models import JWK, JWKValidateOptions
from .base import Storage
from .memory import MemoryStorage

RefreshErrorHandler = Callable[[Exception], None]


@dataclass
class HTTPClientStorageOptions:
    """Options for one remote JWK Set."""

    client: Optional[httpx.AsyncClient] = None
    http_method: str = "GET"
    http_timeout: float = 10.0
    # Seconds between background refreshes; 0 disables the refresh task.
    refresh_interval: float = 0.0
    refresh_error_handler: Optional[RefreshErrorHandler] = None
    no_error_return_first_http_req: bool = False
    validate_options: JWKValidateOptions = field(default_factory=JWKValidateOptions)
    failure_threshold: int = 5
    recovery_timeout: float = 30.0
    metrics: Optional[MetricsCollector] = None


class HTTPStorage(Storage):
    """A JWK Set fetched from ``url`` and kept in memory.

    ``refresh`` re-fetches the set and swaps the in-memory copy in one
    step, so readers see either the old set or the new one. ``start``
    performs the first fetch and launches the background refresh task.
    """

    def __init__(self, url: str, options: Optional[HTTPClientStorageOptions] = None):
        self.url = str(httpx.URL(url))
        self.options = options or HTTPClientStorageOptions()
        self.logger = get_logger("jwks.http_storage")

        self._store: MemoryStorage = MemoryStorage()
        self._owns_client = self.options.client is None
        self._client = self.options.client or httpx.AsyncClient(timeout=self.options.http_timeout)
        self._refresh_task: Optional[asyncio.Task] = None
        self._started = False

        self.circuit_breaker = CircuitBreaker(
            f"jwks:{self.url}",
            failure_threshold=self.options.failure_threshold,
            recovery_timeout=self.options.recovery_timeout,
        )

    async def start(self) -> None:
        """Fetch the set for the first time and schedule background refreshes."""
        if self._started:
            return
        self._started = True

        try:
            await self.refresh()
        except Exception as e:
            if not self.options.no_error_return_first_http_req:
                raise
            self.report_refresh_error(e)

        if self.options.refresh_interval > 0:
            self._refresh_task = asyncio.create_task(self._refresh_loop())

    async def close(self) -> None:
        """Stop background refreshes and release the HTTP client."""
        if self._refresh_task is not None:
            self._refresh_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._refresh_task
            self._refresh_task = None
        if self._owns_client:
            await self._client.aclose()

    def report_refresh_error(self, error: Exception) -> None:
        """Hand a refresh failure to the configured error handler, if any."""
        if self.options.refresh_error_handler is not None:
            self.options.refresh_error_handler(error)

    async def refresh(self) -> None:
        """Re-fetch the remote JWK Set and replace the in-memory keys."""
        metrics = self.options.metrics
        try:
            if metrics is not None:
                with metrics.time_refresh():
                    payload = await self.circuit_breaker.call(self._fetch)
            else:
                payload = await self.circuit_breaker.call(self._fetch)
            store = await self._load(payload)
        except Exception:
            if metrics is not None:
                metrics.record_refresh("error")
            raise

        self._store = store
        if metrics is not None:
            metrics.record_refresh("ok")
        self.logger.info("JWK Set refreshed", url=self.url, keys_count=len(await store.key_read_all()))

    async def _fetch(self) -> Any:
        try:
            response = await self._client.request(self.options.http_method, self.url)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            raise StorageError(
                f"failed to fetch JWK Set from {self.url!r}",
                {"url": self.url, "error": str(e)}
            ) from e
        except ValueError as e:
            raise StorageError(
                f"JWK Set from {self.url!r} is not valid JSON",
                {"url": self.url, "error": str(e)}
            ) from e

    async def _load(self, payload: Any) -> MemoryStorage:
        keys = payload.get("keys") if isinstance(payload, dict) else None
        if not isinstance(keys, list):
            raise StorageError(
                f"JWK Set from {self.url!r} is missing the 'keys' array",
                {"url": self.url}
            )

        store = MemoryStorage()
        for item in keys:
            if not isinstance(item, dict):
                self.logger.warning("Skipping non-object JWK", url=self.url)
                continue
            try:
                jwk = JWK.from_dict(item)
                jwk.validate_key(self.options.validate_options)
            except KeyValidationError as e:
                # Lenient: one bad key must not hide the rest of the set.
                self.logger.warning(
                    "Skipping invalid JWK",
                    url=self.url,
                    kid=item.get("kid"),
                    error=e.message
                )
                continue
            await store.key_write(jwk)
        return store

    async def _refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self.options.refresh_interval)
            try:
                await self.refresh()
            except Exception as e:
                self.logger.warning("Background JWK Set refresh failed", url=self.url, error=str(e))
                self.report_refresh_error(e)

    async def key_delete(self, key_id: str) -> bool:
        return await self._store.key_delete(key_id)

    async def key_read(self, key_id: str) -> JWK:
        return await self._store.key_read(key_id)

    async def key_read_all(self) -> List[JWK]:
        return await self._store.key_read_all()

    async def key_write(self, jwk: JWK) -> None:
        await self._store.key_write(jwk)

    def get_state(self) -> Dict[str, Any]:
        """Describe this source for health reporting."""
        return {
            "url": self.url,
            "started": self._started,
            "circuit_breaker": self.circuit_breaker.get_state(),
        }
