"""In-memory JWK storage."""

from __future__ import annotations

import asyncio
from typing import List

from shared.errors import KeyNotFoundError

from ..jwk.models import JWK
from .base import Storage


class MemoryStorage(Storage):
    """Keys held in process memory, in insertion order.

    Writing a key whose ``kid`` is already present replaces it in place.
    Keys without a ``kid`` are kept but can only be reached through
    ``key_read_all``.
    """

    def __init__(self) -> None:
        self._keys: List[JWK] = []
        self._lock = asyncio.Lock()

    async def key_delete(self, key_id: str) -> bool:
        async with self._lock:
            for i, jwk in enumerate(self._keys):
                if jwk.kid == key_id:
                    del self._keys[i]
                    return True
        return False

    async def key_read(self, key_id: str) -> JWK:
        async with self._lock:
            for jwk in self._keys:
                if jwk.kid == key_id:
                    return jwk
        raise KeyNotFoundError(key_id)

    async def key_read_all(self) -> List[JWK]:
        async with self._lock:
            return list(self._keys)

    async def key_write(self, jwk: JWK) -> None:
        async with self._lock:
            if jwk.kid is not None:
                for i, existing in enumerate(self._keys):
                    if existing.kid == jwk.kid:
                        self._keys[i] = jwk
                        return
            self._keys.append(jwk)
