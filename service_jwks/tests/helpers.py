"""
Test helpers and factories for JWKS service tests.
"""

from typing import Any, Dict, List, Optional

import httpx

from service_jwks.app.jwk.models import JWK
from service_jwks.app.storage.http import HTTPClientStorageOptions, HTTPStorage


def ec_key_dict(kid: str, x: str = "x-coord", private: bool = False) -> Dict[str, Any]:
    """An EC JWK as it appears on the wire."""
    data = {"kty": "EC", "kid": kid, "crv": "P-256", "x": x, "y": "y-coord"}
    if private:
        data["d"] = "private-scalar"
    return data


def ec_key(kid: str, x: str = "x-coord", private: bool = False) -> JWK:
    return JWK.from_dict(ec_key_dict(kid, x, private))


def oct_key(kid: str) -> JWK:
    return JWK.from_dict({"kty": "oct", "kid": kid, "k": "c2VjcmV0LWtleQ"})


class RemoteJWKSet:
    """A JWK Set endpoint served through ``httpx.MockTransport``."""

    def __init__(self, keys: Optional[List[Dict[str, Any]]] = None, status_code: int = 200):
        self.keys = list(keys or [])
        self.status_code = status_code
        self.requests = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests += 1
        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"error": "unavailable"})
        return httpx.Response(200, json={"keys": self.keys})

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def storage(self, url: str = "https://idp.example.com/jwks.json", **options) -> HTTPStorage:
        return HTTPStorage(url, HTTPClientStorageOptions(client=self.http_client(), **options))
