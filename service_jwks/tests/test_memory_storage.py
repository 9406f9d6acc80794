"""
Unit tests for MemoryStorage.
"""

import json

import pytest

from service_jwks.app.jwk.models import JWK, JWKMarshalOptions, JWKValidateOptions
from service_jwks.app.storage.memory import MemoryStorage
from shared.errors import KeyNotFoundError, KeyValidationError

from service_jwks.tests.helpers import ec_key, oct_key


class TestMemoryStorage:
    """Test cases for MemoryStorage."""

    @pytest.fixture
    def storage(self):
        """Create an empty MemoryStorage."""
        return MemoryStorage()

    @pytest.mark.asyncio
    async def test_write_and_read(self, storage):
        """Test reading back a written key."""
        await storage.key_write(ec_key("kid-1"))

        assert (await storage.key_read("kid-1")).kid == "kid-1"

    @pytest.mark.asyncio
    async def test_read_missing(self, storage):
        """Test the not-found failure."""
        with pytest.raises(KeyNotFoundError) as exc_info:
            await storage.key_read("missing")

        assert exc_info.value.code == "KEY_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_overwrite_keeps_position(self, storage):
        """Test that rewriting a key ID replaces it in place."""
        await storage.key_write(ec_key("a", x="old"))
        await storage.key_write(ec_key("b"))
        await storage.key_write(ec_key("a", x="new"))

        keys = await storage.key_read_all()

        assert [k.kid for k in keys] == ["a", "b"]
        assert keys[0].members["x"] == "new"

    @pytest.mark.asyncio
    async def test_keys_without_kid_are_kept(self, storage):
        """Test that anonymous keys are stored but not addressable."""
        anonymous = JWK.from_dict({"kty": "EC", "crv": "P-256", "x": "x", "y": "y"})

        await storage.key_write(anonymous)
        await storage.key_write(anonymous)

        assert len(await storage.key_read_all()) == 2

    @pytest.mark.asyncio
    async def test_delete(self, storage):
        """Test deleting present and absent keys."""
        await storage.key_write(ec_key("kid-1"))

        assert await storage.key_delete("kid-1") is True
        assert await storage.key_delete("kid-1") is False

    @pytest.mark.asyncio
    async def test_read_all_is_a_snapshot(self, storage):
        """Test that the returned list does not track later writes."""
        await storage.key_write(ec_key("kid-1"))
        snapshot = await storage.key_read_all()

        await storage.key_write(ec_key("kid-2"))

        assert [k.kid for k in snapshot] == ["kid-1"]

    @pytest.mark.asyncio
    async def test_json_with_options_validates(self, storage):
        """Test that invalid keys fail the export unless validation is skipped."""
        await storage.key_write(JWK.from_dict({"kty": "RSA", "kid": "rsa", "e": "AQAB"}))

        with pytest.raises(KeyValidationError):
            await storage.json_public()

        exported = await storage.json_with_options(
            JWKMarshalOptions(), JWKValidateOptions(skip_all=True)
        )
        assert json.loads(exported)["keys"][0]["kid"] == "rsa"

    @pytest.mark.asyncio
    async def test_exports(self, storage):
        """Test the full, public and private exports."""
        await storage.key_write(ec_key("private", private=True))
        await storage.key_write(ec_key("public"))
        await storage.key_write(oct_key("hmac"))

        full = json.loads(await storage.json())["keys"]
        public = json.loads(await storage.json_public())["keys"]
        private = json.loads(await storage.json_private())["keys"]

        assert [k["kid"] for k in full] == ["private", "public", "hmac"]
        assert [k["kid"] for k in public] == ["private", "public"]
        assert "d" not in public[0]
        assert [k["kid"] for k in private] == ["private", "hmac"]
        assert private[0]["d"] == "private-scalar"
