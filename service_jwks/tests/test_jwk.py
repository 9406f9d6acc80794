"""
Unit tests for JWK models.
"""

import json

import pytest

from service_jwks.app.jwk.models import JWK, JWKMarshalOptions, JWKSMarshal, JWKValidateOptions
from shared.errors import KeyValidationError

from service_jwks.tests.helpers import ec_key, ec_key_dict, oct_key


class TestJWK:
    """Test cases for the JWK value model."""

    def test_from_dict_keeps_key_material(self):
        """Test that non-standard members survive parsing."""
        jwk = JWK.from_dict({**ec_key_dict("kid-1"), "x5t#S256": "thumb"})

        assert jwk.kid == "kid-1"
        assert jwk.x5t_s256 == "thumb"
        assert jwk.members["crv"] == "P-256"
        assert jwk.members["x5t#S256"] == "thumb"

    def test_from_dict_requires_kty(self):
        """Test that a key without a type is rejected."""
        with pytest.raises(KeyValidationError):
            JWK.from_dict({"kid": "kid-1", "n": "abc"})

    def test_from_dict_rejects_non_string_kid(self):
        """Test that key IDs must be strings."""
        with pytest.raises(KeyValidationError):
            JWK.from_dict({"kty": "EC", "kid": 7})

    def test_is_immutable(self):
        """Test that a parsed key cannot be changed."""
        jwk = ec_key("kid-1")

        with pytest.raises(Exception):
            jwk.kid = "other"

    def test_to_public_strips_private_members(self):
        """Test the public form of a private key."""
        jwk = ec_key("kid-1", private=True)

        public = jwk.to_public()

        assert jwk.has_private() is True
        assert public.has_private() is False
        assert "d" not in public.members
        assert public.members["x"] == "x-coord"

    def test_symmetric_key_has_no_public_form(self):
        """Test that symmetric keys refuse a public form."""
        with pytest.raises(KeyValidationError):
            oct_key("hmac").to_public()

    def test_to_dict_options(self):
        """Test marshalling under different options."""
        jwk = ec_key("kid-1", private=True)

        assert "d" not in jwk.to_dict()
        assert jwk.to_dict(JWKMarshalOptions(marshal_private=True))["d"] == "private-scalar"
        with pytest.raises(KeyValidationError):
            oct_key("hmac").to_dict()
        assert oct_key("hmac").to_dict(JWKMarshalOptions(marshal_symmetric=True))["k"]


class TestValidation:
    """Test cases for key validation."""

    def test_missing_required_members(self):
        """Test that an RSA key needs its modulus."""
        jwk = JWK.from_dict({"kty": "RSA", "kid": "rsa-1", "e": "AQAB"})

        with pytest.raises(KeyValidationError) as exc_info:
            jwk.validate_key()

        assert exc_info.value.details["kid"] == "rsa-1"

    def test_unsupported_key_type(self):
        """Test that unknown key types are rejected."""
        with pytest.raises(KeyValidationError):
            JWK.from_dict({"kty": "XYZ", "kid": "odd"}).validate_key()

    def test_skip_all(self):
        """Test that validation can be skipped entirely."""
        JWK.from_dict({"kty": "XYZ"}).validate_key(JWKValidateOptions(skip_all=True))

    def test_hmac_material_checked(self):
        """Test that a usable HS256 key passes the material check."""
        jwk = JWK.from_dict({"kty": "oct", "kid": "hs", "alg": "HS256", "k": "c2VjcmV0LWtleQ"})

        jwk.validate_key()

    def test_material_mismatch(self):
        """Test that material not matching the declared algorithm is rejected."""
        jwk = JWK.from_dict({"kty": "RSA", "kid": "bad", "alg": "HS256", "n": "abc", "e": "AQAB"})

        with pytest.raises(KeyValidationError) as exc_info:
            jwk.validate_key()

        assert exc_info.value.details["alg"] == "HS256"
        jwk.validate_key(JWKValidateOptions(check_material=False))

    def test_material_rejected_by_backend(self):
        """Test that a backend error on bad material becomes a validation error."""
        jwk = JWK.from_dict({"kty": "RSA", "kid": "bad", "alg": "RS256", "n": "AQAB", "e": "AA"})

        with pytest.raises(KeyValidationError) as exc_info:
            jwk.validate_key()

        assert exc_info.value.details["kid"] == "bad"


class TestJWKSMarshal:
    """Test cases for the JWK Set envelope."""

    def test_to_json(self):
        """Test the wire form of a JWK Set."""
        marshalled = JWKSMarshal(keys=[ec_key_dict("kid-1")])

        assert json.loads(marshalled.to_json()) == {"keys": [ec_key_dict("kid-1")]}
