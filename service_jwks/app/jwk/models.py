"""
JSON Web Key models.

A ``JWK`` is an immutable value: key material plus identifying metadata.
Marshalling decides which members leave the process; validation checks
that the members a key type requires are present and, where python-jose
knows the declared algorithm, that the material can actually be loaded.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping, Optional

from jose import jwk as jose_jwk
from jose.constants import ALGORITHMS
from jose.exceptions import JWKError
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from shared.errors import KeyValidationError

KTY_RSA = "RSA"
KTY_EC = "EC"
KTY_OKP = "OKP"
KTY_OCT = "oct"

# Algorithms whose key material python-jose can load.
CHECKED_ALGORITHMS = ALGORITHMS.HMAC | ALGORITHMS.RSA_DS | ALGORITHMS.EC_DS

# Members that must never appear in a public JWK.
PRIVATE_MEMBERS = frozenset({"d", "p", "q", "dp", "dq", "qi", "oth"})

REQUIRED_MEMBERS: Dict[str, tuple] = {
    KTY_RSA: ("n", "e"),
    KTY_EC: ("crv", "x", "y"),
    KTY_OKP: ("crv", "x"),
    KTY_OCT: ("k",),
}


class JWKMarshalOptions(BaseModel):
    """Controls which key material is included when marshalling."""

    model_config = ConfigDict(frozen=True)

    marshal_private: bool = False
    marshal_symmetric: bool = False


class JWKValidateOptions(BaseModel):
    """Controls validation performed before a key is marshalled or stored."""

    model_config = ConfigDict(frozen=True)

    skip_all: bool = False
    check_material: bool = True


class JWK(BaseModel):
    """A single JSON Web Key (RFC 7517)."""

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    kty: str
    kid: Optional[str] = None
    use: Optional[str] = None
    key_ops: Optional[List[str]] = None
    alg: Optional[str] = None
    x5u: Optional[str] = None
    x5c: Optional[List[str]] = None
    x5t: Optional[str] = None
    x5t_s256: Optional[str] = Field(default=None, alias="x5t#S256")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "JWK":
        """Parse a JWK from its JSON object form."""
        try:
            return cls.model_validate(dict(data))
        except ValidationError as e:
            raise KeyValidationError(
                "failed to parse JWK",
                {"kid": data.get("kid") if isinstance(data, Mapping) else None, "error": str(e)}
            ) from e

    @property
    def members(self) -> Dict[str, Any]:
        """All JSON members of the key, standard and key-material alike."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def is_symmetric(self) -> bool:
        return self.kty == KTY_OCT

    def has_private(self) -> bool:
        """True when the key carries material that must stay secret."""
        if self.is_symmetric():
            return True
        return any(name in PRIVATE_MEMBERS for name in self.members)

    def to_public(self) -> "JWK":
        """Return this key without private members.

        Symmetric keys have no public form.
        """
        if self.is_symmetric():
            raise KeyValidationError("symmetric keys have no public form", {"kid": self.kid})
        public = {k: v for k, v in self.members.items() if k not in PRIVATE_MEMBERS}
        return JWK.model_validate(public)

    def to_dict(self, options: Optional[JWKMarshalOptions] = None) -> Dict[str, Any]:
        """Marshal to a JSON-ready dict under ``options``."""
        options = options or JWKMarshalOptions()
        if self.is_symmetric():
            if not options.marshal_symmetric:
                raise KeyValidationError("symmetric key marshalling not enabled", {"kid": self.kid})
            return self.members
        if options.marshal_private:
            return self.members
        return self.to_public().members

    def validate_key(self, options: Optional[JWKValidateOptions] = None) -> None:
        """Raise ``KeyValidationError`` if the key is unusable."""
        options = options or JWKValidateOptions()
        if options.skip_all:
            return

        members = self.members
        required = REQUIRED_MEMBERS.get(self.kty)
        if required is None:
            raise KeyValidationError(f"unsupported key type {self.kty!r}", {"kid": self.kid})
        missing = [name for name in required if not members.get(name)]
        if missing:
            raise KeyValidationError(
                f"key is missing required members {missing}",
                {"kid": self.kid, "kty": self.kty}
            )

        if options.check_material and self.alg in CHECKED_ALGORITHMS:
            try:
                jose_jwk.construct(members, algorithm=self.alg)
            except (JWKError, ValueError, TypeError) as e:
                raise KeyValidationError(
                    "key material does not match its algorithm",
                    {"kid": self.kid, "alg": self.alg, "error": str(e)}
                ) from e


class JWKSMarshal(BaseModel):
    """A JWK Set as it is exchanged on the wire: ``{"keys": [...]}``."""

    keys: List[Dict[str, Any]] = Field(default_factory=list)

    def to_json(self) -> bytes:
        return json.dumps({"keys": self.keys}, separators=(",", ":")).encode("utf-8")
