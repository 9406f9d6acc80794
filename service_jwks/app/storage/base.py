"""Key Store contract shared by every JWK source."""

from __future__ import annotations

import abc
from typing import List

from ..jwk.models import JWK, JWKMarshalOptions, JWKSMarshal, JWKValidateOptions

FULL_EXPORT = JWKMarshalOptions(marshal_private=True, marshal_symmetric=True)


class Storage(metaclass=abc.ABCMeta):
    """A set of JWKs that can be read, written, deleted and exported.

    Local stores, remote stores and the coordinator that merges them all
    implement this interface, so callers never branch on the source type.
    """

    @abc.abstractmethod
    async def key_delete(self, key_id: str) -> bool:
        """Delete the key with ``key_id``; return ``False`` if it was absent."""
        raise NotImplementedError

    @abc.abstractmethod
    async def key_read(self, key_id: str) -> JWK:
        """Return the key with ``key_id`` or raise ``KeyNotFoundError``."""
        raise NotImplementedError

    @abc.abstractmethod
    async def key_read_all(self) -> List[JWK]:
        """Return a snapshot of every key."""
        raise NotImplementedError

    @abc.abstractmethod
    async def key_write(self, jwk: JWK) -> None:
        """Store ``jwk``, replacing any key with the same key ID."""
        raise NotImplementedError

    async def marshal_with_options(
        self,
        marshal_options: JWKMarshalOptions,
        validate_options: JWKValidateOptions,
        *,
        private_only: bool = False,
    ) -> JWKSMarshal:
        """Export the set under explicit marshal and validation options.

        Symmetric keys are left out unless ``marshal_symmetric`` is set.
        With ``private_only`` keys without secret material are left out.
        """
        keys = []
        for jwk in await self.key_read_all():
            if private_only and not jwk.has_private():
                continue
            if jwk.is_symmetric() and not marshal_options.marshal_symmetric:
                continue
            jwk.validate_key(validate_options)
            keys.append(jwk.to_dict(marshal_options))
        return JWKSMarshal(keys=keys)

    async def marshal(self) -> JWKSMarshal:
        """Export every key with all of its material."""
        return await self.marshal_with_options(FULL_EXPORT, JWKValidateOptions())

    async def json_with_options(
        self,
        marshal_options: JWKMarshalOptions,
        validate_options: JWKValidateOptions,
    ) -> bytes:
        marshalled = await self.marshal_with_options(marshal_options, validate_options)
        return marshalled.to_json()

    async def json(self) -> bytes:
        """Full export, private and symmetric material included."""
        return (await self.marshal()).to_json()

    async def json_public(self) -> bytes:
        """Public material of asymmetric keys only."""
        return await self.json_with_options(JWKMarshalOptions(), JWKValidateOptions())

    async def json_private(self) -> bytes:
        """Only the keys that carry private or symmetric material."""
        marshalled = await self.marshal_with_options(
            FULL_EXPORT, JWKValidateOptions(), private_only=True
        )
        return marshalled.to_json()
