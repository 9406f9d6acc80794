"""
Shared fixtures for JWKS service tests.
"""

import pytest

from service_jwks.tests.helpers import RemoteJWKSet


@pytest.fixture
def remote_factory():
    """Create mock remote JWK Sets."""
    return RemoteJWKSet
