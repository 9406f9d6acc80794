"""
JWKS Service package.

Resolves JSON Web Keys by key ID across one local store and any number of
remote JWK Sets, and serves the merged public set.

Structure:
- app.client: the resolution client (priority, fallback, refresh-on-miss).
- app.storage: the key store contract, in-memory and HTTP stores.
- app.jwk: JWK value model and marshal/validation options.
- app.ratelimit: token bucket gating on-demand refreshes.
- app.main: FastAPI app exposing the merged set.

Module import must not perform network calls; remote stores fetch only
when started.
"""
