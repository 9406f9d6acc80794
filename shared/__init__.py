"""
Shared utilities for the JWK Set resolution service.

Common building blocks consumed by the service package:

- config: Service configuration via pydantic-settings
- logging: Structured logging via structlog
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- circuit_breaker: Protection for remote JWK Set fetches

Do not import from service_* packages into shared/.
"""
