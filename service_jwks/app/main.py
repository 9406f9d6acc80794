"""
JWKS service: serves the merged public JWK Set of a resolution client.
"""

import time
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from shared.config import JWKSConfig, get_config
from shared.errors import JWKSetError, KeyValidationError
from shared.logging import clear_context, configure_logging, get_logger, set_request_id
from shared.metrics import get_metrics_collector

from .client import HTTPClient, default_http_client_options
from .ratelimit.token_bucket import TokenBucketRateLimiter, every
from .storage.memory import MemoryStorage

ERROR_STATUS_CODES = {
    "KEY_NOT_FOUND": 404,
    "VALIDATION_ERROR": 400,
    "RATE_LIMIT_ERROR": 429,
    "STORAGE_ERROR": 502,
}


class JWKSService:
    """JWKS service implementation."""

    def __init__(self, config: Optional[JWKSConfig] = None, client: Optional[HTTPClient] = None):
        self.config = config or get_config()
        self.service_name = self.config.service_name
        configure_logging(self.service_name, self.config.log_level)
        self.logger = get_logger(f"{self.service_name}.service")
        self.metrics = get_metrics_collector(self.service_name)
        self.client = client or self._build_client()
        self._start_time = time.time()

        self.app = FastAPI(
            title="JWKS Service",
            description="Merged JSON Web Key Sets from local and remote sources",
            version="1.0.0",
            docs_url="/docs" if self.config.env == "local" else None,
            redoc_url=None,
        )
        self._setup_middleware()
        self._setup_routes()

        @self.app.on_event("startup")
        async def _startup():
            await self.client.start()

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.client.close()

    def _build_client(self) -> HTTPClient:
        refresh_unknown_kid = None
        if self.config.refresh_unknown_kid:
            refresh_unknown_kid = TokenBucketRateLimiter(
                every(self.config.refresh_unknown_kid_interval),
                self.config.refresh_unknown_kid_burst,
            )
        options = default_http_client_options(
            self.config.jwks_urls,
            given=MemoryStorage(),
            refresh_interval=self.config.refresh_interval,
            refresh_unknown_kid=refresh_unknown_kid,
            rate_limit_wait_max=self.config.rate_limit_wait_max,
            http_timeout=self.config.http_timeout,
            metrics=self.metrics,
        )
        options.prioritize_http = self.config.prioritize_http
        if not self.config.refresh_unknown_kid:
            options.refresh_unknown_kid = None
        return HTTPClient(options)

    def _setup_middleware(self):
        """Set up middleware."""

        @self.app.middleware("http")
        async def add_request_timing(request: Request, call_next):
            request_id = set_request_id(request.headers.get("X-Request-ID"))
            start_time = time.time()
            try:
                response = await call_next(request)
                duration = time.time() - start_time

                self.metrics.record_http_request(
                    method=request.method,
                    endpoint=request.url.path,
                    status_code=response.status_code
                )
                self.logger.info(
                    "HTTP request",
                    method=request.method,
                    path=request.url.path,
                    status_code=response.status_code,
                    duration_ms=round(duration * 1000, 2),
                    request_id=request_id
                )
                response.headers["X-Request-ID"] = request_id
                return response
            finally:
                clear_context()

    def _setup_routes(self):
        """Set up routes."""

        @self.app.get("/")
        async def root():
            return {
                "service": self.service_name,
                "message": "JWKS Service",
                "version": "1.0.0"
            }

        @self.app.get("/health")
        async def health_check():
            """Health check endpoint."""
            return {
                "service": self.service_name,
                "status": "ok",
                "uptime_seconds": time.time() - self._start_time,
                "sources": self._describe_sources(),
            }

        @self.app.get("/metrics")
        async def metrics_endpoint():
            """Prometheus metrics endpoint."""
            from prometheus_client import CONTENT_TYPE_LATEST
            return Response(content=self.metrics.render(), media_type=CONTENT_TYPE_LATEST)

        @self.app.get("/.well-known/jwks.json")
        async def jwks():
            """Public JWK Set merged from every source."""
            return Response(
                content=await self.client.json_public(),
                media_type="application/json"
            )

        @self.app.get("/keys/{kid}")
        async def read_key(kid: str):
            """Public form of a single key."""
            jwk = await self.client.key_read(kid)
            if jwk.is_symmetric():
                raise KeyValidationError("symmetric keys are not published", {"kid": kid})
            return jwk.to_public().members

        @self.app.exception_handler(JWKSetError)
        async def jwkset_exception_handler(request: Request, exc: JWKSetError):
            status_code = ERROR_STATUS_CODES.get(exc.code, 500)
            self.logger.warning(
                "JWK Set error",
                code=exc.code,
                message=exc.message,
                details=exc.details,
                status_code=status_code
            )
            return JSONResponse(
                status_code=status_code,
                content=exc.to_response().model_dump()
            )

    def _describe_sources(self) -> Dict[str, Any]:
        return {
            "given": type(self.client.given).__name__,
            "http": [store.get_state() for store in self.client.http_urls.values()],
        }

    def run(self):
        """Run the service."""
        import uvicorn
        uvicorn.run(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower()
        )


def create_app():
    """Create FastAPI application."""
    service = JWKSService()
    return service.app


if __name__ == "__main__":
    service = JWKSService()
    service.run()
