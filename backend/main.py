#!/usr/bin/env python3
"""
Dockpanel Backend - Container Management Console API

REST endpoints for one-shot engine operations (containers, images, volumes,
networks, system) and WebSocket relays for live logs, stats and events.

Destructive operations can be switched off process-wide with
DOCKPANEL_SAFE_MODE=true.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.docs import get_redoc_html

from api.errors import register_exception_handlers
from api.metrics import MetricsMiddleware, RequestMetrics
from api.rate_limit import RateLimitMiddleware
from api.routes import ROUTERS
from config.settings import AppConfig, HealthCheckFilter, setup_logging
from engine.docker_engine import DockerEngineClient
from engine.interface import EngineClient
from guard.operational_guard import OperationalGuard
from utils.version import get_app_version

logger = logging.getLogger(__name__)

# Local development front-ends (vite dev/preview, CRA, nginx container)
LOCAL_ORIGIN_REGEX = r"http://localhost:(5173|3000|4173|8086)"


def create_app(engine: Optional[EngineClient] = None, config: Optional[AppConfig] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        engine: Engine client to use. When omitted, a DockerEngineClient for
                config.docker_socket is created at startup and closed at
                shutdown.
        config: Configuration; read from the environment when omitted
    """
    config = config or AppConfig.from_env()
    owns_engine = engine is None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifecycle"""
        # Validate configuration early to fail fast on misconfiguration
        config.validate()

        logger.info("Starting Dockpanel backend...")

        # Reapply health check filter to uvicorn access logger (must be done after uvicorn starts)
        logging.getLogger("uvicorn.access").addFilter(HealthCheckFilter())

        if owns_engine:
            app.state.engine = DockerEngineClient.from_socket(config.docker_socket)

        if await app.state.engine.ping():
            logger.info("Docker engine reachable")
        else:
            # Keep serving: /api/health reports docker=false and calls return 500 until it is back
            logger.warning(f"Docker engine not reachable at {config.docker_socket}")

        if app.state.guard.safe_mode:
            logger.warning("Safe mode is enabled: destructive operations are blocked")

        yield

        logger.info("Shutting down Dockpanel backend...")
        if owns_engine:
            try:
                await app.state.engine.close()
                logger.info("Docker client closed")
            except Exception as e:
                logger.error(f"Error closing Docker client: {e}")

    app = FastAPI(
        title="Dockpanel API",
        version=get_app_version(),
        docs_url=None,  # Disable Swagger UI (using ReDoc instead at /docs)
        redoc_url=None,
        description="""
# Dockpanel API

Manage the containers, images, volumes and networks of a single Docker engine.

Every response body has the shape `{success, data?, message?, error?}`.
Failures set `error` to one of `not_found`, `forbidden`, `upstream_unavailable`,
`malformed_input` or `rate_limited`.

Each client IP gets `DOCKPANEL_RATE_LIMIT_MAX` requests per
`DOCKPANEL_RATE_LIMIT_WINDOW` seconds (loopback clients are exempt).
Prometheus metrics are served at `/metrics`.

## Streaming

WebSocket endpoints send text frames:

- `/api/containers/{id}/logs` - log lines prefixed `OUT ` or `ERR `
- `/api/containers/{id}/stats` - raw JSON stats records
- `/api/system/events` - raw JSON engine events

A frame starting with `Error` reports a failure; the socket closes after it.

## Safe mode

With `DOCKPANEL_SAFE_MODE=true`, create/start/stop/restart/kill/remove/prune
operations return 403. Pulling images is still allowed.
        """,
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.guard = OperationalGuard(config.safe_mode)
    app.state.engine = engine
    app.state.metrics = RequestMetrics()

    app.add_middleware(
        RateLimitMiddleware,
        max_requests=config.rate_limit_max,
        window_seconds=config.rate_limit_window,
    )

    if config.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
            allow_headers=["Content-Type"],
        )
        logger.info(f"CORS configured for specific origins: {config.cors_origins}")
    else:
        app.add_middleware(
            CORSMiddleware,
            allow_origin_regex=LOCAL_ORIGIN_REGEX,
            allow_credentials=True,
            allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
            allow_headers=["Content-Type"],
        )

    # Middleware added last runs first: metrics, then CORS, then the rate limiter
    app.add_middleware(MetricsMiddleware, metrics=app.state.metrics)

    register_exception_handlers(app)

    for router in ROUTERS:
        app.include_router(router)

    @app.get("/", include_in_schema=False)
    async def root():
        return {"service": "dockpanel-backend", "version": app.version, "docs": "/docs"}

    @app.get("/docs", include_in_schema=False)
    async def redoc_html():
        """ReDoc documentation with sidebar navigation"""
        return get_redoc_html(
            openapi_url="/openapi.json",
            title="Dockpanel API Documentation",
            redoc_js_url="https://cdn.jsdelivr.net/npm/redoc@2.1.5/bundles/redoc.standalone.js"
        )

    return app


setup_logging()
app = create_app()


def main():
    """Run the API server with uvicorn."""
    import uvicorn

    config = app.state.config
    uvicorn.run(
        "main:app",
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
