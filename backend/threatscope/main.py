from contextlib import asynccontextmanager
from typing import Optional

import httpx
import sentry_sdk
import structlog
from fastapi import FastAPI
from fastapi.routing import APIRoute
from starlette.middleware.cors import CORSMiddleware

from threatscope.api.main import api_router
from threatscope.core.config import Settings, settings as default_settings
from threatscope.core.logging import configure_logging
from threatscope.middleware.request_id import RequestIdMiddleware
from threatscope.observability import MetricsMiddleware, metrics_router
from threatscope.services.countries import CountryDirectory
from threatscope.services.threats import ThreatGenerator

logger = structlog.get_logger()


def custom_generate_unique_id(route: APIRoute) -> str:
    return f"{route.tags[0]}-{route.name}" if route.tags else route.name


def create_app(
    settings: Optional[Settings] = None,
    *,
    upstream_transport: Optional[httpx.AsyncBaseTransport] = None,
    countries_transport: Optional[httpx.AsyncBaseTransport] = None,
    threat_generator: Optional[ThreatGenerator] = None,
) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)

    if settings.SENTRY_DSN and settings.ENVIRONMENT != "local":
        sentry_sdk.init(dsn=str(settings.SENTRY_DSN), enable_tracing=True)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Upstream reads have no overall deadline, only an idle limit per chunk.
        upstream_timeout = httpx.Timeout(
            settings.STREAM_IDLE_TIMEOUT_SECONDS,
            connect=settings.UPSTREAM_CONNECT_TIMEOUT_SECONDS,
        )
        async with httpx.AsyncClient(
            timeout=upstream_timeout, transport=upstream_transport
        ) as upstream_client, httpx.AsyncClient(
            timeout=10.0, transport=countries_transport
        ) as countries_client:
            app.state.upstream_client = upstream_client
            app.state.country_directory = CountryDirectory(
                countries_client,
                settings.COUNTRIES_GRAPHQL_URL,
                ttl_seconds=settings.COUNTRIES_CACHE_TTL_SECONDS,
            )
            logger.info("app_started", upstream=settings.UPSTREAM_URL, environment=settings.ENVIRONMENT)
            yield
        logger.info("app_stopped")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        openapi_url=f"{settings.API_PREFIX}/openapi.json",
        generate_unique_id_function=custom_generate_unique_id,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.threat_generator = threat_generator or ThreatGenerator()

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(MetricsMiddleware)

    # Set all CORS enabled origins
    if settings.all_cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.all_cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(api_router, prefix=settings.API_PREFIX)
    app.include_router(metrics_router)
    return app


app = create_app()
