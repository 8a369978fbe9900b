# This file builds the FastAPI application and mounts one common route per configured collection.
# It exists so startup behavior, middleware, and error handling are configured in one place.
# The app adds request IDs, timing headers, Prometheus metrics, and optional request logging.
# Keeping bootstrap logic centralized makes deployment and testing more predictable.

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest
from pymongo.asynchronous.database import AsyncDatabase
from starlette.middleware.base import RequestResponseEndpoint

from common_rest.api.api_config import ApiConfig, get_api_config
from common_rest.api.dependencies import default_database
from common_rest.api.error_handlers import register_error_handlers
from common_rest.api.routers.common_route import create
from common_rest.api.routers.health import router as health_router
from common_rest.common.db import ping
from common_rest.common.logging import configure_logging
from common_rest.controller.common_controller import CommonController

logger = logging.getLogger(__name__)

API_HTTP_REQUESTS_TOTAL = Counter(
    "api_http_requests_total",
    "Total number of HTTP requests processed by the API.",
    ["method", "path", "status_code"],
)
API_HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "api_http_request_duration_seconds",
    "API request duration in seconds.",
    ["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
)
API_HTTP_INFLIGHT_REQUESTS = Gauge(
    "api_http_inflight_requests",
    "Number of API requests currently being processed.",
    ["method"],
)


def _route_template(request: Request) -> str:
    # Label by route template so document ids do not explode metric cardinality.
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


def mount_collections(
    router: APIRouter,
    database: AsyncDatabase,
    collections: list[str],
    *,
    error_status_codes: bool = False,
) -> dict[str, CommonController]:
    """Expose each named collection on `/<name>` and return the controllers by name."""

    controllers: dict[str, CommonController] = {}
    for name in collections:
        controllers[name] = create(
            router,
            f"/{name}",
            database[name],
            error_status_codes=error_status_codes,
        )
        logger.info("Mounted collection %s.%s", database.name, name)
    return controllers


def create_app(
    *,
    config: ApiConfig | None = None,
    database: AsyncDatabase | None = None,
) -> FastAPI:
    """Create configured FastAPI application instance."""

    configure_logging()
    config = config or get_api_config()
    if database is None:
        database = default_database(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.db_connected_at_startup = await ping(database)
        if not app.state.db_connected_at_startup:
            logger.warning("MongoDB database %s unreachable at startup", database.name)
        yield

    app = FastAPI(
        title=config.api_name,
        description=(
            "Generic REST access to MongoDB collections. Filters, projection, sorting and "
            "paging are read from the query string."
        ),
        version=config.app_version,
        lifespan=lifespan,
        openapi_tags=[
            {"name": "health", "description": "Service liveness, readiness, and version metadata."},
        ],
    )
    app.state.config = config
    app.state.database = database

    if config.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.middleware("http")
    async def request_context_middleware(
        request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id

        method_label = request.method
        started = time.perf_counter()
        status_code = 500
        API_HTTP_INFLIGHT_REQUESTS.labels(method=method_label).inc()
        try:
            response: Response = await call_next(request)
            status_code = response.status_code
            duration_ms = (time.perf_counter() - started) * 1000.0

            response.headers["x-request-id"] = request_id
            response.headers["x-response-time-ms"] = f"{duration_ms:.2f}"

            if config.enable_request_logging:
                logger.info(
                    "request_id=%s %s %s -> %s in %.2fms",
                    request_id,
                    request.method,
                    request.url.path,
                    status_code,
                    duration_ms,
                )
            return response
        finally:
            path_label = _route_template(request)
            duration_s = time.perf_counter() - started
            API_HTTP_REQUESTS_TOTAL.labels(
                method=method_label,
                path=path_label,
                status_code=str(status_code),
            ).inc()
            API_HTTP_REQUEST_DURATION_SECONDS.labels(
                method=method_label,
                path=path_label,
            ).observe(duration_s)
            API_HTTP_INFLIGHT_REQUESTS.labels(method=method_label).dec()

    @app.get("/metrics", include_in_schema=False)
    def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    register_error_handlers(app)

    collections_router = APIRouter(prefix=config.api_version_path)
    app.state.controllers = mount_collections(
        collections_router,
        database,
        config.collections,
        error_status_codes=config.error_status_codes,
    )

    app.include_router(health_router)
    app.include_router(collections_router)

    return app
