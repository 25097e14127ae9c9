import asyncio
import logging
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from typing import Any

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware

from querygate.api.routes import health
from querygate.api.routes.queries import build_query_router
from querygate.core.config import settings
from querygate.core.descriptors import check_statements, load_descriptors
from querygate.core.errors import ConfigurationError, QueryGateError
from querygate.core.pool import PoolManager, datasource_from_settings, health_check, init_oracle_client
from querygate.core.security import issue_startup_token, resolve_verification_key
from querygate.core.transport import PublishTransport, build_transport
from querygate.engines import EndpointDispatcher, IntervalPublisher, PublisherGroup, QueryPipeline
from querygate.engines.sql import StatementMapper
from querygate.models import ExposureEnum, QueryDescriptor

_logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging() -> None:
    logging.basicConfig(level=settings.LOG_LEVEL.upper(), format=LOG_FORMAT)


def custom_generate_unique_id(route: APIRoute) -> str:
    return f"{route.tags[0]}-{route.name}"


def load_mapper() -> StatementMapper:
    mapper = StatementMapper()
    if settings.MAPPER_DIR:
        count = mapper.load_directory(settings.MAPPER_DIR)
        _logger.info("Loaded %d mapper statement(s) from %s", count, settings.MAPPER_DIR)
    return mapper


# ---------------------------------------------------------------------------
# Global exception handlers: every error body is {"message": ...}
# ---------------------------------------------------------------------------


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return 422 with a human-readable message instead of raw Pydantic errors."""
    messages = []
    for err in exc.errors():
        loc = ".".join(str(l) for l in err.get("loc", []) if l != "body")
        msg = err.get("msg", "Invalid value")
        messages.append(f"{loc}: {msg}" if loc else msg)
    return JSONResponse(status_code=422, content={"message": "; ".join(messages)})


async def query_error_handler(request: Request, exc: QueryGateError) -> JSONResponse:
    """Server-side query faults (execution, resolution, configuration)."""
    if exc.status_code >= 500:
        _logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
        sentry_sdk.capture_exception(exc)
        message = "Internal server error"
        if settings.ENVIRONMENT == "local":
            message = f"Internal server error: {exc}"
        return JSONResponse(status_code=exc.status_code, content={"message": message})
    return JSONResponse(status_code=exc.status_code, content={"message": str(exc)})


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions: log and return 500 with a safe message."""
    _logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    message = "Internal server error"
    if settings.ENVIRONMENT == "local":
        message = f"Internal server error: {exc}"
    return JSONResponse(status_code=500, content={"message": message})


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def _check_push_transport(
    descriptors: tuple[QueryDescriptor, ...], transport: PublishTransport | None
) -> None:
    push = [d for d in descriptors if d.exposure == ExposureEnum.PUSH]
    if push and transport is None and settings.PUBLISH_TRANSPORT == "none":
        raise ConfigurationError(
            f"{len(push)} push query(ies) declared but PUBLISH_TRANSPORT is 'none'"
        )


def _build_publishers(
    descriptors: tuple[QueryDescriptor, ...],
    pipeline: QueryPipeline,
    transport: PublishTransport | None,
) -> list[IntervalPublisher]:
    push = [d for d in descriptors if d.exposure == ExposureEnum.PUSH]
    if not push or transport is None:
        return []
    return [
        IntervalPublisher(d, pipeline, transport, topic_prefix=settings.PUBLISH_TOPIC_PREFIX)
        for d in push
    ]


def create_app(
    *,
    environ: Mapping[str, str] | None = None,
    descriptors: tuple[QueryDescriptor, ...] | None = None,
    pool: Any = None,
    mapper: StatementMapper | None = None,
    transport: PublishTransport | None = None,
    verification_key: Any = None,
) -> FastAPI:
    """Build the gateway: one route per pull query, one publisher task per push query.

    Everything that can be decided from configuration (descriptors, mapper
    statements, push transport, routes) is checked here, so a bad declaration
    fails before the server binds. The lifespan verifies the database, then starts publishing.
    Arguments override the corresponding settings-driven component.
    """
    if mapper is None:
        mapper = load_mapper()
    if descriptors is None:
        descriptors = load_descriptors(
            environ,
            injection_check=settings.SQL_INJECTION_CHECK,
            max_rows=settings.DB_MAX_ROW_SIZE,
        )
    check_statements(descriptors, mapper)
    _check_push_transport(descriptors, transport)

    if pool is None:
        pool = PoolManager(datasource_from_settings())
    pipeline = QueryPipeline(pool, mapper, default_max_rows=settings.DB_MAX_ROW_SIZE)
    dispatchers = [
        EndpointDispatcher(d, pipeline) for d in descriptors if d.exposure == ExposureEnum.PULL
    ]

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if not await asyncio.to_thread(health_check, pool):
            raise RuntimeError("Database is not reachable; refusing to start")
        _logger.info("Database connection verified (%s)", pool.product_type.value)

        issue_startup_token()

        transport_ = transport
        owns_transport = False
        if transport_ is None and any(d.exposure == ExposureEnum.PUSH for d in descriptors):
            transport_ = build_transport()
            if transport_ is not None:
                transport_.start()
                owns_transport = True
        group = PublisherGroup(_build_publishers(descriptors, pipeline, transport_))
        app.state.transport = transport_
        group.start()
        try:
            yield
        finally:
            await group.stop()
            if owns_transport:
                transport_.close()
            pool.dispose()
            _logger.info("Gateway stopped")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        openapi_url=f"{settings.API_PREFIX}/openapi.json",
        docs_url=f"{settings.API_PREFIX}/docs",
        redoc_url=f"{settings.API_PREFIX}/redoc",
        generate_unique_id_function=custom_generate_unique_id,
        lifespan=lifespan,
    )
    app.state.pool = pool
    app.state.mapper = mapper
    app.state.descriptors = descriptors
    app.state.transport = transport
    app.state.verification_key = (
        verification_key if verification_key is not None else resolve_verification_key()
    )

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(QueryGateError, query_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # Set all CORS enabled origins
    if settings.all_cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.all_cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(health.router)
    app.include_router(build_query_router(dispatchers), prefix=settings.API_PREFIX)
    return app


def main() -> None:
    """Console entry point: configure logging and the Oracle client, then serve."""
    import uvicorn

    configure_logging()
    if settings.SENTRY_DSN and settings.ENVIRONMENT != "local":
        sentry_sdk.init(dsn=str(settings.SENTRY_DSN), enable_tracing=True)
    init_oracle_client(settings.ORACLE_CLIENT_DIR)
    uvicorn.run(create_app(), host=settings.HOST, port=settings.PORT, log_config=None)
