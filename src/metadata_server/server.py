"""
FastAPI applications for the metadata server.

``create_app`` builds the public listener that answers metadata queries;
``create_admin_app`` builds the separate administrative listener with the
reload endpoint, health and metrics.
"""

import asyncio
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, Optional
from urllib.parse import quote

from fastapi import FastAPI, Request, Response
from fastapi.responses import PlainTextResponse

from .config.settings import ServiceSettings
from .exceptions import CORS_HEADERS, EXCEPTION_HANDLERS, NotFoundError
from .io_schemas import HealthResponse
from .monitoring import MetricsCollector, get_logger, get_metrics_collector
from .renderer import content_type_for, render
from .resolver import LATEST_VERSION, path_segments, resolve
from .store import AnswersStore, ReloadSource
from .version import APP_NAME, GIT_SHA, VERSION


def client_key(request: Request, use_xff: bool = False) -> str:
    """
    Identify the client a query is answered for.

    With ``use_xff`` a non-empty X-Forwarded-For header is used verbatim,
    otherwise the peer address without port.
    """
    if use_xff:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded
    return request.client.host if request.client else ""


def escaped_path(request: Request) -> str:
    """Request path as sent on the wire, still percent-encoded."""
    raw_path = request.scope.get("raw_path")
    if raw_path:
        return raw_path.split(b"?", 1)[0].decode("latin-1")
    return quote(request.url.path)


def respond(request: Request, value: Any) -> Response:
    """Render a value in the negotiated format."""
    content_type = content_type_for(request.headers.get("accept"))
    body, media_type = render(value, content_type)
    return Response(content=body, media_type=media_type)


def create_app(
    store: AnswersStore,
    settings: Optional[ServiceSettings] = None,
    metrics: Optional[MetricsCollector] = None
) -> FastAPI:
    """
    Create the public metadata application.

    Args:
        store: Store holding the published answers
        settings: Service settings (X-Forwarded-For support)
        metrics: Metrics collector, defaults to the global one

    Returns:
        FastAPI application
    """
    settings = settings or ServiceSettings()
    metrics = metrics or get_metrics_collector()
    logger = get_logger("server")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.startup_time = time.time()
        logger.info(
            f"Starting {APP_NAME} {VERSION}",
            event_type="startup",
            git=GIT_SHA,
            answers=str(store.answers_file),
        )
        yield
        logger.info(f"Shutting down {APP_NAME}", event_type="shutdown")

    # Docs routes are disabled, their paths would shadow version names
    app = FastAPI(
        title=APP_NAME,
        version=VERSION,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.store = store
    app.state.settings = settings
    app.state.metrics = metrics

    @app.middleware("http")
    async def add_request_id_middleware(request: Request, call_next):
        """Tag each request with an ID and record its outcome."""
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        logger.set_correlation_id(request_id)

        start_time = time.time()
        try:
            with metrics.track_request():
                response = await call_next(request)
        except Exception as e:
            logger.log_error(
                error_type=type(e).__name__,
                error_message=str(e),
                endpoint=request.url.path,
                exception=e,
            )
            raise
        else:
            process_time = time.time() - start_time
            route = getattr(request.scope.get("route"), "path", "unmatched")
            metrics.record_request(request.method, route, response.status_code, process_time)
            logger.log_request(
                method=request.method,
                endpoint=request.url.path,
                status_code=response.status_code,
                duration_ms=process_time * 1000,
                client=client_key(request, settings.xff),
            )
        finally:
            logger.clear_correlation_id()

        response.headers.update(CORS_HEADERS)
        response.headers["X-Request-ID"] = request_id
        return response

    for exception_type, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exception_type, handler)

    @app.get("/favicon.ico", include_in_schema=False)
    async def favicon() -> Response:
        return PlainTextResponse("404 page not found\n", status_code=404)

    @app.api_route("/", methods=["GET", "HEAD"], name="root")
    async def root(request: Request) -> Response:
        """List every version, plus ``latest``, with its URL."""
        snapshot = store.snapshot
        base_url = str(request.base_url)

        urls = {name: base_url + quote(name, safe="") for name in snapshot}
        # Always advertise latest, even without a literal latest version
        urls.setdefault(LATEST_VERSION, base_url + LATEST_VERSION)

        logger.log_lookup("root", client_key(request, settings.xff), "/", True)
        return respond(request, urls)

    @app.api_route("/{version}", methods=["GET", "HEAD"], name="version_metadata")
    @app.api_route("/{version}/{key:path}", methods=["GET", "HEAD"], name="metadata")
    async def metadata(request: Request, version: str, key: str = "") -> Response:
        """Answer a metadata query for the calling client."""
        snapshot = store.snapshot
        client = client_key(request, settings.xff)
        segments = path_segments(escaped_path(request))
        display_key = "".join(f"/{segment}" for segment in segments)

        logger.debug(
            f"Searching for: {display_key}",
            event_type="lookup_started",
            version=version,
            client=client,
        )
        value, found = resolve(snapshot, version, client, segments)

        known = version in snapshot or version == LATEST_VERSION
        metrics.record_lookup(version if known else "unknown", found)
        logger.log_lookup(version, client, display_key, found)
        if not found:
            raise NotFoundError()

        return respond(request, value)

    return app


def create_admin_app(
    store: AnswersStore,
    metrics: Optional[MetricsCollector] = None
) -> FastAPI:
    """
    Create the administrative application.

    Serves ``POST /v1/reload``, ``GET /healthz`` and ``GET /metrics``. It is
    meant to listen on a separate, private address.
    """
    metrics = metrics or get_metrics_collector()
    logger = get_logger("admin")

    app = FastAPI(
        title=f"{APP_NAME}-admin",
        version=VERSION,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.store = store

    @app.get("/favicon.ico", include_in_schema=False)
    async def favicon() -> Response:
        return PlainTextResponse("404 page not found\n", status_code=404)

    @app.post("/v1/reload", tags=["Admin"])
    async def reload_answers() -> Response:
        """
        Reload the answers file.

        Waits for the reload to finish; returns ``OK`` or the load error.
        """
        logger.debug("Received HTTP reload request", event_type="reload_requested")
        future = store.request_reload(ReloadSource.ADMIN)
        try:
            await asyncio.wrap_future(future)
        except Exception as e:
            # Already logged by the store; report the failure to the caller
            return PlainTextResponse(str(e), status_code=500)
        return PlainTextResponse("OK")

    @app.get("/healthz", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        """Report store state and the outcome of the last reload."""
        last_error = store.last_error
        return HealthResponse(
            status="ok" if last_error is None else "degraded",
            state=store.state.value,
            version=VERSION,
            git=GIT_SHA,
            versions=sorted(store.snapshot),
            reloadCount=store.reload_count,
            lastReloadAt=store.last_reload_at,
            lastError=str(last_error) if last_error is not None else None,
        )

    @app.get("/metrics", tags=["Monitoring"])
    async def get_metrics() -> Response:
        """Prometheus metrics endpoint."""
        return Response(
            content=metrics.get_metrics(),
            media_type=metrics.get_metrics_content_type(),
        )

    return app
