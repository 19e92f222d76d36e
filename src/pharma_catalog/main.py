# src/pharma_catalog/main.py
import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.routing import Match
from starlette.types import ASGIApp

from pharma_catalog.api.dependencies import close_product_repository, get_product_repository
from pharma_catalog.api.router import api_router
from pharma_catalog.core.config import Settings, get_settings
from pharma_catalog.core.metrics import REQUEST_COUNT, REQUEST_DURATION

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("pharma_catalog.request")


def internal_error_response(request: Request) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal error"},
    )


def route_template(request: Request) -> str:
    """Pfad-Template der passenden Route ("/products/{product_id}"), begrenzt die Label-Menge."""
    for route in request.app.router.routes:
        match, _ = route.matches(request.scope)
        if match == Match.FULL:
            return str(getattr(route, "path", "unmatched"))
    return "unmatched"


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            # Innerhalb des Stacks, damit 500er gezählt werden und CORS-Header bekommen
            response = internal_error_response(request)
        elapsed = time.perf_counter() - started
        REQUEST_COUNT.labels(
            method=request.method,
            path=route_template(request),
            status_code=str(response.status_code),
        ).inc()
        REQUEST_DURATION.labels(method=request.method).observe(elapsed)
        logger.info(
            "%s %s %s %.1f ms",
            request.method,
            request.url.path,
            response.status_code,
            elapsed * 1000,
        )
        return response


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Weist Requests ab, deren Content-Length das konfigurierte Limit übersteigt."""

    def __init__(self, app: ASGIApp, max_body_bytes: int) -> None:
        super().__init__(app)
        self._max_body_bytes = max_body_bytes

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit():
            if int(content_length) > self._max_body_bytes:
                return JSONResponse(
                    status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                    content={"detail": "Request body too large"},
                )
        return await call_next(request)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup: Store wird lazy beim ersten Request geöffnet
    yield
    # Shutdown: Verbindungen sauber schließen
    await close_product_repository()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    docs_url="/docs" if settings.serve_docs else None,
    redoc_url=None,
    openapi_url="/openapi.json" if settings.serve_docs else None,
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # Nur noch Fehler aus den Middlewares selbst landen hier
    return internal_error_response(request)


# Body Limit
app.add_middleware(BodySizeLimitMiddleware, max_body_bytes=settings.max_body_bytes)

# Metrics + Request-Log
app.add_middleware(MetricsMiddleware)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type"],
)

app.include_router(api_router)


@app.get("/healthz", tags=["Health"])
async def health_check() -> dict[str, str]:
    return {"status": "ok", "version": settings.app_version}


@app.get("/readyz", tags=["Health"])
async def readiness_check(current: Settings = Depends(get_settings)) -> JSONResponse:
    # Store wird hier aufgelöst, damit auch ein fehlgeschlagenes Öffnen 503 liefert
    try:
        repository = await get_product_repository(current)
        await repository.ping()
    except Exception:
        logger.exception("Readiness check failed")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"status": "unavailable"}
        )
    return JSONResponse(content={"status": "ready"})


@app.get("/metrics", tags=["Monitoring"])
async def metrics_endpoint() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
