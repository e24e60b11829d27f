"""
main.py
FastAPI application: EngiGenius AI relay
Single-hop streaming relay to an OpenAI-compatible AI gateway
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import time

from engigenius.core.config import settings
from engigenius.core.errors import ConfigurationError
from engigenius.core.logger import get_logger
from engigenius.routers import ask_ai, health
from engigenius.services.record_store import RestRecordStore, record_store

logger = get_logger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# LIFESPAN
# ─────────────────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("=" * 60)
    logger.info(f"  {settings.APP_NAME}  v{settings.APP_VERSION}")
    logger.info("=" * 60)
    logger.info(f"  AI Model      : {settings.AI_MODEL}")
    logger.info(f"  AI Gateway    : {settings.AI_GATEWAY_BASE_URL}")
    logger.info(f"  Record Store  : {settings.RECORD_STORE}")
    logger.info(f"  Host          : {settings.HOST}:{settings.PORT}")
    logger.info(f"  Debug         : {settings.DEBUG}")
    logger.info("=" * 60)
    if not settings.AI_GATEWAY_API_KEY:
        logger.warning("AI_GATEWAY_API_KEY is not set; every /ask-ai call will fail with 500")

    yield

    if isinstance(record_store, RestRecordStore):
        await record_store.aclose()
    logger.info("Shutting down EngiGenius relay...")


# ─────────────────────────────────────────────────────────────────────────────
# APP
# ─────────────────────────────────────────────────────────────────────────────

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=(
        "EngiGenius: AI study assistant relay\n\n"
        "Streams exam-ready answers from an OpenAI-compatible gateway."
    ),
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


# ─────────────────────────────────────────────────────────────────────────────
# MIDDLEWARE
# ─────────────────────────────────────────────────────────────────────────────

def cors_headers(request: Request) -> dict[str, str]:
    origins = settings.ALLOWED_ORIGINS
    origin = request.headers.get("origin")
    if "*" in origins:
        allow_origin = "*"
    elif origin in origins:
        allow_origin = origin
    else:
        return {}
    return {
        "Access-Control-Allow-Origin": allow_origin,
        "Access-Control-Allow-Headers": settings.CORS_ALLOW_HEADERS,
        "Access-Control-Allow-Methods": "POST, OPTIONS",
    }


@app.middleware("http")
async def cors_middleware(request: Request, call_next):
    """Permissive CORS on every response, pre-flight included."""
    response = await call_next(request)
    response.headers.update(cors_headers(request))
    return response


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    """Log every request with method, path, status, and latency."""
    t0 = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = int((time.perf_counter() - t0) * 1000)

    # for streams this is time-to-headers, not time-to-last-byte
    response.headers["X-Latency-Ms"] = str(elapsed_ms)

    log_level = "warning" if response.status_code >= 400 else "info"
    getattr(logger, log_level)(
        f"{request.method} {request.url.path} → {response.status_code} [{elapsed_ms}ms]"
    )

    return response


# ─────────────────────────────────────────────────────────────────────────────
# EXCEPTION HANDLERS
# ─────────────────────────────────────────────────────────────────────────────

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.info(f"Rejected body on {request.url.path}: {exc.errors()[:3]}")
    return JSONResponse(status_code=400, content={"error": "Invalid request body"})


@app.exception_handler(ConfigurationError)
async def configuration_exception_handler(request: Request, exc: ConfigurationError):
    logger.error(f"Configuration error on {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": str(exc)})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    # runs outside the http middlewares, so CORS headers are added here
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": str(exc) or "Unknown error"},
        headers=cors_headers(request),
    )


# ─────────────────────────────────────────────────────────────────────────────
# ROUTERS
# ─────────────────────────────────────────────────────────────────────────────

app.include_router(health.router, tags=["Health"])
app.include_router(ask_ai.router, tags=["Ask AI"])


# ─────────────────────────────────────────────────────────────────────────────
# ROOT
# ─────────────────────────────────────────────────────────────────────────────

@app.get("/", tags=["Root"])
async def root():
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "online",
        "docs": "/docs",
    }


# ─────────────────────────────────────────────────────────────────────────────
# DEV RUN
# ─────────────────────────────────────────────────────────────────────────────

def run():
    import uvicorn

    uvicorn.run(
        "engigenius.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info",
        workers=1,
        access_log=False,  # handled by our middleware
    )


if __name__ == "__main__":
    run()
