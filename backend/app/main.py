"""FastAPI application entry point"""
import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from app.api import auth, discord, wordle
from app.core.config import APP_VERSION, settings
from app.core.exceptions import WordleError
from app.core.logging import setup_logging
from app.core.middleware import (
    global_exception_handler, security_middleware,
    setup_cors_middleware, wordle_exception_handler
)
from app.core.otel import (
    initialize_otel, instrument_fastapi, instrument_httpx,
    instrument_sqlalchemy, setup_otel_logging
)
from app.db.redis import get_redis_client
from app.db.session import engine, init_db

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    if initialize_otel():
        if setup_otel_logging():
            logger.info(f"OpenTelemetry fully initialized, exporting to {settings.OTEL_EXPORTER_OTLP_ENDPOINT}")
        else:
            logger.warning("OpenTelemetry metrics/traces initialized but logging setup failed")
    else:
        logger.info("OpenTelemetry not configured - running without distributed tracing")

    logger.info("Initializing database...")
    init_db()

    logger.info("Testing Redis connection...")
    get_redis_client().ping()

    instrument_sqlalchemy(engine)

    from app.tasks.cleanup import cleanup_task
    cleanup = asyncio.create_task(cleanup_task())
    logger.info("Notification cleanup task started")

    yield

    logger.info("Shutting down...")
    cleanup.cancel()


app = FastAPI(
    title="Wordle Hub Backend",
    description="Daily word game with Discord login and result notifications",
    version=APP_VERSION,
    lifespan=lifespan
)

instrument_fastapi(app)
instrument_httpx()

setup_cors_middleware(app)
app.middleware("http")(security_middleware)

app.include_router(auth.router)
app.include_router(wordle.router)
app.include_router(discord.router)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies are plain validation errors (400)"""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", []) if part != "body")
    message = f"{location}: {first.get('msg', 'invalid value')}" if location else first.get("msg", "Invalid request")
    return JSONResponse(status_code=400, content={"success": False, "error": message})


app.add_exception_handler(WordleError, wordle_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)


@app.get("/metrics")
def metrics_endpoint():
    """Prometheus metrics endpoint"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}
