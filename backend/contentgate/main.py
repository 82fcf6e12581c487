"""FastAPI application entry point"""
import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from contentgate import __version__
from contentgate.api import content
from contentgate.core import otel
from contentgate.core.config import settings
from contentgate.core.logging import setup_logging
from contentgate.core.middleware import register_exception_handlers, security_middleware, setup_cors_middleware
from contentgate.db.session import engine, init_db
from contentgate.models import Base  # noqa: F401  registers all models with Base.metadata
from contentgate.tasks.rate_limit_sweep import rate_limit_sweep_task

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    # Startup
    if otel.initialize_otel():
        if otel.setup_otel_logging():
            logger.info(f"OpenTelemetry fully initialized, exporting to {settings.OTEL_EXPORTER_OTLP_ENDPOINT}")
        else:
            logger.warning("OpenTelemetry metrics/traces initialized but logging setup failed")
    else:
        logger.info("OpenTelemetry not configured - running without distributed tracing")

    logger.info("Initializing database...")
    try:
        init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    otel.instrument_sqlalchemy(engine)

    logger.info("Starting rate limit sweep task...")
    sweep_task = asyncio.create_task(rate_limit_sweep_task())

    yield

    # Shutdown
    logger.info("Shutting down...")
    sweep_task.cancel()
    try:
        await sweep_task
    except asyncio.CancelledError:
        pass


# Create FastAPI app
app = FastAPI(
    title="Content Gate",
    description="Signed, time-limited access to licensed documents and videos",
    version=__version__,
    lifespan=lifespan
)

otel.instrument_fastapi(app)
setup_cors_middleware(app)
app.middleware("http")(security_middleware)
register_exception_handlers(app)

app.include_router(content.router)


# Prometheus metrics endpoint
@app.get("/metrics")
def metrics_endpoint():
    """Prometheus metrics endpoint"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


# Health check endpoint
@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}
