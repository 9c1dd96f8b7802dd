"""
Survey Analytics API - Main Application

- Background job runner and maintenance scheduler tied to the app lifespan
- RFC 7807 error responses
- Logging without secrets (no API keys, no full database URL)
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging

from survey_analytics.api.v2.router import api_router
from survey_analytics.config import settings
from survey_analytics.core.metrics import get_registry
from survey_analytics.database import init_db
from survey_analytics.exceptions import JobConflictError, SurveyAPIException, create_exception_handlers
from survey_analytics.middleware import CorrelationIdMiddleware, MetricsMiddleware
# Import all models to register them with SQLAlchemy metadata before init_db()
import survey_analytics.models  # noqa: F401
from survey_analytics.services.ai_client import get_ai_client
from survey_analytics.services.cache_service import get_cache_service
from survey_analytics.tasks.job_runner import get_job_runner
from survey_analytics.tasks.maintenance import start_maintenance, stop_maintenance

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting Survey Analytics API...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    # Only the scheme, never credentials
    logger.info(f"Database driver: {settings.DATABASE_URL.split('://', 1)[0]}")
    try:
        await init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {type(e).__name__}")
        logger.warning("App starting without database - some features may not work")

    runner = get_job_runner()
    await runner.start()
    start_maintenance()
    yield

    logger.info("Shutting down Survey Analytics API...")
    stop_maintenance()
    await runner.stop()
    await get_ai_client().close()
    await get_cache_service().close()


docs_url = "/docs" if settings.DOCS_ENABLED else None
redoc_url = "/redoc" if settings.DOCS_ENABLED else None

app = FastAPI(
    title="Survey Analytics API",
    description="Survey analytics: synthetic data, AI insights and live sentiment progress",
    version=VERSION,
    docs_url=docs_url,
    redoc_url=redoc_url,
    lifespan=lifespan,
)

handlers = create_exception_handlers(settings.DEBUG)
app.add_exception_handler(SurveyAPIException, handlers["api"])
app.add_exception_handler(JobConflictError, handlers["job"])
app.add_exception_handler(StarletteHTTPException, handlers["http"])
app.add_exception_handler(RequestValidationError, handlers["validation"])
app.add_exception_handler(Exception, handlers["generic"])

allowed_origins = [
    settings.FRONTEND_URL,
    "http://localhost:5173",  # Vite dev server
    "http://localhost:3000",
]

app.add_middleware(MetricsMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v2")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": VERSION,
        "environment": settings.ENVIRONMENT,
        "jobs_running": get_job_runner().running,
        "cache": get_cache_service().get_stats(),
    }


@app.get("/metrics", response_class=Response)
async def get_metrics():
    """Prometheus text exposition format."""
    return Response(
        content=get_registry().format_prometheus(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )


# For running with uvicorn directly (development only)
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "survey_analytics.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
