import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv

# Load environment variables FIRST - before any other imports
load_dotenv()

# ruff: noqa: E402
from fastapi import FastAPI
from fastapi import Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from pillcount import __version__
from pillcount.config import get_settings
from pillcount.constants import API_PREFIX
from pillcount.constants import PERMUTATIONS_PREFIX
from pillcount.constants import TASKS_PREFIX
from pillcount.database import initialize_database
from pillcount.dependencies import get_cache_store
from pillcount.dependencies import get_deferred_worker
from pillcount.dependencies import get_dispatcher
from pillcount.dependencies import get_task_store
from pillcount.events.publisher import drain_event_publisher
from pillcount.routers.metrics import router as metrics_router
from pillcount.routers.permutations import router as permutations_router
from pillcount.routers.tasks import router as tasks_router
from pillcount.services.task_recovery import recover_stale_tasks
from pillcount.utils.log import configure_logging

_settings = get_settings()

# --------------------------------------------------------------------------
# LOGGING CONFIGURATION
# --------------------------------------------------------------------------
#
# - Default log level: INFO (dev-friendly)
# - Can be set at runtime with LOG_LEVEL env (e.g. LOG_LEVEL=WARNING for CI)
# - LOG_JSON=1 switches structlog output to JSON lines
#
configure_logging(_settings.log_level, json=_settings.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown lifecycle."""
    # Startup phase
    initialize_database()
    logger.info("Database tables initialized")

    worker = get_deferred_worker()
    worker.start()

    if _settings.task_recovery_enabled and not _settings.testing:
        try:
            await recover_stale_tasks(get_task_store(), worker, stale_after=_settings.task_stale_after_seconds)
        except Exception as e:
            logger.error(f"Deferred task recovery failed during startup: {e}")

    yield  # Application is running

    # Shutdown phase
    worker.stop()
    await get_dispatcher(get_cache_store(), get_task_store()).drain()
    await drain_event_publisher()
    logger.info("Background services stopped")


# Create FastAPI APP with lifespan handler
app = FastAPI(
    title="Pill Permutations API",
    version=__version__,
    description="Counts the ways to take N pills at one or two pills per day.",
    lifespan=lifespan,
)

# ------------------------------------------------------------------
# CORS – open wildcard unless ``ALLOWED_CORS_ORIGINS`` restricts it.
# ------------------------------------------------------------------

cors_origins = _settings.cors_origins


@app.exception_handler(Exception)
async def ensure_cors_on_errors(request: Request, exc: Exception):
    """Return a generic 500 that still carries CORS headers."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    origin = request.headers.get("origin")
    headers = {"Vary": "Origin"}
    if origin and ("*" in cors_origins or origin in cors_origins):
        headers["Access-Control-Allow-Origin"] = "*" if "*" in cors_origins else origin

    return JSONResponse(status_code=500, content={"success": False, "error": "Internal Error!"}, headers=headers)


app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,
    allow_methods=["GET"],
    allow_headers=["*"],
)

# Include our API routers with centralized prefixes
app.include_router(permutations_router, prefix=f"{API_PREFIX}{PERMUTATIONS_PREFIX}")
app.include_router(tasks_router, prefix=f"{API_PREFIX}{TASKS_PREFIX}")
app.include_router(metrics_router)  # no prefix – Prometheus expects /metrics


@app.get("/")
async def read_root():
    """Return a simple message to indicate the API is working."""
    return {"message": "Pill Permutations API is running"}


@app.get("/health")
async def health_check():
    """Health check endpoint with database and worker status."""
    from pillcount.database import get_session_factory
    from pillcount.database import run_in_db_thread

    def _ping():
        with get_session_factory()() as db:
            return db.execute(text("SELECT 1")).fetchone()

    health_status = {"status": "healthy"}
    checks = {}

    try:
        row = await run_in_db_thread(_ping)
        checks["database"] = {"status": "pass" if row and row[0] == 1 else "fail"}
    except Exception as e:
        checks["database"] = {"status": "fail", "error": str(e)}
        health_status["status"] = "unhealthy"

    checks["deferred_worker"] = {"status": "pass" if get_deferred_worker().running else "stopped"}

    health_status["checks"] = checks
    return health_status
