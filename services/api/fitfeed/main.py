"""
fitfeed API — entry point.

Startup sequence:
  1. Configure OTel tracing (→ Jaeger via OTLP)
  2. Create tables if not present
  3. Connect to Redis (recent searches)
  4. Initialise the MinIO client & media bucket
  5. Expose Prometheus /metrics endpoint
"""
import logging

from contextlib import asynccontextmanager
from fastapi import FastAPI
from prometheus_client import make_asgi_app

from fitfeed.config import settings
from fitfeed.database import engine, init_db
from fitfeed.telemetry import setup_tracing, instrument_app
from fitfeed.clients.redis_client import close_redis, init_redis
from fitfeed.clients.storage_client import init_storage
from fitfeed.routers import (
    comments,
    exercises,
    explore,
    notifications,
    posts,
    rank,
    routines,
    users,
    workouts,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)

# Set up tracing before the app is created so all imports are instrumented
setup_tracing()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup and shutdown of all external connections."""
    logger.info("Starting fitfeed API (env=%s)", settings.environment)

    await init_db()
    await init_redis()
    init_storage()                  # sync, boto3 is not async

    logger.info("All services connected. API ready.")
    yield

    logger.info("Shutting down...")
    await close_redis()
    await engine.dispose()


app = FastAPI(
    title="fitfeed API",
    description=(
        "Social-fitness backend: posts, comments, routines, workouts, follows and "
        "engagement-ranked explore pages."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

# ── Routers ────────────────────────────────────────────────────────────────
app.include_router(users.router, prefix="/users", tags=["Users"])
app.include_router(posts.router, prefix="/posts", tags=["Posts"])
app.include_router(comments.router, tags=["Comments"])
app.include_router(routines.router, prefix="/routines", tags=["Routines"])
app.include_router(exercises.router, prefix="/exercises", tags=["Exercises"])
app.include_router(workouts.router, prefix="/workouts", tags=["Workouts"])
app.include_router(explore.router, prefix="/explore", tags=["Explore"])
app.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
app.include_router(rank.router, prefix="/rank", tags=["Ranking"])

# ── Prometheus metrics endpoint ────────────────────────────────────────────
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# ── OTel FastAPI instrumentation ──────────────────────────────────────────
instrument_app(app)


@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok", "service": settings.service_name}
