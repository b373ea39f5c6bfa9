"""FastAPI application entry point."""
import logging

from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from markets.config import settings
from markets.database import Base, engine
from markets.errors import register_error_handlers
from markets.jobs.reset_cycles_job import run_reset_cycles_job

# Import routers
from markets.routers import hours, market_reactions, comments, users, cycles

# Import all models so Base.metadata knows about them
from markets.models.document import Document  # noqa: F401

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Market Discovery",
    description="Opening hours, saved-market alerts and community reactions for nearby markets",
    version="0.1.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Register routers
app.include_router(hours.router, prefix="/api/hours", tags=["Hours"])
app.include_router(market_reactions.router, prefix="/api/markets", tags=["Markets"])
app.include_router(comments.router, prefix="/api/markets", tags=["Comments"])
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(cycles.router, prefix="/api/cycles", tags=["Cycles"])

_scheduler = BackgroundScheduler()


@app.on_event("startup")
def on_startup():
    """Create database tables on startup (for SQLite dev mode) and start background jobs."""
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)
    if settings.SCHEDULER_ENABLED:
        _scheduler.add_job(
            run_reset_cycles_job,
            "interval",
            hours=settings.RESET_JOB_INTERVAL_HOURS,
            id="reset_reaction_cycles",
            replace_existing=True,
        )
        _scheduler.start()
        logger.info("Scheduler started: cycle reset every %dh", settings.RESET_JOB_INTERVAL_HOURS)


@app.on_event("shutdown")
def on_shutdown():
    if _scheduler.running:
        _scheduler.shutdown(wait=False)


@app.get("/api/health")
def health_check():
    return {"status": "ok"}
