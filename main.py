"""
Lesson engine host process.

Architecture:
- One Python process, one asyncio event loop
- Two peer services running concurrently:
  1. FastAPI (health endpoint for the platform's process manager)
  2. Lesson engine scheduler (class status updates, reminders, sweeps)

We use FastAPI's lifespan to manage startup/shutdown. The lifespan pattern
gives us uvicorn's signal handling for free.

Run with: python main.py [--port PORT] [--dev]
"""

import logging
import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path

project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from dotenv import load_dotenv

# Load .env.local first (if exists), then .env as fallback
# .env.local is gitignored and used for local dev overrides
load_dotenv(project_root / ".env.local")  # Local overrides (gitignored)
load_dotenv()  # Fallback to .env

import sentry_sdk
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from tutoring.config import check_required_env_vars, get_api_port, is_dev_mode
from tutoring.database import check_connection, close_engine
from tutoring.engine import LessonEngine, build_engine

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Set log levels from DEV_MODE. Run again once --dev has been parsed."""
    logging.basicConfig(format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    logging.getLogger().setLevel(logging.DEBUG if is_dev_mode() else logging.INFO)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)


configure_logging()

# Forced termination is acceptable once this passes with a job still running
SHUTDOWN_TIMEOUT_SECONDS = 10

_engine: LessonEngine | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan context manager.

    Starts the lesson engine alongside FastAPI and stops it on shutdown,
    waiting for running jobs so no write is interrupted.
    """
    global _engine

    sentry_dsn = os.environ.get("SENTRY_DSN")
    if sentry_dsn:
        sentry_sdk.init(
            dsn=sentry_dsn,
            environment="development" if is_dev_mode() else "production",
        )

    ok, messages = check_required_env_vars()
    for message in messages:
        logger.warning(message)
    if not ok:
        raise RuntimeError("Missing required environment variables")

    if not await check_connection():
        logger.warning("Database unreachable at startup, jobs will retry on their next run")

    _engine = build_engine()
    await _engine.verify_channels()
    _engine.start()
    logger.info("Lesson engine started")

    yield  # FastAPI runs here, the engine runs alongside it

    logger.info("Shutting down lesson engine...")
    await _engine.stop(timeout=SHUTDOWN_TIMEOUT_SECONDS)
    _engine = None
    await close_engine()  # Close database connections


app = FastAPI(
    title="Lesson Engine",
    lifespan=lifespan,
)


@app.get("/health")
async def health():
    """Health check endpoint with per-job status."""
    if _engine is None or not _engine.scheduler.is_running:
        return JSONResponse(status_code=503, content={"status": "starting"})
    return {
        "status": "healthy",
        "email_configured": _engine.email_channel.is_configured,
        "jobs": _engine.scheduler.status(),
    }


if __name__ == "__main__":
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="Lesson Engine Server")
    parser.add_argument(
        "--dev",
        action="store_true",
        help="Development mode (verbose logging, relaxed env checks)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=get_api_port(),
        help="Port to run the server on (default: API_PORT or 8000)",
    )
    args = parser.parse_args()

    # Set env var so it persists across uvicorn reloads
    if args.dev:
        os.environ["DEV_MODE"] = "true"
        configure_logging()

    # Pass app object directly (not string) to avoid module reimport issues
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=args.port,
    )
