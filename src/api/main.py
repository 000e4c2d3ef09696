"""
Story Aggregation API - Main Application

FastAPI application exposing story lifecycle, merge and live-eligibility
endpoints.

Run with:
    uvicorn src.api.main:app --reload --port 8000

API Documentation available at:
    - Swagger UI: http://localhost:8000/docs
    - ReDoc: http://localhost:8000/redoc
"""

import logging
import logging.handlers
import uuid
from datetime import datetime, timezone
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.logging_utils import SafeStreamHandler

# =============================================================================
# File-based logging (survives stdout/pipe issues)
# =============================================================================
_LOG_FILE = "/tmp/story-aggregation.log"
_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_root_logger = logging.getLogger()
_root_logger.setLevel(logging.INFO)

_file_handler = logging.handlers.RotatingFileHandler(
    _LOG_FILE,
    maxBytes=10 * 1024 * 1024,  # 10MB
    backupCount=3,
)
_file_handler.setFormatter(logging.Formatter(_LOG_FORMAT))
_file_handler.setLevel(logging.INFO)
_root_logger.addHandler(_file_handler)

_stream_handler = SafeStreamHandler()
_stream_handler.setFormatter(logging.Formatter(_LOG_FORMAT))
_stream_handler.setLevel(logging.INFO)
_root_logger.addHandler(_stream_handler)

# Suppress noisy libraries
logging.getLogger("urllib3").setLevel(logging.WARNING)

# =============================================================================

# Load .env from project root before configuration is read
load_dotenv(Path(__file__).parent.parent.parent / ".env")

from src.api.routers import health, stories
from src.story_aggregation.errors import StoryError

logger = logging.getLogger(__name__)

TRACE_HEADER = "X-Trace-ID"


app = FastAPI(
    title="Story Aggregation API",
    description="""
    Story records with rolled-up comment counts.

    ## Features

    - **Lifecycle**: find-or-create, create, update, open/close, remove
    - **Merge**: consolidate several stories into one
    - **Live**: real-time update eligibility per story
    """,
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    """
    Give every request a trace id and one `now` timestamp.

    The trace id doubles as the correlation token for mutations and is
    returned in the X-Trace-ID header.
    """
    trace_id = str(uuid.uuid4())
    request.state.trace_id = trace_id
    request.state.now = datetime.now(timezone.utc)

    response = await call_next(request)
    response.headers[TRACE_HEADER] = trace_id
    return response


@app.exception_handler(StoryError)
async def story_error_handler(request: Request, exc: StoryError):
    logger.info(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    content = {"error": exc.code, "detail": exc.message}
    reason = getattr(exc, "reason", None)
    if reason is not None:
        content["reason"] = reason.value
    return JSONResponse(status_code=exc.status_code, content=content)


# Register routers
app.include_router(health.router)
app.include_router(stories.router)


@app.get("/")
def root():
    """Root endpoint with API information."""
    return {
        "name": "Story Aggregation API",
        "version": "0.1.0",
        "docs": "/docs",
        "health": "/health",
    }
