"""
Authoring Console API - Main Application

FastAPI application hosting transient authoring sessions: the phase
controller, outline editing, draft editing, saving, and optimistic
ordering of saved items.

Run with:
    uvicorn src.api.main:app --reload --port 8000

API Documentation available at:
    - Swagger UI: http://localhost:8000/docs
    - ReDoc: http://localhost:8000/redoc
"""

import logging
import logging.handlers
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from src.logging_utils import configure_safe_logging

# Load .env from project root so CONTENT_API_URL and friends are available
load_dotenv(Path(__file__).parent.parent.parent / ".env")

from src.api.deps import get_settings

# =============================================================================
# File-based logging (survives stdout/pipe issues)
# =============================================================================
_LOG_FILE = get_settings().log_file
_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_root_logger = logging.getLogger()
_root_logger.setLevel(logging.INFO)

if not any(isinstance(h, logging.handlers.RotatingFileHandler) for h in _root_logger.handlers):
    _file_handler = logging.handlers.RotatingFileHandler(
        _LOG_FILE,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=3,
    )
    _file_handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    _file_handler.setLevel(logging.INFO)
    _root_logger.addHandler(_file_handler)

# stderr too, tolerating closed pipes on reload
configure_safe_logging(logging.INFO)

# Suppress noisy libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("aiohttp").setLevel(logging.WARNING)

# =============================================================================

from fastapi.middleware.cors import CORSMiddleware

from src.api.routers import health, saved_items, sessions

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown tasks."""
    settings = get_settings()
    logger.info(
        "Authoring API starting (content backend %s, generation timeout %ss, %d retries)",
        settings.content_api_url,
        settings.generation_timeout_seconds,
        settings.max_retries,
    )
    if not settings.content_api_token:
        logger.warning("CONTENT_API_TOKEN not set, backend calls are unauthenticated")
    yield


app = FastAPI(
    lifespan=lifespan,
    title="Authoring Console API",
    description="""
    API for the multi-phase content authoring console.

    ## Features

    - **Sessions**: input → angles → context → outline → hook → draft → saved
    - **Editing**: structured outline edits and draft edits with revert
    - **Saved items**: optimistic drag-and-drop ordering with rollback
    """,
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# Configure CORS for frontend applications
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",  # Next.js default
        "http://127.0.0.1:3000",
        "http://localhost:3001",  # Next.js alternate port
        "http://127.0.0.1:3001",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(health.router)
app.include_router(sessions.router)
app.include_router(saved_items.router)


@app.get("/")
def root():
    """Root endpoint with API information."""
    return {
        "name": "Authoring Console API",
        "version": "0.1.0",
        "docs": "/docs",
        "health": "/health",
    }
