"""
Interview Integrity Monitor - FastAPI Application
"""
import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .config import settings
from .monitor.api import router as monitor_router, close_all_sessions
from .utils.logging_config import setup_logging

setup_logging(
    level=settings.LOG_LEVEL,
    log_to_file=settings.LOG_TO_FILE,
    log_dir=settings.LOG_DIR
)

logger = logging.getLogger(__name__)


app = FastAPI(
    title=settings.APP_NAME,
    description="Real-time behavioral integrity monitoring for remote technical interviews",
    version=__version__,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None
)


QUIET_PATHS = {"/health", "/api/monitor/health", "/favicon.ico"}


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """One log line per request with status and duration"""
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} failed: {e}")
        raise

    if request.url.path not in QUIET_PATHS:
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.0f}ms)")
    return response


# CORS - the monitored client runs in the candidate's browser
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,  # Must be False when using wildcard origin
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(monitor_router)


@app.on_event("startup")
async def startup_event():
    """Log service configuration."""
    logger.info(f"{settings.APP_NAME} starting")
    logger.info(
        f"Presence poll: {settings.PRESENCE_POLL_SECONDS}s, "
        f"fast keystroke gap: {settings.FAST_KEYSTROKE_GAP_MS}ms, "
        f"velocity threshold: {settings.VELOCITY_WPM_THRESHOLD} WPM, "
        f"paste threshold: {settings.PASTE_LENGTH_THRESHOLD} chars"
    )
    if not settings.ANALYSIS_API_URL:
        logger.info("Code review service not configured; /analyze returns the fallback verdict")


@app.on_event("shutdown")
async def shutdown_event():
    """Stop running sessions so camera handles are released."""
    closed = close_all_sessions()
    if closed:
        logger.info(f"Closed {closed} monitoring sessions on shutdown")


@app.get("/")
async def root():
    """Service info"""
    return {
        "service": settings.APP_NAME,
        "docs": "/docs" if settings.DEBUG else None,
        "monitor": "/api/monitor"
    }


@app.get("/health")
async def health():
    """Health check"""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": __version__
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("integrity_monitor.main:app", host="0.0.0.0", port=8002, reload=settings.DEBUG)
