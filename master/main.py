"""
FastAPI application entry point for the WireGuard mesh master.

Holds the worker registry, hands out mesh addresses, provisions the full
mesh on the worker agents and serves the web UI.
"""
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import settings
from app.database import init_db
from app.limiter import limiter
from app.logging_config import setup_logging
from app.routers import workers
from worker import __version__

# Get logger for request logging
logger = logging.getLogger(__name__)

# Configure logging
setup_logging(settings.LOG_LEVEL)

WEB_DIR = Path(settings.WEB_DIR)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup
    logger.info("Starting up mesh master...")
    await init_db()
    logger.info(f"Mesh network {settings.MESH_NETWORK}, WireGuard port {settings.WG_PORT}")
    logger.info(f"Web UI served from {WEB_DIR}")

    yield
    # Shutdown
    logger.info("Shutting down mesh master...")


app = FastAPI(
    title="WireGuard Mesh Master",
    description="Worker registry and mesh provisioning API",
    version=__version__,
    lifespan=lifespan
)

# Configure rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Parse CORS origins from config
cors_origins = (
    ["*"] if settings.CORS_ORIGINS == "*"
    else [origin.strip() for origin in settings.CORS_ORIGINS.split(",")]
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests with method, path, client, and response status."""
    client = request.client.host if request.client else "unknown"
    logger.info(f"Request: {request.method} {request.url.path} from {client}")

    response = await call_next(request)

    logger.info(f"Response: {request.method} {request.url.path} | Status: {response.status_code}")
    return response


# Errors are plain text so the UI can show them as-is
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return PlainTextResponse(
        str(exc.detail),
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if any(error.get("type") == "json_invalid" for error in errors):
        message = "invalid json"
    else:
        parts = []
        for error in errors:
            loc = [str(part) for part in error.get("loc", ()) if part != "body"]
            field = ".".join(loc) or "body"
            parts.append(f"{field}: {error.get('msg', 'invalid')}")
        message = "invalid request: " + "; ".join(parts)
    logger.info(f"Rejected {request.method} {request.url.path}: {message}")
    return PlainTextResponse(message, status_code=400)


# Register routers
app.include_router(workers.router, tags=["workers"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


# Web UI
if (WEB_DIR / "static").is_dir():
    app.mount("/static", StaticFiles(directory=WEB_DIR / "static"), name="static")


@app.get("/", include_in_schema=False)
async def index():
    """Serve the dashboard page."""
    return FileResponse(WEB_DIR / "index.html")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
