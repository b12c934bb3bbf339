"""
Captcha Relay - Backend Application

FastAPI application that wires Playwright pages to a remote
CAPTCHA solving API.

Features:
    - Challenge detection and site key extraction with Playwright
    - createTask/getTaskResult solving with bounded, cancellable polling
    - Token injection into the page's response field

Run:
    python main.py
    # or
    uvicorn main:app --reload
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
import uvicorn

from config.settings import settings
from utils.logging import setup_logging, get_logger
from utils.exceptions import CaptchaRelayError
from utils.rate_limit import limiter, rate_limit_exceeded_handler
from services.browser import close_browser_pool, get_pool_status
from services.captcha import build_captcha_solver

from routers import captcha

# Initialize logging
setup_logging()
logger = get_logger(__name__)


# =============================================================================
# Application Lifespan
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Handles startup and shutdown events:
        - Startup: Build the CAPTCHA solver from settings
        - Shutdown: Close the HTTP session and the browser pool
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Debug mode: {settings.DEBUG}")

    app.state.captcha_solver = build_captcha_solver(settings)

    yield

    logger.info("Shutting down application")
    await app.state.captcha_solver.close()
    await close_browser_pool()


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title=settings.APP_NAME,
    description="CAPTCHA solving relay for browser automation",
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Attach rate limiter to app state
app.state.limiter = limiter


# =============================================================================
# Middleware
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(CaptchaRelayError)
async def captcha_relay_exception_handler(request: Request, exc: CaptchaRelayError):
    """
    Handle custom Captcha Relay exceptions.

    Returns standardized error response with appropriate status code.
    """
    logger.error(f"{exc.__class__.__name__}: {exc.message}", extra={"details": exc.details})
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


# Rate limit exceeded handler
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


# =============================================================================
# Routers
# =============================================================================

app.include_router(captcha.router)


# =============================================================================
# Health Check Endpoints
# =============================================================================

@app.get("/", tags=["Health"])
async def root():
    """
    Root endpoint - basic health check.

    Returns:
        dict: Simple status message
    """
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION
    }


@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """
    Detailed health check endpoint.

    Returns:
        dict: Health status with component details
    """
    solver = getattr(request.app.state, "captcha_solver", None)
    solver_ready = bool(solver and solver.has_api_key)

    return {
        "status": "healthy" if solver_ready else "degraded",
        "components": {
            "captcha_api_configured": solver_ready,
            "browser_pool": get_pool_status(),
        },
        "version": settings.APP_VERSION
    }


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
