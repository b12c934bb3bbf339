"""
CAPTCHA Router - API Endpoints for CAPTCHA Solving

Provides REST API for:
- Solving a known site key (token only, no browser)
- Opening a page, detecting its challenge, solving and injecting
- Checking the solving account balance

A client that disconnects mid-solve cancels remote polling.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from playwright.async_api import Error as PlaywrightError
from pydantic import BaseModel, Field

from config.settings import settings
from utils.logging import get_logger
from utils.exceptions import InvalidRequestError, MissingApiKey
from utils.rate_limit import limiter, RATE_LIMITS
from utils.sanitize import validate_page_url, sanitize_site_key
from services.browser import get_browser_context
from services.captcha import (
    CaptchaSolverService,
    CaptchaSolveResult,
    CaptchaType,
    SolveStatus,
    parse_captcha_type,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/captcha", tags=["CAPTCHA"])


# =============================================================================
# Request/Response Models
# =============================================================================

class SolveRequest(BaseModel):
    """Request to solve a challenge whose site key is already known."""
    site_key: str = Field(..., description="data-sitekey of the challenge widget")
    page_url: str = Field(..., description="URL of the page carrying the challenge")
    captcha_type: str = Field("recaptcha_v2", description="recaptcha_v2, hcaptcha or cloudflare-turnstile")


class SolvePageRequest(BaseModel):
    """Request to open a page and solve whatever challenge it carries."""
    page_url: str = Field(..., description="URL to open in the browser")


class SolveResponse(BaseModel):
    """Serialized CaptchaSolveResult."""
    success: bool
    status: str
    captcha_type: Optional[str] = None
    token: Optional[str] = None
    error: Optional[str] = None
    task_id: Optional[str] = None
    injected: bool = False
    solve_time_seconds: float = 0.0


class BalanceResponse(BaseModel):
    balance: float


# =============================================================================
# Dependencies
# =============================================================================

def get_captcha_solver(request: Request) -> CaptchaSolverService:
    """Solver built at startup and kept on app state."""
    return request.app.state.captcha_solver


STATUS_CODES = {
    SolveStatus.SOLVED: 200,
    SolveStatus.NOT_FOUND: 404,
    SolveStatus.FAILED: 422,
}


def _respond(result: CaptchaSolveResult) -> JSONResponse:
    return JSONResponse(status_code=STATUS_CODES[result.status], content=result.to_dict())


@asynccontextmanager
async def _cancel_on_disconnect(request: Request, interval: float = 1.0):
    """Yield an event that is set once the HTTP client goes away."""
    cancel_event = asyncio.Event()

    async def watch():
        while not cancel_event.is_set():
            if await request.is_disconnected():
                logger.info(f"Client disconnected from {request.url.path}; cancelling solve")
                cancel_event.set()
                return
            await asyncio.sleep(interval)

    watcher = asyncio.create_task(watch())
    try:
        yield cancel_event
    finally:
        watcher.cancel()
        try:
            await watcher
        except asyncio.CancelledError:
            pass


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/solve", response_model=SolveResponse)
@limiter.limit(RATE_LIMITS["solve"])
async def solve_site_key(
    request: Request,
    body: SolveRequest,
    solver: CaptchaSolverService = Depends(get_captcha_solver),
):
    """
    Solve a challenge for a known site key and page URL.

    Returns the token on success (200); 422 when the service could not
    produce one.
    """
    site_key = sanitize_site_key(body.site_key)
    page_url = validate_page_url(body.page_url)
    captcha_type = parse_captcha_type(body.captcha_type)
    if captcha_type is CaptchaType.UNKNOWN:
        raise InvalidRequestError(
            f"Unsupported CAPTCHA type: {body.captcha_type}",
            field="captcha_type",
        )
    if not solver.has_api_key:
        raise MissingApiKey()

    async with _cancel_on_disconnect(request) as cancel_event:
        result = await solver.solve_site_key(
            site_key, page_url, captcha_type=captcha_type, cancel_event=cancel_event
        )

    return _respond(result)


@router.post("/solve-page", response_model=SolveResponse)
@limiter.limit(RATE_LIMITS["solve"])
async def solve_page(
    request: Request,
    body: SolvePageRequest,
    solver: CaptchaSolverService = Depends(get_captcha_solver),
):
    """
    Open the page, detect its challenge, solve it and inject the token.

    404 when the page carries no challenge.
    """
    page_url = validate_page_url(body.page_url)
    if not solver.has_api_key:
        raise MissingApiKey()

    async with _cancel_on_disconnect(request) as cancel_event:
        async with get_browser_context() as context:
            page = await context.new_page()
            try:
                await page.goto(
                    page_url,
                    wait_until="domcontentloaded",
                    timeout=settings.PAGE_LOAD_TIMEOUT_MS,
                )
            except PlaywrightError as e:
                logger.warning(f"❌ Could not load {page_url}: {e}")
                return JSONResponse(
                    status_code=502,
                    content=CaptchaSolveResult(
                        success=False,
                        status=SolveStatus.FAILED,
                        error=f"Could not load page: {e}",
                    ).to_dict(),
                )

            result = await solver.solve(page, page_url=page_url, cancel_event=cancel_event)

    return _respond(result)


@router.get("/balance", response_model=BalanceResponse)
@limiter.limit(RATE_LIMITS["balance"])
async def get_balance(
    request: Request,
    solver: CaptchaSolverService = Depends(get_captcha_solver),
):
    """Remaining balance on the solving account."""
    if not solver.has_api_key:
        raise MissingApiKey()
    balance = await solver.client.get_balance()
    return {"balance": balance}
