"""
CAPTCHA Solver Service - Main Orchestrator

Handles one challenge encounter end to end:
1. Detect the widget and its site key on the page
2. Submit a solve task to the remote service
3. Poll (bounded, cancellable) until the task is ready or failed
4. Inject the token into the page

Failures are reported in the returned CaptchaSolveResult, never raised.
"""

import asyncio
import time
from typing import Optional

from playwright.async_api import Error as PlaywrightError

from config.settings import Settings, get_settings
from utils.logging import get_logger
from utils.exceptions import CaptchaError, SolveCancelled
from .client import CaptchaApiClient
from .detector import detect_captcha
from .injector import inject_token
from .models import (
    CaptchaType,
    CAPTCHA_PROFILES,
    CaptchaSolveResult,
    SolveStatus,
    TaskHandle,
    TaskStatus,
)

logger = get_logger(__name__)


class CaptchaSolverService:
    """
    CAPTCHA solving orchestrator.

    Usage:
        solver = build_captcha_solver()
        result = await solver.solve(page)
        if result.success:
            # Continue with form submission
        elif result.status is SolveStatus.NOT_FOUND:
            # Nothing to solve
    """

    def __init__(self, client: Optional[CaptchaApiClient] = None):
        """
        Args:
            client: Configured API client; without one every solve
                    attempt reports failure without touching the network
        """
        self._client = client

    @property
    def has_api_key(self) -> bool:
        """Check if a solving API client is configured."""
        return self._client is not None

    @property
    def client(self) -> Optional[CaptchaApiClient]:
        return self._client

    async def close(self):
        """Cleanup resources."""
        if self._client:
            await self._client.close()

    @staticmethod
    def _failed(
        error: str,
        captcha_type: Optional[CaptchaType] = None,
        task_id: Optional[str] = None,
    ) -> CaptchaSolveResult:
        return CaptchaSolveResult(
            success=False,
            status=SolveStatus.FAILED,
            captcha_type=captcha_type,
            error=error,
            task_id=task_id,
        )

    async def solve(
        self,
        page,
        page_url: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> CaptchaSolveResult:
        """
        Detect, solve and inject the CAPTCHA on a page.

        Args:
            page: Playwright page object
            page_url: URL reported to the solving service (defaults to page.url)
            cancel_event: Set it to abandon polling

        Returns:
            CaptchaSolveResult with success status and any token
        """
        start_time = time.monotonic()

        try:
            info = await detect_captcha(page)
        except PlaywrightError as e:
            logger.warning(f"⚠️ CAPTCHA detection failed: {e}")
            return self._failed(f"CAPTCHA detection failed: {e}")

        if not info.found:
            return CaptchaSolveResult(
                success=False,
                status=SolveStatus.NOT_FOUND,
                error="No CAPTCHA challenge found on page",
                solve_time_seconds=time.monotonic() - start_time,
            )

        if info.captcha_type not in CAPTCHA_PROFILES:
            return self._failed(
                f"Unsupported CAPTCHA type: {info.captcha_type.value}",
                captcha_type=info.captcha_type,
            )

        if not info.site_key:
            return self._failed(
                "CAPTCHA found but its site key could not be extracted",
                captcha_type=info.captcha_type,
            )

        result = await self.solve_site_key(
            info.site_key,
            page_url or page.url,
            captcha_type=info.captcha_type,
            cancel_event=cancel_event,
        )

        if result.success:
            result.injected = await inject_token(page, info.captcha_type, result.token)

        result.solve_time_seconds = time.monotonic() - start_time
        return result

    async def solve_site_key(
        self,
        site_key: str,
        page_url: str,
        captcha_type: CaptchaType = CaptchaType.RECAPTCHA_V2,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> CaptchaSolveResult:
        """
        Obtain a token for a known site key without a browser.

        Returns:
            CaptchaSolveResult; on success `token` holds the exact
            string returned by the service
        """
        start_time = time.monotonic()

        if self._client is None:
            return self._failed("No API client configured", captcha_type=captcha_type)

        handle: Optional[TaskHandle] = None
        try:
            if cancel_event is not None and cancel_event.is_set():
                raise SolveCancelled()
            logger.info(f"🔄 Sending to {self._client.SERVICE_NAME}: {captcha_type.value}")
            handle = await self._client.request_solution(site_key, page_url, captcha_type)
            task_result = await self._client.poll_result(handle, cancel_event)
        except CaptchaError as e:
            logger.warning(f"❌ CAPTCHA solve failed: {e.message}")
            task_id = e.task_id or (handle.task_id if handle else None)
            result = self._failed(e.message, captcha_type=captcha_type, task_id=task_id)
            result.solve_time_seconds = time.monotonic() - start_time
            return result

        if task_result.status is TaskStatus.FAILED:
            result = self._failed(
                task_result.error or "Solving service reported failure",
                captcha_type=captcha_type,
                task_id=handle.task_id,
            )
        else:
            result = CaptchaSolveResult(
                success=True,
                status=SolveStatus.SOLVED,
                captcha_type=captcha_type,
                token=task_result.token,
                task_id=handle.task_id,
            )

        result.solve_time_seconds = time.monotonic() - start_time
        return result


def build_captcha_solver(settings: Optional[Settings] = None) -> CaptchaSolverService:
    """
    Build a solver from configuration.

    The API key travels from settings into the client here; nothing
    else reads it.
    """
    settings = settings or get_settings()

    client = None
    if settings.CAPSOLVER_API_KEY:
        client = CaptchaApiClient(
            api_key=settings.CAPSOLVER_API_KEY,
            base_url=settings.CAPTCHA_API_BASE_URL,
            task_type=settings.CAPTCHA_TASK_TYPE,
            poll_interval=settings.CAPTCHA_POLL_INTERVAL,
            max_attempts=settings.CAPTCHA_MAX_POLL_ATTEMPTS,
            timeout=settings.CAPTCHA_SOLVE_TIMEOUT,
            request_timeout=settings.CAPTCHA_REQUEST_TIMEOUT,
        )
    else:
        logger.warning("CAPSOLVER_API_KEY not set; CAPTCHA solving is disabled")

    return CaptchaSolverService(client)
