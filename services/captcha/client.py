"""
CAPTCHA Solving API Client

Async client for createTask/getTaskResult style solving services
(CapSolver and compatible). Supports reCAPTCHA v2, hCaptcha and
Cloudflare Turnstile.
"""

import asyncio
import time
from collections import OrderedDict
from typing import Optional, Dict, Any

import aiohttp

from utils.logging import get_logger, log_api_call, mask_token
from utils.exceptions import (
    CaptchaError,
    MissingApiKey,
    ServiceUnreachable,
    NoHandleReturned,
    TaskFailed,
    NoSolutionFound,
    SolveTimeout,
    SolveCancelled,
    TaskHandleReused,
)
from .models import (
    CaptchaType,
    CAPTCHA_PROFILES,
    TaskRequest,
    TaskHandle,
    TaskResult,
    TaskStatus,
)

logger = get_logger(__name__)


class CaptchaApiClient:
    """
    Async client for a createTask/getTaskResult solving API.

    Polling is bounded by both `max_attempts` and `timeout`, and stops
    early when the caller sets `cancel_event`.

    Usage:
        async with CaptchaApiClient(api_key="CAP-...") as client:
            handle = await client.request_solution(site_key, page_url)
            result = await client.poll_result(handle)
            if result.status is TaskStatus.READY:
                # Use result.token
    """

    SERVICE_NAME = "CapSolver"
    BASE_URL = "https://api.capsolver.com"
    # Finished task ids remembered for reuse detection
    MAX_FINISHED_HANDLES = 1024

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        task_type: Optional[str] = None,
        poll_interval: float = 5.0,
        max_attempts: int = 24,
        timeout: float = 120.0,
        request_timeout: float = 30.0,
    ):
        if not api_key:
            raise MissingApiKey()
        self.api_key = api_key
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.task_type = task_type
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.timeout = timeout
        self.request_timeout = request_timeout
        self._session: Optional[aiohttp.ClientSession] = None
        # Recent handles that reached ready/failed; they are never polled again
        self._finished: "OrderedDict[str, None]" = OrderedDict()

    async def __aenter__(self) -> "CaptchaApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.request_timeout)
            )
        return self._session

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    # =========================================================================
    # Transport
    # =========================================================================

    async def _post(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST a JSON body and return the decoded JSON object."""
        session = await self._get_session()
        url = f"{self.base_url}/{endpoint}"
        start = time.monotonic()

        try:
            async with session.post(url, json=payload) as resp:
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            log_api_call(
                self.SERVICE_NAME, endpoint, False,
                duration_ms=(time.monotonic() - start) * 1000,
                error=str(e) or e.__class__.__name__,
            )
            raise ServiceUnreachable(
                f"{endpoint} request failed: {str(e) or e.__class__.__name__}"
            ) from e

        if not isinstance(data, dict):
            log_api_call(self.SERVICE_NAME, endpoint, False, error="non-object body")
            raise ServiceUnreachable(f"{endpoint} returned an unexpected response")

        log_api_call(
            self.SERVICE_NAME, endpoint, True,
            duration_ms=(time.monotonic() - start) * 1000,
        )
        return data

    @staticmethod
    def _error_text(data: Dict[str, Any], fallback: str) -> str:
        return data.get("errorDescription") or data.get("errorCode") or fallback

    # =========================================================================
    # Task Lifecycle
    # =========================================================================

    def _task_type_for(self, captcha_type: CaptchaType) -> str:
        profile = CAPTCHA_PROFILES.get(captcha_type)
        if profile is None:
            raise CaptchaError(f"Unsupported CAPTCHA type: {captcha_type.value}")
        if captcha_type is CaptchaType.RECAPTCHA_V2 and self.task_type:
            return self.task_type
        return profile.task_type

    async def request_solution(
        self,
        site_key: str,
        page_url: str,
        captcha_type: CaptchaType = CaptchaType.RECAPTCHA_V2,
    ) -> TaskHandle:
        """
        Submit a createTask request.

        Args:
            site_key: The data-sitekey from the challenge element
            page_url: The full URL of the page with the challenge
            captcha_type: Which challenge family the key belongs to

        Raises:
            ServiceUnreachable: The request could not complete
            TaskFailed: The service rejected the task
            NoHandleReturned: The response has no taskId
        """
        request = TaskRequest(
            client_key=self.api_key,
            task_type=self._task_type_for(captcha_type),
            website_url=page_url,
            website_key=site_key,
        )

        data = await self._post("createTask", request.to_payload())

        if data.get("errorId"):
            raise TaskFailed(self._error_text(data, "createTask was rejected"))

        task_id = data.get("taskId")
        if not task_id:
            raise NoHandleReturned()

        logger.info(f"🔄 {self.SERVICE_NAME} task submitted: {task_id}")
        return TaskHandle(task_id=str(task_id), captcha_type=captcha_type)

    async def get_task_result(self, handle: TaskHandle) -> TaskResult:
        """
        Issue a single getTaskResult request.

        Raises:
            TaskHandleReused: The handle already reached ready/failed
            NoSolutionFound: Status is ready but the solution is empty
        """
        if handle.task_id in self._finished:
            raise TaskHandleReused(task_id=handle.task_id)

        data = await self._post(
            "getTaskResult",
            {"clientKey": self.api_key, "taskId": handle.task_id},
        )

        try:
            result = self._parse_result(data, handle)
        except NoSolutionFound:
            self._mark_finished(handle.task_id)
            raise

        if result.status.is_terminal:
            self._mark_finished(handle.task_id)
        return result

    def _mark_finished(self, task_id: str) -> None:
        self._finished[task_id] = None
        self._finished.move_to_end(task_id)
        while len(self._finished) > self.MAX_FINISHED_HANDLES:
            self._finished.popitem(last=False)

    def _parse_result(self, data: Dict[str, Any], handle: TaskHandle) -> TaskResult:
        if data.get("errorId"):
            return TaskResult.failed(self._error_text(data, "Unknown error"))

        status = str(data.get("status") or "").lower()

        if status == "ready":
            token = self._extract_token(data.get("solution"), handle.captcha_type)
            if not token:
                raise NoSolutionFound(task_id=handle.task_id)
            return TaskResult.ready(token)

        if status == "failed":
            return TaskResult.failed(self._error_text(data, "Task failed"))

        # idle / processing
        return TaskResult.pending()

    @staticmethod
    def _extract_token(solution: Any, captcha_type: CaptchaType) -> Optional[str]:
        if not isinstance(solution, dict):
            return None
        profile = CAPTCHA_PROFILES.get(captcha_type)
        fields = [profile.solution_field] if profile else []
        fields += [f for f in ("gRecaptchaResponse", "token") if f not in fields]
        for name in fields:
            value = solution.get(name)
            if isinstance(value, str) and value.strip():
                return value
        return None

    async def _wait(self, delay: float, cancel_event: Optional[asyncio.Event]) -> None:
        """Sleep for `delay`, returning early if the cancel event is set."""
        if cancel_event is None:
            await asyncio.sleep(delay)
            return
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    async def poll_result(
        self,
        handle: TaskHandle,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> TaskResult:
        """
        Poll until the task is ready or failed.

        Waits `poll_interval` seconds before each request. The `timeout`
        deadline also bounds each in-flight getTaskResult request.

        Returns:
            TaskResult with status READY (non-empty token) or FAILED

        Raises:
            SolveTimeout: `max_attempts` or `timeout` exhausted
            SolveCancelled: `cancel_event` was set
            NoSolutionFound: Status ready without a token
        """
        loop = asyncio.get_running_loop()
        started = loop.time()
        deadline = started + self.timeout
        attempts_made = 0

        for attempt in range(1, self.max_attempts + 1):
            remaining = deadline - loop.time()
            if remaining <= 0:
                break

            await self._wait(min(self.poll_interval, remaining), cancel_event)
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"🛑 Polling cancelled for task {handle.task_id}")
                raise SolveCancelled(task_id=handle.task_id)

            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            try:
                result = await asyncio.wait_for(self.get_task_result(handle), timeout=remaining)
            except asyncio.TimeoutError:
                logger.warning(f"⏱️ getTaskResult for task {handle.task_id} outran the solve deadline")
                break
            attempts_made = attempt

            if result.status is TaskStatus.READY:
                logger.info(
                    f"✅ {self.SERVICE_NAME} solved task {handle.task_id} in "
                    f"{loop.time() - started:.1f}s: {mask_token(result.token)}"
                )
                return result
            if result.status is TaskStatus.FAILED:
                logger.warning(f"❌ {self.SERVICE_NAME} task {handle.task_id} failed: {result.error}")
                return result

            logger.debug(f"⏳ Still solving task {handle.task_id} (attempt {attempt}/{self.max_attempts})")

        raise SolveTimeout(
            task_id=handle.task_id,
            details={"attempts": attempts_made, "timeout_seconds": self.timeout},
        )

    async def solve(
        self,
        site_key: str,
        page_url: str,
        captcha_type: CaptchaType = CaptchaType.RECAPTCHA_V2,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> str:
        """
        Request a solution and wait for the token.

        Raises:
            CaptchaError: Any failure along the way
        """
        if cancel_event is not None and cancel_event.is_set():
            raise SolveCancelled()

        handle = await self.request_solution(site_key, page_url, captcha_type)
        result = await self.poll_result(handle, cancel_event)
        if result.status is TaskStatus.FAILED:
            raise TaskFailed(result.error, task_id=handle.task_id)
        return result.token

    async def get_balance(self) -> float:
        """Get account balance."""
        data = await self._post("getBalance", {"clientKey": self.api_key})
        if data.get("errorId"):
            raise TaskFailed(self._error_text(data, "getBalance was rejected"))
        return float(data.get("balance") or 0.0)
