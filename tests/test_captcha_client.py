"""
Unit Tests for the CAPTCHA API Client

Covers the create/poll protocol, bounded polling, cancellation and
the transport error mapping.

Run: pytest tests/test_captcha_client.py -v
"""

import asyncio

import aiohttp
import pytest
from unittest.mock import AsyncMock, patch

from services.captcha import CaptchaApiClient, CaptchaType, TaskHandle, TaskStatus
from utils.exceptions import (
    MissingApiKey,
    NoHandleReturned,
    NoSolutionFound,
    ServiceUnreachable,
    SolveCancelled,
    SolveTimeout,
    TaskFailed,
    TaskHandleReused,
)
from tests.fakes import FakePost, FakeResponse, make_session


PROCESSING = {"errorId": 0, "status": "processing"}
READY = {"errorId": 0, "status": "ready", "solution": {"gRecaptchaResponse": "TOKEN"}}


# ============================================================================
# End-to-end Protocol
# ============================================================================

class TestSolveProtocol:
    """Tests for the createTask → getTaskResult sequence."""

    @pytest.mark.asyncio
    async def test_example_sequence_yields_token(self, api_client):
        """taskId t1, one processing poll, then ready → exact token."""
        post = AsyncMock(side_effect=[{"taskId": "t1"}, {"status": "processing"}, READY])

        with patch.object(api_client, "_post", post):
            token = await api_client.solve("abc123", "https://example.com")

        assert token == "TOKEN"
        assert post.await_count == 3

        endpoint, payload = post.await_args_list[0].args
        assert endpoint == "createTask"
        assert payload == {
            "clientKey": "test-client-key",
            "task": {
                "type": "ReCaptchaV2TaskProxyLess",
                "websiteURL": "https://example.com",
                "websiteKey": "abc123",
            },
        }
        assert post.await_args_list[1].args == (
            "getTaskResult", {"clientKey": "test-client-key", "taskId": "t1"}
        )

    @pytest.mark.asyncio
    async def test_missing_handle_does_not_poll(self, api_client):
        """createTask without taskId fails before any poll."""
        post = AsyncMock(return_value={"errorId": 0})

        with patch.object(api_client, "_post", post):
            with pytest.raises(NoHandleReturned):
                await api_client.solve("abc123", "https://example.com")

        assert post.await_count == 1

    @pytest.mark.asyncio
    async def test_create_error_raises_task_failed(self, api_client):
        post = AsyncMock(return_value={
            "errorId": 1,
            "errorCode": "ERROR_KEY_DENIED_ACCESS",
            "errorDescription": "Invalid client key",
        })

        with patch.object(api_client, "_post", post):
            with pytest.raises(TaskFailed, match="Invalid client key"):
                await api_client.request_solution("abc123", "https://example.com")

    @pytest.mark.asyncio
    async def test_failed_status_stops_polling(self, api_client):
        post = AsyncMock(side_effect=[
            {"taskId": "t1"},
            PROCESSING,
            {"errorId": 0, "status": "failed", "errorDescription": "Unsolvable"},
            READY,
        ])

        with patch.object(api_client, "_post", post):
            with pytest.raises(TaskFailed, match="Unsolvable") as exc_info:
                await api_client.solve("abc123", "https://example.com")

        assert exc_info.value.task_id == "t1"
        assert post.await_count == 3

    @pytest.mark.asyncio
    async def test_error_id_during_poll_is_failure(self, api_client):
        post = AsyncMock(side_effect=[
            {"taskId": "t1"},
            {"errorId": 1, "errorCode": "ERROR_CAPTCHA_UNSOLVABLE"},
        ])

        with patch.object(api_client, "_post", post):
            with pytest.raises(TaskFailed, match="ERROR_CAPTCHA_UNSOLVABLE"):
                await api_client.solve("abc123", "https://example.com")

        assert post.await_count == 2


# ============================================================================
# Result Parsing
# ============================================================================

class TestPollResult:
    """Tests for single polls and ready/empty handling."""

    @pytest.mark.asyncio
    async def test_ready_with_empty_solution_is_failure(self, api_client):
        handle = TaskHandle("t1")
        post = AsyncMock(return_value={"status": "ready", "solution": {"gRecaptchaResponse": ""}})

        with patch.object(api_client, "_post", post):
            with pytest.raises(NoSolutionFound):
                await api_client.poll_result(handle)

    @pytest.mark.asyncio
    async def test_ready_without_solution_is_failure(self, api_client):
        handle = TaskHandle("t1")
        post = AsyncMock(return_value={"status": "ready"})

        with patch.object(api_client, "_post", post):
            with pytest.raises(NoSolutionFound):
                await api_client.get_task_result(handle)

    @pytest.mark.asyncio
    async def test_turnstile_reads_token_field(self, api_client):
        handle = TaskHandle("t9", captcha_type=CaptchaType.CLOUDFLARE_TURNSTILE)
        post = AsyncMock(return_value={"status": "ready", "solution": {"token": "0.turnstile"}})

        with patch.object(api_client, "_post", post):
            result = await api_client.get_task_result(handle)

        assert result.status is TaskStatus.READY
        assert result.token == "0.turnstile"

    @pytest.mark.asyncio
    async def test_idle_is_pending(self, api_client):
        post = AsyncMock(return_value={"errorId": 0, "status": "idle"})

        with patch.object(api_client, "_post", post):
            result = await api_client.get_task_result(TaskHandle("t1"))

        assert result.status is TaskStatus.PENDING

    @pytest.mark.asyncio
    async def test_finished_handle_is_never_polled_again(self, api_client):
        handle = TaskHandle("t1")
        post = AsyncMock(return_value=READY)

        with patch.object(api_client, "_post", post):
            first = await api_client.poll_result(handle)
            with pytest.raises(TaskHandleReused):
                await api_client.poll_result(handle)

        assert first.token == "TOKEN"
        assert post.await_count == 1

    @pytest.mark.asyncio
    async def test_finished_history_is_bounded(self, api_client):
        api_client.MAX_FINISHED_HANDLES = 3
        post = AsyncMock(return_value=READY)

        with patch.object(api_client, "_post", post):
            for n in range(10):
                await api_client.poll_result(TaskHandle(f"t{n}"))

            assert list(api_client._finished) == ["t7", "t8", "t9"]
            with pytest.raises(TaskHandleReused):
                await api_client.get_task_result(TaskHandle("t9"))

        assert post.await_count == 10


# ============================================================================
# Bounded Polling & Cancellation
# ============================================================================

class TestPollingLimits:
    """Polling never runs unbounded."""

    @pytest.mark.asyncio
    async def test_max_attempts_raises_timeout(self, api_client):
        api_client.max_attempts = 3
        post = AsyncMock(return_value=PROCESSING)

        with patch.object(api_client, "_post", post):
            with pytest.raises(SolveTimeout) as exc_info:
                await api_client.poll_result(TaskHandle("t1"))

        assert post.await_count == 3
        assert exc_info.value.details["attempts"] == 3

    @pytest.mark.asyncio
    async def test_wall_clock_timeout(self):
        client = CaptchaApiClient(
            api_key="k", poll_interval=0.01, max_attempts=10_000, timeout=0.05
        )
        post = AsyncMock(return_value=PROCESSING)

        with patch.object(client, "_post", post):
            with pytest.raises(SolveTimeout):
                await asyncio.wait_for(client.poll_result(TaskHandle("t1")), timeout=2)

        assert post.await_count < 10_000

    @pytest.mark.asyncio
    async def test_deadline_bounds_slow_poll_request(self):
        client = CaptchaApiClient(
            api_key="k", poll_interval=0, max_attempts=5, timeout=0.05
        )

        async def hanging_post(endpoint, payload):
            await asyncio.sleep(5)
            return READY

        with patch.object(client, "_post", AsyncMock(side_effect=hanging_post)):
            with pytest.raises(SolveTimeout) as exc_info:
                await asyncio.wait_for(client.poll_result(TaskHandle("t1")), timeout=1)

        assert exc_info.value.task_id == "t1"
        assert exc_info.value.details["attempts"] == 0

    @pytest.mark.asyncio
    async def test_preset_cancel_event_skips_network(self, api_client):
        cancel_event = asyncio.Event()
        cancel_event.set()
        post = AsyncMock()

        with patch.object(api_client, "_post", post):
            with pytest.raises(SolveCancelled):
                await api_client.solve("abc123", "https://example.com", cancel_event=cancel_event)

        post.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancel_wakes_sleeping_poll(self):
        client = CaptchaApiClient(api_key="k", poll_interval=30, max_attempts=5, timeout=300)
        cancel_event = asyncio.Event()
        post = AsyncMock(return_value=PROCESSING)

        async def cancel_soon():
            await asyncio.sleep(0.05)
            cancel_event.set()

        with patch.object(client, "_post", post):
            canceller = asyncio.create_task(cancel_soon())
            with pytest.raises(SolveCancelled) as exc_info:
                await asyncio.wait_for(
                    client.poll_result(TaskHandle("t1"), cancel_event), timeout=2
                )
            await canceller

        assert exc_info.value.task_id == "t1"
        post.assert_not_awaited()


# ============================================================================
# Transport
# ============================================================================

class TestTransport:
    """Tests for the aiohttp request helper."""

    def test_empty_key_rejected(self):
        with pytest.raises(MissingApiKey):
            CaptchaApiClient(api_key="")

    @pytest.mark.asyncio
    async def test_posts_json_to_endpoint(self, api_client):
        session = make_session(FakePost(FakeResponse({"errorId": 0, "taskId": "t1"})))
        api_client._session = session

        data = await api_client._post("createTask", {"clientKey": "x"})

        assert data == {"errorId": 0, "taskId": "t1"}
        session.post.assert_called_once_with(
            "https://api.test/createTask", json={"clientKey": "x"}
        )

    @pytest.mark.asyncio
    async def test_connection_error_is_service_unreachable(self, api_client):
        api_client._session = make_session(
            FakePost(None, error=aiohttp.ClientConnectionError("connection refused"))
        )

        with pytest.raises(ServiceUnreachable, match="connection refused"):
            await api_client.request_solution("abc123", "https://example.com")

    @pytest.mark.asyncio
    async def test_timeout_is_service_unreachable(self, api_client):
        api_client._session = make_session(FakePost(None, error=asyncio.TimeoutError()))

        with pytest.raises(ServiceUnreachable):
            await api_client.request_solution("abc123", "https://example.com")

    @pytest.mark.asyncio
    async def test_non_json_body_is_service_unreachable(self, api_client):
        api_client._session = make_session(
            FakePost(FakeResponse(error=ValueError("Expecting value")))
        )

        with pytest.raises(ServiceUnreachable):
            await api_client.request_solution("abc123", "https://example.com")

    @pytest.mark.asyncio
    async def test_non_object_body_is_service_unreachable(self, api_client):
        api_client._session = make_session(FakePost(FakeResponse(["not", "an", "object"])))

        with pytest.raises(ServiceUnreachable):
            await api_client.request_solution("abc123", "https://example.com")

    @pytest.mark.asyncio
    async def test_close_closes_session(self, api_client):
        session = make_session()
        api_client._session = session

        await api_client.close()

        session.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_get_balance(self, api_client):
        post = AsyncMock(return_value={"errorId": 0, "balance": 12.5})

        with patch.object(api_client, "_post", post):
            assert await api_client.get_balance() == 12.5

        post.assert_awaited_once_with("getBalance", {"clientKey": "test-client-key"})
