"""
Test Configuration

Pytest configuration and shared fixtures for all tests.
"""

import pytest
from typing import AsyncGenerator, Any, Dict
from httpx import AsyncClient, ASGITransport

from services.captcha import CaptchaApiClient, CaptchaSolverService


@pytest.fixture
def api_client() -> CaptchaApiClient:
    """Client with zero poll delay so polling tests run instantly."""
    return CaptchaApiClient(
        api_key="test-client-key",
        base_url="https://api.test",
        poll_interval=0,
        max_attempts=5,
        timeout=10,
    )


@pytest.fixture
def solver(api_client) -> CaptchaSolverService:
    return CaptchaSolverService(api_client)


@pytest.fixture
def recaptcha_detection() -> Dict[str, Any]:
    """Detection payload for a page with a reCAPTCHA v2 checkbox."""
    return {
        "hasCaptcha": True,
        "type": "recaptcha",
        "selector": ".g-recaptcha",
        "siteKey": "abc123",
    }


@pytest.fixture
def no_detection() -> Dict[str, Any]:
    return {"hasCaptcha": False, "type": None, "selector": None, "siteKey": None}


@pytest.fixture
async def client(solver) -> AsyncGenerator[AsyncClient, None]:
    """Get async test client for API testing."""
    from main import app
    from utils.rate_limit import limiter

    app.state.captcha_solver = solver
    limiter.reset()

    transport = ASGITransport(app=app)

    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
