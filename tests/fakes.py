"""
Test doubles for aiohttp sessions and Playwright pages.
"""

from contextlib import asynccontextmanager
from typing import Any, List, Optional
from unittest.mock import AsyncMock, MagicMock


class FakeResponse:
    """Stands in for an aiohttp response inside `async with session.post(...)`."""

    def __init__(self, payload: Any = None, error: Optional[Exception] = None):
        self.payload = payload
        self.error = error

    async def json(self, content_type=None):
        if self.error:
            raise self.error
        return self.payload


class FakePost:
    def __init__(self, response: Optional[FakeResponse], error: Optional[Exception] = None):
        self.response = response
        self.error = error

    async def __aenter__(self):
        if self.error:
            raise self.error
        return self.response

    async def __aexit__(self, exc_type, exc, tb):
        return False


def make_session(*posts: FakePost) -> MagicMock:
    """aiohttp.ClientSession double whose post() yields the given results in order."""
    session = MagicMock()
    session.closed = False
    session.close = AsyncMock()
    session.post.side_effect = list(posts)
    return session


class FakePage:
    """
    Minimal Playwright page double.

    `evaluate` returns the queued results in order: the first call is
    detection, the second is token injection.
    """

    def __init__(
        self,
        url: str = "https://example.com",
        evaluate_results: Optional[List[Any]] = None,
        goto_error: Optional[Exception] = None,
    ):
        self.url = url
        self.goto = AsyncMock(side_effect=goto_error)
        self.evaluate = AsyncMock(side_effect=list(evaluate_results or []))


def browser_context_factory(page: FakePage) -> MagicMock:
    """Stand-in for `get_browser_context` whose contexts open `page`."""
    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)

    @asynccontextmanager
    async def open_context(*args, **kwargs):
        yield context

    return MagicMock(side_effect=open_context)
