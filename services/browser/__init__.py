"""
Shared Playwright browser pool.
"""

from .pool import get_browser_context, close_browser_pool, get_pool_status

__all__ = ["get_browser_context", "close_browser_pool", "get_pool_status"]
