"""
Routers Module

API routers for the Captcha Relay application.
"""

from .captcha import router as captcha_router

__all__ = ["captcha_router"]
