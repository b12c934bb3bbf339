"""
CAPTCHA Solving Service Package

Provides API-based CAPTCHA handling:
1. Detection of the challenge widget and its site key
2. createTask/getTaskResult solving with bounded polling
3. Token injection back into the page
"""

from .client import CaptchaApiClient
from .detector import detect_captcha, detect_captcha_in_html, extract_site_key, parse_captcha_type
from .injector import inject_token
from .models import (
    CaptchaType,
    CaptchaSolveResult,
    ChallengeInfo,
    SolveStatus,
    TaskHandle,
    TaskRequest,
    TaskResult,
    TaskStatus,
)
from .solver import CaptchaSolverService, build_captcha_solver

__all__ = [
    'CaptchaApiClient',
    'CaptchaSolverService',
    'CaptchaSolveResult',
    'CaptchaType',
    'ChallengeInfo',
    'SolveStatus',
    'TaskHandle',
    'TaskRequest',
    'TaskResult',
    'TaskStatus',
    'build_captcha_solver',
    'detect_captcha',
    'detect_captcha_in_html',
    'extract_site_key',
    'inject_token',
    'parse_captcha_type',
]
