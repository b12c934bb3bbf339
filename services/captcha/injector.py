"""
Token injection.

Writes a solution token into the page's response field so the host
page sees the challenge as passed.
"""

from playwright.async_api import Error as PlaywrightError

from utils.logging import get_logger
from .models import CaptchaType, CAPTCHA_PROFILES

logger = get_logger(__name__)


INJECT_TOKEN_JS = """
    ({ fieldName, token }) => {
        const fields = Array.from(document.querySelectorAll(
            `textarea[name="${fieldName}"], input[name="${fieldName}"], #${fieldName}`
        ));
        if (fields.length === 0) return false;

        for (const field of fields) {
            field.value = token;
            if (field.tagName === 'TEXTAREA') field.innerHTML = token;
            field.dispatchEvent(new Event('input', { bubbles: true }));
            field.dispatchEvent(new Event('change', { bubbles: true }));
        }

        // Widget callback named in data-callback, then the common global
        const widget = document.querySelector('[data-sitekey][data-callback]');
        const callbackName = widget ? widget.getAttribute('data-callback') : null;
        if (callbackName && typeof window[callbackName] === 'function') {
            window[callbackName](token);
        } else if (typeof window.captchaCallback === 'function') {
            window.captchaCallback(token);
        }
        return true;
    }
"""


async def inject_token(page, captcha_type: CaptchaType, token: str) -> bool:
    """
    Inject solved token into page.

    Args:
        page: Playwright page object
        captcha_type: Decides which response field receives the token
        token: Solution token

    Returns:
        True if at least one response field was updated
    """
    profile = CAPTCHA_PROFILES.get(captcha_type)
    if profile is None:
        logger.warning(f"⚠️ No response field known for {captcha_type.value}")
        return False

    try:
        injected = await page.evaluate(
            INJECT_TOKEN_JS,
            {"fieldName": profile.response_field, "token": token},
        )
    except PlaywrightError as e:
        logger.warning(f"⚠️ Token injection failed: {e}")
        return False

    if injected:
        logger.info(f"✅ Token injected into {profile.response_field}")
    else:
        logger.warning(f"⚠️ Response field {profile.response_field} not found on page")
    return bool(injected)
