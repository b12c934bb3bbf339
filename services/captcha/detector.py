"""
CAPTCHA detection module.

Finds a challenge widget on a Playwright page (or in raw markup) and
extracts its site key. Nothing here talks to the solving service.
"""

import json
from typing import Dict, Any, Optional

from utils.logging import get_logger
from .constants import CAPTCHA_SELECTORS, SITE_KEY_ATTR_RE, RENDER_PARAM_RE, TYPE_MARKERS
from .models import CaptchaType, ChallengeInfo

logger = get_logger(__name__)


def parse_captcha_type(type_str: Optional[str]) -> CaptchaType:
    """Parse CAPTCHA type from a detection label."""
    type_str = (type_str or "unknown").lower()

    if "recaptcha" in type_str:
        return CaptchaType.RECAPTCHA_V2
    elif "hcaptcha" in type_str:
        return CaptchaType.HCAPTCHA
    elif "turnstile" in type_str or "cloudflare" in type_str:
        return CaptchaType.CLOUDFLARE_TURNSTILE

    return CaptchaType.UNKNOWN


def extract_site_key(html: str) -> Optional[str]:
    """
    Pull the site key out of page markup.

    Looks for a data-sitekey attribute first, then the render= parameter
    of a reCAPTCHA script URL.
    """
    if not html:
        return None

    match = SITE_KEY_ATTR_RE.search(html)
    if match and match.group(1).strip():
        return match.group(1).strip()

    match = RENDER_PARAM_RE.search(html)
    if match and match.group(1).lower() != "explicit":
        return match.group(1)

    return None


def detect_captcha_in_html(html: str) -> ChallengeInfo:
    """Detect a challenge from raw markup without a browser."""
    html_lower = (html or "").lower()

    for marker, label in TYPE_MARKERS:
        if marker in html_lower:
            return ChallengeInfo(
                found=True,
                captcha_type=parse_captcha_type(label),
                site_key=extract_site_key(html),
                selector=marker,
            )

    site_key = extract_site_key(html)
    if site_key:
        # A bare data-sitekey is almost always reCAPTCHA
        return ChallengeInfo(
            found=True,
            captcha_type=CaptchaType.RECAPTCHA_V2,
            site_key=site_key,
            selector="[data-sitekey]",
        )

    return ChallengeInfo.not_found()


def _to_challenge_info(raw: Optional[Dict[str, Any]]) -> ChallengeInfo:
    if not raw or not raw.get("hasCaptcha"):
        return ChallengeInfo.not_found()

    site_key = raw.get("siteKey")
    return ChallengeInfo(
        found=True,
        captcha_type=parse_captcha_type(raw.get("type")),
        site_key=site_key.strip() if isinstance(site_key, str) and site_key.strip() else None,
        selector=raw.get("selector"),
    )


async def detect_captcha(page) -> ChallengeInfo:
    """
    Detect a CAPTCHA widget on the page.

    Args:
        page: Playwright page object

    Returns:
        ChallengeInfo with the widget type, selector and site key
    """
    selectors_js = json.dumps(CAPTCHA_SELECTORS)

    result = await page.evaluate(f"""
        () => {{
            const captchaIndicators = {selectors_js};

            const isVisible = (el) => {{
                if (!el) return false;
                // Widget iframes are often hidden via CSS transforms
                if (el.tagName === 'IFRAME') return true;
                // Site key holders are frequently zero-size containers
                if (el.hasAttribute('data-sitekey')) return true;
                const style = window.getComputedStyle(el);
                const rect = el.getBoundingClientRect();
                return style.display !== 'none' &&
                       style.visibility !== 'hidden' &&
                       rect.width > 0 &&
                       rect.height > 0;
            }};

            const findSiteKey = (el) => {{
                const holder = (el && el.closest('[data-sitekey]')) ||
                               (el && el.querySelector && el.querySelector('[data-sitekey]')) ||
                               document.querySelector('[data-sitekey]');
                if (holder) return holder.getAttribute('data-sitekey');
                if (el && el.tagName === 'IFRAME') {{
                    const m = (el.src || '').match(/[?&](?:k|sitekey)=([^&]+)/);
                    if (m) return decodeURIComponent(m[1]);
                }}
                for (const s of document.querySelectorAll('script[src*="recaptcha"]')) {{
                    const m = s.src.match(/[?&]render=([^&]+)/);
                    if (m && m[1] !== 'explicit') return m[1];
                }}
                return null;
            }};

            for (const selector of captchaIndicators) {{
                try {{
                    for (const el of document.querySelectorAll(selector)) {{
                        if (!isVisible(el)) continue;
                        const selectorLower = selector.toLowerCase();
                        const html = el.outerHTML.toLowerCase();
                        let captchaType = 'recaptcha';

                        if (selectorLower.includes('hcaptcha') || selectorLower.includes('h-captcha') ||
                            html.includes('hcaptcha') || html.includes('h-captcha')) {{
                            captchaType = 'hcaptcha';
                        }} else if (selectorLower.includes('turnstile') ||
                                   html.includes('turnstile') || html.includes('cf-turnstile')) {{
                            captchaType = 'cloudflare-turnstile';
                        }}

                        return {{
                            hasCaptcha: true,
                            type: captchaType,
                            selector: selector,
                            siteKey: findSiteKey(el)
                        }};
                    }}
                }} catch (e) {{
                    // Invalid selector in this browser; try the next one
                }}
            }}

            return {{ hasCaptcha: false, type: null, selector: null, siteKey: null }};
        }}
    """)

    info = _to_challenge_info(result)

    if info.found:
        logger.info(
            f"🔍 CAPTCHA detected: {info.captcha_type.value} via {info.selector} "
            f"(site key: {info.site_key or 'missing'})"
        )
    else:
        logger.info("✅ No CAPTCHA detected on page")

    return info
