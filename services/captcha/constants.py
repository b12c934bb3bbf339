"""
CAPTCHA selectors and markup patterns.
"""

import re

# Checked in order; the first visible match wins
CAPTCHA_SELECTORS = [
    # Google reCAPTCHA
    '.g-recaptcha', '#recaptcha',
    'iframe[src*="recaptcha"]', 'iframe[src*="google.com/recaptcha"]',
    # hCaptcha
    '.h-captcha', 'iframe[src*="hcaptcha"]',
    # Cloudflare Turnstile
    '.cf-turnstile', '[data-cf-turnstile]',
    # Any widget exposing a site key
    '[data-sitekey]',
]

# data-sitekey="..." on the widget container
SITE_KEY_ATTR_RE = re.compile(r'data-(?:h?captcha-)?sitekey\s*=\s*["\']([^"\']+)["\']', re.IGNORECASE)

# <script src=".../recaptcha/api.js?render=KEY">
RENDER_PARAM_RE = re.compile(r'recaptcha/(?:api|enterprise)\.js\?[^"\']*?\brender=([A-Za-z0-9_\-]+)', re.IGNORECASE)

# Widget class markers used to tell families apart in raw markup
TYPE_MARKERS = [
    ("cf-turnstile", "cloudflare-turnstile"),
    ("challenges.cloudflare.com/turnstile", "cloudflare-turnstile"),
    ("h-captcha", "hcaptcha"),
    ("hcaptcha.com", "hcaptcha"),
    ("g-recaptcha", "recaptcha"),
    ("google.com/recaptcha", "recaptcha"),
]
