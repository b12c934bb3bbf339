"""
Input Sanitization Utilities

Provides validation for caller inputs before a browser or the remote
solving service sees them. Helps prevent SSRF attacks.

Usage:
    from utils.sanitize import validate_page_url, sanitize_site_key

    clean_url = validate_page_url(user_input)
"""

import ipaddress
import re
import socket
from typing import Optional, Union
from urllib.parse import urlparse

from utils.logging import get_logger
from utils.exceptions import InvalidRequestError

logger = get_logger(__name__)


# =============================================================================
# URL Validation
# =============================================================================

# Allowed URL schemes
ALLOWED_SCHEMES = {"http", "https"}

# Blocked hosts (prevent SSRF to internal services)
BLOCKED_HOSTS = {
    "localhost",
    "127.0.0.1",
    "0.0.0.0",
    "::1",
    "169.254.169.254",  # AWS metadata
    "metadata.google.internal",  # GCP metadata
}


def _parse_ip(host: str) -> Optional[Union[ipaddress.IPv4Address, ipaddress.IPv6Address]]:
    """
    Parse a URL host as an IP literal, or return None for a name.

    Accepts the shorthand IPv4 forms browsers resolve too
    (decimal `2130706433`, hex `0x7f000001`, `127.1`).
    """
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        try:
            ip = ipaddress.IPv4Address(socket.inet_aton(host))
        except OSError:
            return None

    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped:
        return ip.ipv4_mapped
    return ip


def _is_internal_ip(ip: Union[ipaddress.IPv4Address, ipaddress.IPv6Address]) -> bool:
    # is_global excludes shared space (100.64/10) as well as private ranges
    return (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_reserved
        or ip.is_unspecified
        or ip.is_multicast
        or not ip.is_global
    )


def validate_page_url(url: str) -> str:
    """
    Validate and sanitize the URL of a page carrying a CAPTCHA.

    Ensures the URL is safe to open:
    - Uses HTTP or HTTPS scheme
    - Not pointing to internal/private addresses
    - Properly formatted

    Args:
        url: URL to validate

    Returns:
        str: Validated URL

    Raises:
        InvalidRequestError: If URL is invalid or unsafe
    """
    if not url or not isinstance(url, str):
        raise InvalidRequestError("URL is required", field="page_url")

    url = url.strip()

    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise InvalidRequestError(f"Invalid URL format: {e}", field="page_url")

    if parsed.scheme not in ALLOWED_SCHEMES:
        raise InvalidRequestError(
            f"Invalid URL scheme: {parsed.scheme}. Use http or https.",
            field="page_url"
        )

    if not parsed.netloc:
        raise InvalidRequestError("URL must include a host", field="page_url")

    hostname_lower = (parsed.hostname or "").lower().rstrip(".")
    if not hostname_lower:
        raise InvalidRequestError("URL must include a host", field="page_url")

    if hostname_lower in BLOCKED_HOSTS:
        logger.warning(f"Blocked URL attempt: {url}")
        raise InvalidRequestError("This URL is not allowed", field="page_url")

    ip = _parse_ip(hostname_lower)
    if ip is not None and _is_internal_ip(ip):
        logger.warning(f"Blocked private IP URL: {url}")
        raise InvalidRequestError(
            "Private/internal URLs are not allowed",
            field="page_url"
        )

    logger.debug(f"URL validated: {url[:50]}")
    return url


# =============================================================================
# Site Key Validation
# =============================================================================

SITE_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_\-]{1,200}$")


def sanitize_site_key(site_key: str) -> str:
    """
    Strip and validate a CAPTCHA site key.

    Site keys are public identifiers made of letters, digits,
    underscores and dashes.

    Raises:
        InvalidRequestError: If the key is empty or has other characters
    """
    site_key = (site_key or "").strip()
    if not site_key:
        raise InvalidRequestError("Site key is required", field="site_key")
    if not SITE_KEY_PATTERN.match(site_key):
        raise InvalidRequestError("Site key has invalid characters", field="site_key")
    return site_key
