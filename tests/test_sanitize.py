"""
Unit Tests for Input Sanitization

Tests for page URL and site key validation.
"""

import pytest
from utils.sanitize import validate_page_url, sanitize_site_key
from utils.exceptions import InvalidRequestError


class TestURLValidation:
    """Tests for URL validation and sanitization."""

    def test_valid_https_url(self):
        """Valid HTTPS URL should pass validation."""
        url = "https://example.com/signup"
        assert validate_page_url(url) == url

    def test_valid_http_url(self):
        """Valid HTTP URL should pass validation."""
        url = "http://example.com/signup"
        assert validate_page_url(url) == url

    def test_recaptcha_demo_url(self):
        url = "https://www.google.com/recaptcha/api2/demo"
        assert validate_page_url(url) == url

    def test_strips_whitespace(self):
        """URL with whitespace should be stripped."""
        assert validate_page_url("  https://example.com  ") == "https://example.com"

    def test_invalid_scheme_raises_error(self):
        """Invalid scheme (ftp, file) should raise error."""
        with pytest.raises(InvalidRequestError):
            validate_page_url("ftp://example.com/form")

        with pytest.raises(InvalidRequestError):
            validate_page_url("file:///etc/passwd")

    def test_localhost_blocked(self):
        """localhost URLs should be blocked (SSRF protection)."""
        with pytest.raises(InvalidRequestError):
            validate_page_url("http://localhost:8000/admin")

        with pytest.raises(InvalidRequestError):
            validate_page_url("http://127.0.0.2:8000/admin")

    def test_private_ip_blocked(self):
        """Private IP addresses should be blocked."""
        with pytest.raises(InvalidRequestError):
            validate_page_url("http://192.168.1.1/form")

        with pytest.raises(InvalidRequestError):
            validate_page_url("http://10.0.0.1/form")

        with pytest.raises(InvalidRequestError):
            validate_page_url("http://172.20.0.5/form")

    def test_public_172_allowed(self):
        url = "http://172.64.0.1/form"
        assert validate_page_url(url) == url

    def test_aws_metadata_blocked(self):
        """AWS metadata endpoint should be blocked."""
        with pytest.raises(InvalidRequestError):
            validate_page_url("http://169.254.169.254/latest/meta-data")

    @pytest.mark.parametrize("url", [
        "http://169.254.170.2/v2/credentials",  # ECS task metadata
        "http://2130706433/",                   # decimal loopback
        "http://0x7f000001/",                   # hex loopback
        "http://127.1/",                        # short loopback
        "http://[::ffff:127.0.0.1]/",           # IPv4-mapped loopback
        "http://[::1]:8080/",
        "http://[fd00::1]/",                    # IPv6 unique local
        "http://[fe80::1]/",                    # IPv6 link-local
        "http://100.100.100.200/",              # shared address space metadata
        "http://0.0.0.0:8000/",
        "http://LOCALHOST./admin",
    ])
    def test_internal_address_forms_blocked(self, url):
        """Encoded, mapped and IPv6 internal addresses are all rejected."""
        with pytest.raises(InvalidRequestError) as exc_info:
            validate_page_url(url)
        assert exc_info.value.details["field"] == "page_url"

    def test_public_ipv6_allowed(self):
        url = "http://[2606:4700:4700::1111]/"
        assert validate_page_url(url) == url

    def test_mapped_public_ipv4_allowed(self):
        url = "http://[::ffff:8.8.8.8]/"
        assert validate_page_url(url) == url

    def test_missing_host(self):
        with pytest.raises(InvalidRequestError):
            validate_page_url("https:///path-only")

    def test_empty_url_raises_error(self):
        """Empty URL should raise error."""
        with pytest.raises(InvalidRequestError):
            validate_page_url("")

        with pytest.raises(InvalidRequestError):
            validate_page_url(None)


class TestSiteKeySanitization:
    """Tests for site key validation."""

    def test_recaptcha_key(self):
        key = "6Le-wvkSAAAAAPBMRTvw0Q4Muexq9bi0DJwx_mJ-"
        assert sanitize_site_key(key) == key

    def test_hcaptcha_key(self):
        key = "10000000-ffff-ffff-ffff-000000000001"
        assert sanitize_site_key(key) == key

    def test_strips_whitespace(self):
        assert sanitize_site_key("  abc123\n") == "abc123"

    def test_empty_key(self):
        with pytest.raises(InvalidRequestError) as exc_info:
            sanitize_site_key("   ")
        assert exc_info.value.details["field"] == "site_key"

    def test_markup_rejected(self):
        with pytest.raises(InvalidRequestError):
            sanitize_site_key('abc"><script>')

    def test_too_long(self):
        with pytest.raises(InvalidRequestError):
            sanitize_site_key("a" * 201)
