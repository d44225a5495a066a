"""
Tests for outbound URL validation.
"""

import socket
from unittest.mock import patch

import pytest

from newsletter_export.url_validator import UnsafeURLError, is_ip_blocked, validate_url


class TestUrlValidation:
    """Tests for URL validation before fetching."""

    # --- Allowed URLs ---

    def test_allows_https_url(self):
        """Should allow standard HTTPS URLs."""
        assert validate_url("https://example.substack.com/feed", resolve_dns=False) == "https://example.substack.com/feed"

    def test_allows_public_ip(self):
        """Should allow public IP addresses."""
        assert validate_url("http://8.8.8.8/feed", resolve_dns=False) == "http://8.8.8.8/feed"

    # --- Blocked Schemes ---

    @pytest.mark.parametrize("url", ["file:///etc/passwd", "ftp://example.com/file", "data:text/plain,hi"])
    def test_blocks_non_http_schemes(self, url):
        """Should block anything but http and https."""
        with pytest.raises(UnsafeURLError, match="scheme.*not allowed"):
            validate_url(url)

    def test_requires_hostname(self):
        """Should reject URLs without a host."""
        with pytest.raises(UnsafeURLError, match="hostname"):
            validate_url("https:///path", resolve_dns=False)

    # --- Blocked Hosts ---

    @pytest.mark.parametrize("url", [
        "http://localhost/admin",
        "http://metadata.google.internal/",
        "http://myserver.local/",
        "http://127.0.0.1/",
        "http://10.1.2.3/",
        "http://192.168.0.1/",
        "http://169.254.169.254/latest/meta-data/",
        "http://[::1]/",
    ])
    def test_blocks_internal_hosts(self, url):
        """Should block loopback, private, link-local and metadata hosts."""
        with pytest.raises(UnsafeURLError, match="not allowed"):
            validate_url(url, resolve_dns=False)

    def test_is_a_value_error(self):
        """Callers can treat refusals as ValueError."""
        with pytest.raises(ValueError):
            validate_url("http://localhost/", resolve_dns=False)

    # --- DNS Resolution ---

    def test_blocks_hostname_resolving_to_private_ip(self):
        """Should block hostnames that resolve to internal addresses."""
        addrinfo = [(socket.AF_INET, socket.SOCK_STREAM, 6, "", ("10.0.0.5", 443))]
        with patch("newsletter_export.url_validator.socket.getaddrinfo", return_value=addrinfo):
            with pytest.raises(UnsafeURLError, match="resolves to blocked"):
                validate_url("https://sneaky.example.com/")

    def test_unresolvable_hostname_allowed(self):
        """Should leave unresolvable hosts to fail at fetch time."""
        with patch("newsletter_export.url_validator.socket.getaddrinfo", side_effect=socket.gaierror):
            assert validate_url("https://nowhere.example.com/") == "https://nowhere.example.com/"

    def test_is_ip_blocked(self):
        """Should classify addresses by range."""
        assert is_ip_blocked("127.0.0.1")
        assert is_ip_blocked("fe80::1")
        assert not is_ip_blocked("8.8.8.8")
        assert not is_ip_blocked("not-an-ip")
