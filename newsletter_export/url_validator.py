"""
URL Validator - Refuse outbound fetches that target internal networks.

Post, feed and cover URLs come from third-party feeds and archive pages, so every
URL is checked before the fetcher opens a connection:
- only http/https schemes
- no loopback, private, link-local or cloud metadata hosts
- optionally, no hostname that resolves to one of those addresses
"""

import ipaddress
import socket
from urllib.parse import urlparse


class UnsafeURLError(ValueError):
    """Raised when a URL must not be fetched."""
    pass


BLOCKED_IP_RANGES = [
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("255.255.255.255/32"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
]

BLOCKED_HOSTNAMES = {
    "localhost",
    "localhost.localdomain",
    "ip6-localhost",
    "ip6-loopback",
    "metadata",
    "metadata.google.internal",
}

BLOCKED_SUFFIXES = (".local", ".internal", ".localhost")

ALLOWED_SCHEMES = {"http", "https"}


def is_ip_blocked(ip_str: str) -> bool:
    """Check if an IP address is in a blocked range."""
    try:
        ip = ipaddress.ip_address(ip_str)
    except ValueError:
        return False
    return any(ip in network for network in BLOCKED_IP_RANGES)


def _check_hostname(hostname: str) -> None:
    if hostname in BLOCKED_HOSTNAMES:
        raise UnsafeURLError(f"Access to '{hostname}' is not allowed")

    try:
        ip = ipaddress.ip_address(hostname)
    except ValueError:
        if hostname.endswith(BLOCKED_SUFFIXES):
            raise UnsafeURLError(f"Access to '{hostname}' is not allowed")
        return

    if is_ip_blocked(str(ip)):
        raise UnsafeURLError(f"Access to IP address '{ip}' is not allowed")


def _check_resolved_addresses(hostname: str, port: int) -> None:
    try:
        addrinfo = socket.getaddrinfo(hostname, port, proto=socket.IPPROTO_TCP)
    except (socket.gaierror, UnicodeError):
        # Unresolvable hosts fail at fetch time with a transport error
        return

    for _family, _type, _proto, _canon, sockaddr in addrinfo:
        if is_ip_blocked(sockaddr[0]):
            raise UnsafeURLError(
                f"Hostname '{hostname}' resolves to blocked IP address '{sockaddr[0]}'"
            )


def validate_url(url: str, resolve_dns: bool = True) -> str:
    """
    Validate a URL before fetching it.

    Args:
        url: The URL to validate
        resolve_dns: Whether to resolve the hostname and check its addresses

    Returns:
        The URL unchanged

    Raises:
        UnsafeURLError: If the URL fails validation
    """
    parsed = urlparse(url)

    if parsed.scheme.lower() not in ALLOWED_SCHEMES:
        raise UnsafeURLError(f"URL scheme '{parsed.scheme}' is not allowed. Use http or https.")
    if not parsed.hostname:
        raise UnsafeURLError("URL must include a hostname")

    hostname = parsed.hostname.lower()
    _check_hostname(hostname)

    if resolve_dns:
        default_port = 443 if parsed.scheme.lower() == "https" else 80
        _check_resolved_addresses(hostname, parsed.port or default_port)

    return url
