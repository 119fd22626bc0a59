"""Security utilities for outbound fetches and generated output paths."""

import ipaddress
import logging
import socket
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

# Blocked ports (common internal services)
BLOCKED_PORTS = [
    22,  # SSH
    23,  # Telnet
    25,  # SMTP
    3306,  # MySQL
    5432,  # PostgreSQL
    6379,  # Redis
    27017,  # MongoDB
    9200,  # Elasticsearch
    9300,  # Elasticsearch
]

# Private IP ranges to block
PRIVATE_IP_RANGES = [
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
    ipaddress.ip_network("169.254.0.0/16"),  # Cloud metadata (AWS, etc.)
]

LOCALHOST_NAMES = {
    "localhost",
    "127.0.0.1",
    "::1",
    "0.0.0.0",
    "localhost.localdomain",
    "ip6-localhost",
    "ip6-loopback",
}


class SSRFError(Exception):
    """Raised when a URL fails SSRF validation."""

    pass


class UnsafeSlugError(Exception):
    """Raised when a project slug cannot be used as a directory name."""

    pass


def validate_url_for_ssrf(url: str, allow_private: bool = False) -> None:
    """Validate a page or icon URL before fetching it.

    Args:
        url: The URL to validate
        allow_private: If True, skip the resolved-IP check (local development only)

    Raises:
        SSRFError: If URL is potentially dangerous
    """
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise SSRFError(f"Invalid URL format: {e}")

    if parsed.scheme not in ("http", "https"):
        raise SSRFError(f"Scheme '{parsed.scheme}' not allowed. Only http:// and https:// are permitted.")

    try:
        port = parsed.port or (443 if parsed.scheme == "https" else 80)
    except ValueError as e:
        raise SSRFError(f"Invalid port in URL: {e}")

    if port in BLOCKED_PORTS:
        raise SSRFError(f"Port {port} is blocked for security reasons")

    hostname = parsed.hostname
    if not hostname:
        raise SSRFError("No hostname in URL")

    if hostname.lower() in LOCALHOST_NAMES:
        raise SSRFError(f"Localhost access not allowed: {hostname}")

    if allow_private:
        return

    try:
        ip = socket.gethostbyname(hostname)
    except (socket.gaierror, UnicodeError, ValueError) as e:
        # UnicodeError: empty or over-long IDNA label; ValueError: embedded NUL
        raise SSRFError(f"Cannot resolve hostname '{hostname}': {e}")

    ip_obj = ipaddress.ip_address(ip)
    for private_range in PRIVATE_IP_RANGES:
        if ip_obj in private_range:
            raise SSRFError(f"Private IP address not allowed: {ip} (resolved from {hostname})")

    if ip_obj.is_multicast or ip_obj.is_reserved:
        raise SSRFError(f"Reserved IP address not allowed: {ip}")


def validate_project_slug(slug: str) -> str:
    """Check that a slug is safe to use as a single directory name.

    Args:
        slug: Slug derived from a display name.

    Returns:
        The slug unchanged.

    Raises:
        UnsafeSlugError: If the slug is empty, a dot path, contains path
            separators, or contains control characters.
    """
    if not slug:
        raise UnsafeSlugError("Project name produces an empty directory name")

    if slug in (".", ".."):
        raise UnsafeSlugError(f"Project name '{slug}' is not a valid directory name")

    if "/" in slug or "\\" in slug:
        logger.warning("Path separator in project slug: %s", slug)
        raise UnsafeSlugError(f"Project name '{slug}' must not contain path separators")

    if any(ord(c) < 32 or ord(c) == 127 for c in slug):
        logger.warning("Control characters in project slug: %r", slug)
        raise UnsafeSlugError("Project name must not contain control characters")

    return slug
