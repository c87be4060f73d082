"""
Input checks for client addresses and tracked destinations.
"""

import ipaddress
from typing import Optional, Tuple
from urllib.parse import urlparse

from .logging_config import get_logger

logger = get_logger(__name__)

LOCAL_HOSTNAMES = {"localhost", "localhost.localdomain", "local", "testclient"}

ALLOWED_SCHEMES = {"http", "https"}

MAX_URL_LENGTH = 2048


def is_private_ip(ip_str: str) -> bool:
    """Check if an IP address is private, loopback, link-local or reserved."""
    try:
        ip = ipaddress.ip_address(ip_str)
    except ValueError:
        return False
    return ip.is_private or ip.is_loopback or ip.is_link_local or ip.is_reserved


def clean_client_ip(raw: Optional[str]) -> Optional[str]:
    """
    Return a public, parseable client IP or None.

    None means "unknown": geolocation then falls back to origin lookup.
    """
    if not raw:
        return None
    candidate = raw.strip()
    if not candidate or candidate.lower() in LOCAL_HOSTNAMES:
        return None
    try:
        ip = ipaddress.ip_address(candidate)
    except ValueError:
        logger.debug(f"Ignoring unparseable client address: {candidate[:64]}")
        return None
    if is_private_ip(candidate):
        return None
    return str(ip)


def validate_destination_url(url: str) -> Tuple[bool, Optional[str]]:
    """
    Validate a destination before it is stored on a link.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not url:
        return False, "URL is required"

    if len(url) > MAX_URL_LENGTH:
        return False, f"URL too long (max {MAX_URL_LENGTH} characters)"

    try:
        parsed = urlparse(url)
    except ValueError:
        return False, "Invalid URL format"

    scheme = parsed.scheme.lower()
    if scheme not in ALLOWED_SCHEMES:
        return False, f"Invalid URL scheme '{scheme}'. Only http and https are allowed"

    host = parsed.hostname
    if not host:
        return False, "Could not extract host from URL"

    if host.lower() in LOCAL_HOSTNAMES or is_private_ip(host):
        logger.warning(f"Local destination rejected: {host}")
        return False, "URLs pointing to private/local addresses are not allowed"

    if parsed.username or parsed.password:
        return False, "Invalid URL format"

    return True, None
