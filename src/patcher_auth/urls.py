"""URL validation and hosting-API base URL resolution.

Broker and hosting URLs come from workflow inputs, so they are checked
before any credential is sent to them: only HTTPS is accepted, with a
plain-HTTP exception for ``localhost`` and ``127.0.0.1`` during local
development.
"""

from __future__ import annotations

from urllib.parse import urlsplit

from patcher_auth.exceptions import ConfigError

PUBLIC_GITHUB_URL = "https://github.com"
"""Base URL of the public GitHub instance."""

PUBLIC_GITHUB_API_URL = "https://api.github.com"
"""REST API base URL of the public GitHub instance."""

_DANGEROUS_SCHEMES = ("javascript:", "data:", "file:", "ftp:", "ldap:", "gopher:")
_LOCAL_HOSTS = ("localhost", "127.0.0.1")


def validate_secure_url(url: str, parameter_name: str) -> str:
    """Check that *url* is a well-formed HTTPS URL.

    The URL itself is never echoed in the error message; only the name of
    the offending parameter is.

    Args:
        url: The candidate URL.
        parameter_name: Input or field name used in error messages.

    Returns:
        *url*, unchanged, when it is acceptable.

    Raises:
        ConfigError: If the URL uses a dangerous or non-HTTPS scheme, has
            no host, or cannot be parsed.
    """
    if url.lower().startswith(_DANGEROUS_SCHEMES):
        raise ConfigError(f"{parameter_name} must be a valid URL")

    try:
        parts = urlsplit(url)
        hostname = parts.hostname
    except ValueError:
        raise ConfigError(f"{parameter_name} must be a valid URL") from None

    if not parts.scheme or not hostname:
        raise ConfigError(f"{parameter_name} must be a valid URL")

    allowed = {"https"}
    if hostname in _LOCAL_HOSTS:
        allowed.add("http")
    if parts.scheme.lower() not in allowed:
        raise ConfigError(
            f"{parameter_name} must use HTTPS protocol (or HTTP for localhost)"
        )
    return url


def github_api_url(base_url: str, api_version: str = "v3") -> str:
    """Return the REST API root for a GitHub instance.

    Args:
        base_url: Web URL of the instance, e.g. ``https://github.com`` or
            ``https://github.example.com``.
        api_version: Enterprise API path segment.

    Returns:
        ``https://api.github.com`` for the public instance, otherwise
        ``<base_url>/api/<api_version>``.
    """
    base = base_url.rstrip("/")
    if base == PUBLIC_GITHUB_URL:
        return PUBLIC_GITHUB_API_URL
    return f"{base}/api/{api_version}"
