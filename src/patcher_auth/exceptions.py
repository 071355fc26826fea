"""Exception hierarchy for patcher-auth.

All exceptions inherit from :class:`PatcherAuthError`, which carries an
``exit_code`` attribute mapped to a constant from
:mod:`patcher_auth.exit_codes`. The CLI entry point in
:func:`patcher_auth.app.main` catches ``PatcherAuthError`` and exits with
the appropriate code.

Messages are built from fixed templates populated with non-secret fields
(status codes, repository names, token paths). Anything that may echo a
remote response is passed through :func:`~patcher_auth.redaction.sanitize`
before it reaches an exception.

Subclass hierarchy::

    PatcherAuthError (exit 1)
    +-- ConfigError          (exit 2)
    +-- AuthenticationError  (exit 3)
    +-- IdentityTokenError   (exit 3)
    +-- APIError             (exit 5)
    |   +-- AccessDeniedError  (exit 3)
    |   +-- NotFoundError      (exit 4)
    |   +-- RateLimitError     (exit 5)
    |   +-- ServerError        (exit 5)
    +-- ConnectionError_     (exit 6)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from patcher_auth.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONFIG_ERROR,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
)

if TYPE_CHECKING:
    from patcher_auth.models import AuthErrorCode, ProviderType, TokenScope


class PatcherAuthError(Exception):
    """Base exception for all patcher-auth errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(PatcherAuthError):
    """Raised for invalid action inputs, URLs, or configuration files."""

    exit_code = EXIT_CONFIG_ERROR


class AuthenticationError(PatcherAuthError):
    """A credential provider could not produce or use a token.

    Carries enough structure for the
    :class:`~patcher_auth.auth.manager.AuthenticationManager` and its
    callers to decide whether to fail over, retry, or abort. The raw token
    value is never part of the message.

    Args:
        message: Sanitized, human-readable description.
        code: Category from the fixed
            :class:`~patcher_auth.models.AuthErrorCode` taxonomy.
        provider_type: Which provider raised the error (``"hybrid"`` when
            no provider was selected).
        scope: The scope the caller requested, when known.
        retryable: Whether the brokered provider's retry loop may try the
            operation again.
    """

    exit_code = EXIT_AUTH_FAILURE

    def __init__(
        self,
        message: str,
        code: AuthErrorCode,
        provider_type: ProviderType,
        scope: Optional[TokenScope] = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.code = code
        self.provider_type = provider_type
        self.scope = scope
        self.retryable = retryable

    def __repr__(self) -> str:
        return (
            f"AuthenticationError(code={self.code.value!s}, "
            f"provider_type={self.provider_type.value!s}, "
            f"retryable={self.retryable})"
        )


class IdentityTokenError(PatcherAuthError):
    """Raised when the CI runner cannot issue a workload-identity token."""

    exit_code = EXIT_AUTH_FAILURE


class APIError(PatcherAuthError):
    """Base for non-2xx responses from the hosting API.

    Args:
        message: Sanitized description of the failure.
        status_code: The HTTP status the API returned.
    """

    exit_code = EXIT_SERVER_ERROR

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class AccessDeniedError(APIError):
    """Raised when the API returns HTTP 401 or 403."""

    exit_code = EXIT_AUTH_FAILURE


class NotFoundError(APIError):
    """Raised when the API returns HTTP 404 (resource not found or hidden)."""

    exit_code = EXIT_NOT_FOUND


class RateLimitError(APIError):
    """Raised when the API returns HTTP 429."""

    exit_code = EXIT_SERVER_ERROR


class ServerError(APIError):
    """Raised for HTTP 5xx and any other unexpected status."""

    exit_code = EXIT_SERVER_ERROR


class ConnectionError_(PatcherAuthError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR
