"""Canonical Pydantic models shared across all patcher-auth modules.

This is the single source of truth for data shapes in the project. The
models fall into three groups:

**Enumerations** -- :class:`TokenScope`, :class:`ProviderType`, and the
error taxonomy :class:`AuthErrorCode`.

**Configuration models** -- produced by
:func:`~patcher_auth.config.parse_auth_config` (or loaded from a JSON file)
and consumed by :class:`~patcher_auth.auth.manager.AuthenticationManager`:
:class:`TokenPaths`, :class:`CacheConfig`, :class:`GitHubAppConfig`,
:class:`PATConfig`, :class:`RetryConfig`, and :class:`AuthManagerConfig`.
Configuration models accept both ``snake_case`` field names and the
``camelCase`` keys used by the action's JSON configuration.

**Wire and state models** -- broker and hosting API payloads
(:class:`BrokerLoginResponse`, :class:`GitHubTokenResponse`,
:class:`Release`), the in-memory :class:`CachedToken`, and the structured
telemetry events emitted by the manager.
"""

from __future__ import annotations

import enum
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from patcher_auth.exceptions import ConfigError
from patcher_auth.urls import PUBLIC_GITHUB_URL, validate_secure_url

DEFAULT_API_BASE_URL = "https://api.prod.app.gruntwork.io"
DEFAULT_AUDIENCE = "https://api.prod.app.gruntwork.io"
DEFAULT_GITHUB_ORG = "gruntwork-io"
DEFAULT_READ_TOKEN_PATH = "patcher-read/gruntwork-io"
DEFAULT_WRITE_TOKEN_PATH = "patcher-write/gruntwork-io"

EXPIRY_BUFFER = timedelta(minutes=5)
"""A cached token closer than this to its expiry is treated as stale."""


# --- Enumerations ---


class TokenScope(str, enum.Enum):
    """The intended use of a token.

    Providers may collapse several scopes onto one credential: READ,
    DOWNLOAD, and ADMIN all resolve to the "read" credential, while WRITE
    resolves to the "write" credential.
    """

    READ = "read"
    """Repository access, release lookups, dependency analysis."""

    WRITE = "write"
    """Creating pull requests, pushing branches."""

    DOWNLOAD = "download"
    """Release asset and tool binary downloads."""

    ADMIN = "admin"
    """Repository validation and organization access."""


class ProviderType(str, enum.Enum):
    """Stable provider labels used for telemetry and log messages."""

    GITHUB_APP = "github-app"
    PAT = "pat"
    HYBRID = "hybrid"
    """Synthetic label meaning no provider has been decided."""


class AuthErrorCode(str, enum.Enum):
    """Fixed error taxonomy carried by :class:`~patcher_auth.exceptions.AuthenticationError`."""

    TOKEN_UNAVAILABLE = "TOKEN_UNAVAILABLE"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"
    NETWORK_ERROR = "NETWORK_ERROR"
    RATE_LIMITED = "RATE_LIMITED"
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"


def error_code_for_status(status: int) -> AuthErrorCode:
    """Map an HTTP status to the closest :class:`AuthErrorCode`."""
    if status == 401:
        return AuthErrorCode.INVALID_CREDENTIALS
    if status == 403:
        return AuthErrorCode.INSUFFICIENT_PERMISSIONS
    if status == 429:
        return AuthErrorCode.RATE_LIMITED
    if status == 404:
        return AuthErrorCode.TOKEN_UNAVAILABLE
    return AuthErrorCode.NETWORK_ERROR


def is_retryable_status(status: int) -> bool:
    """Return ``True`` for statuses worth retrying (5xx, 429, 408)."""
    return status >= 500 or status in (408, 429)


# --- Configuration ---


class _ConfigModel(BaseModel):
    """Base for configuration models: camelCase aliases, snake_case names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class TokenPaths(_ConfigModel):
    """Broker token paths, one per scope family."""

    read: str = Field(
        default=DEFAULT_READ_TOKEN_PATH,
        description="Token path minted for READ, DOWNLOAD and ADMIN scopes",
    )
    write: str = Field(
        default=DEFAULT_WRITE_TOKEN_PATH,
        description="Token path minted for the WRITE scope",
    )


class CacheConfig(_ConfigModel):
    """Bounds for the brokered provider's in-memory token cache."""

    ttl_seconds: int = Field(
        default=3600, ge=1, description="Upper bound on a cached token's lifetime"
    )
    max_size: int = Field(
        default=10, ge=1, description="Maximum number of token paths cached at once"
    )


class GitHubAppConfig(_ConfigModel):
    """Settings for brokered (GitHub App) authentication.

    Example::

        GitHubAppConfig(
            enabled=True,
            api_base_url="https://api.prod.app.gruntwork.io",
            token_paths=TokenPaths(read="patcher-read/acme"),
        )
    """

    enabled: bool = False
    api_base_url: str = Field(
        default=DEFAULT_API_BASE_URL, description="Token broker base URL"
    )
    audience: str = Field(
        default=DEFAULT_AUDIENCE,
        description="Audience requested for the workload-identity token",
    )
    github_base_url: str = Field(
        default=PUBLIC_GITHUB_URL, description="Web URL of the GitHub instance"
    )
    token_paths: TokenPaths = Field(default_factory=TokenPaths)
    cache_config: CacheConfig = Field(default_factory=CacheConfig)

    @field_validator("api_base_url")
    @classmethod
    def _broker_url_must_be_secure(cls, value: str) -> str:
        try:
            return validate_secure_url(value, "api_base_url").rstrip("/")
        except ConfigError as exc:
            raise ValueError(str(exc)) from None

    @field_validator("audience")
    @classmethod
    def _audience_required(cls, value: str) -> str:
        if not value:
            raise ValueError("GitHub App audience is required")
        return value


class PATConfig(_ConfigModel):
    """Static personal access tokens.

    ``read_token`` and ``update_token`` override ``github_token`` for the
    read and write scope families respectively.
    """

    github_token: str = Field(default="", repr=False)
    read_token: Optional[str] = Field(default=None, repr=False)
    update_token: Optional[str] = Field(default=None, repr=False)
    github_base_url: str = Field(
        default=PUBLIC_GITHUB_URL, description="Web URL of the GitHub instance"
    )
    github_org: str = Field(
        default=DEFAULT_GITHUB_ORG,
        description="Primary organization whose repositories must always be reachable",
    )


class RetryConfig(_ConfigModel):
    """Exponential backoff policy for the brokered provider's mint step."""

    max_attempts: int = Field(default=3, ge=1)
    base_delay_ms: int = Field(default=1000, ge=0)
    max_delay_ms: int = Field(default=10000, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1.0)

    def delay_for(self, attempt: int) -> float:
        """Return the delay in seconds to wait after failed *attempt* (1-based)."""
        delay_ms = min(
            self.base_delay_ms * self.backoff_multiplier ** (attempt - 1),
            self.max_delay_ms,
        )
        return delay_ms / 1000.0


class AuthManagerConfig(_ConfigModel):
    """Top-level configuration consumed by the authentication manager.

    ``selection_ttl_seconds`` controls how long a successful provider health
    probe is trusted before the next probe. The default of ``0`` re-probes
    the selected provider on every call.
    """

    github_app_config: GitHubAppConfig = Field(default_factory=GitHubAppConfig)
    pat_config: PATConfig = Field(default_factory=PATConfig)
    retry_config: RetryConfig = Field(default_factory=RetryConfig)
    selection_ttl_seconds: float = Field(default=0.0, ge=0.0)


# --- Token state ---


class CachedToken(BaseModel):
    """A minted token held in a provider's private cache.

    Attributes:
        token: The secret value. Overwritten with ``""`` on dispose.
        expires_at: UTC instant the broker reported the token expires.
        scope: The scope that triggered the mint.
        cached_until: Optional UTC instant after which the entry is
            dropped regardless of ``expires_at`` (the cache TTL).
    """

    token: str = Field(repr=False)
    expires_at: datetime
    scope: TokenScope
    cached_until: Optional[datetime] = None

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        """Return ``True`` if the token is non-empty and still usable.

        An entry past ``cached_until`` is stale. So is one whose expiry
        falls inside :data:`EXPIRY_BUFFER`.
        """
        if not self.token:
            return False
        now = now or datetime.now(timezone.utc)
        if self.cached_until is not None and now >= self.cached_until:
            return False
        return self.expires_at > now + EXPIRY_BUFFER


# --- Wire models ---


class IdentityTokenResponse(BaseModel):
    """Response from the Actions runner's ID-token endpoint."""

    value: str = ""


class BrokerLoginResponse(BaseModel):
    """Response from ``POST /tokens/auth/login``."""

    model_config = ConfigDict(extra="ignore")

    token: str = ""


class GitHubTokenResponse(BaseModel):
    """Response from ``GET /tokens/pat/<token_path>``."""

    model_config = ConfigDict(extra="ignore")

    token: str = ""
    expires_in: int = Field(default=3600, description="Lifetime in seconds")

    @field_validator("expires_in", mode="before")
    @classmethod
    def _default_when_missing(cls, value: Any) -> Any:
        return value or 3600


class ReleaseAsset(BaseModel):
    """A single downloadable file attached to a release."""

    model_config = ConfigDict(extra="allow")

    name: str
    url: str
    browser_download_url: Optional[str] = None


class Release(BaseModel):
    """The subset of a GitHub release the action needs."""

    model_config = ConfigDict(extra="allow")

    tag_name: str
    name: Optional[str] = None
    assets: list[ReleaseAsset] = Field(default_factory=list)


# --- Telemetry ---


class TokenAcquisitionEvent(BaseModel):
    """Structured record of one ``get_token`` call. Never holds secrets."""

    event: str = "token_acquisition"
    provider: str
    scope: TokenScope
    status: str
    duration_ms: int
    error_type: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class FallbackEvent(BaseModel):
    """Structured record of a fallback from brokered to static auth."""

    reason: str
    error_type: str = "unknown"
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
