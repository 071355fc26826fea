"""Brokered GitHub App token provider.

This module provides :class:`GitHubAppProvider`, which mints short-lived
GitHub tokens through the token broker:

1. Obtain a workload-identity (OIDC) token for the configured audience
   from the Actions runner.
2. ``POST <api_base_url>/tokens/auth/login`` with that assertion as a
   bearer token; the broker answers ``{"token": <session token>}``.
3. ``GET <api_base_url>/tokens/pat/<token_path>`` with the session token;
   the broker answers ``{"token": ..., "expires_in": ...}``.

Minted tokens are cached in memory by **token path**, so READ, DOWNLOAD
and ADMIN share one cached token. A cached token is reused until it is
within five minutes of its expiry or older than the configured cache TTL,
whichever comes first. The mint step is wrapped in
:func:`~patcher_auth.auth.retry.retry_async`; only transport failures and
5xx / 408 / 429 responses are retried.

Concurrent callers asking for the same token path are serialised on a
per-path :class:`asyncio.Lock`, so only one exchange runs and the others
reuse its result.

See Also:
    :class:`patcher_auth.auth.base.CredentialProvider` for the base interface.
    :class:`patcher_auth.providers.pat.PATProvider` for the static fallback.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from patcher_auth import __version__
from patcher_auth.actions import ActionsRuntime
from patcher_auth.auth.base import CredentialProvider
from patcher_auth.auth.retry import Sleep, retry_async
from patcher_auth.client.github import GitHubClient
from patcher_auth.exceptions import (
    APIError,
    AuthenticationError,
    ConnectionError_,
    IdentityTokenError,
    NotFoundError,
)
from patcher_auth.models import (
    AuthErrorCode,
    BrokerLoginResponse,
    CachedToken,
    GitHubAppConfig,
    GitHubTokenResponse,
    ProviderType,
    RetryConfig,
    TokenScope,
    error_code_for_status,
    is_retryable_status,
)
from patcher_auth.output import debug
from patcher_auth.redaction import sanitize

M = TypeVar("M", bound=BaseModel)

USER_AGENT = f"patcher-auth/{__version__} (github-app-provider)"


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, AuthenticationError):
        return exc.retryable
    return isinstance(exc, httpx.TransportError)


class GitHubAppProvider(CredentialProvider):
    """Mint and cache short-lived tokens through the token broker.

    Args:
        config: Broker URL, audience, token paths and cache bounds.
        retry_config: Backoff policy for the mint step. Defaults to
            :class:`~patcher_auth.models.RetryConfig` defaults.
        runtime: CI runtime that issues identity tokens and masks secrets.
        transport: Optional httpx transport for broker and GitHub calls,
            used by tests.
        sleep: Awaitable used for backoff delays. Tests pass a recorder.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        config: GitHubAppConfig,
        retry_config: Optional[RetryConfig] = None,
        runtime: Optional[ActionsRuntime] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Sleep = asyncio.sleep,
        timeout: float = 30.0,
    ) -> None:
        self._config = config
        self._retry = retry_config or RetryConfig()
        self._runtime = runtime or ActionsRuntime()
        self._transport = transport
        self._sleep = sleep
        self._timeout = timeout
        self._token_cache: dict[str, CachedToken] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def token_type(self) -> ProviderType:
        return ProviderType.GITHUB_APP

    # ------------------------------------------------------------------ #
    # CredentialProvider
    # ------------------------------------------------------------------ #

    async def get_token(self, scope: TokenScope) -> str:
        """Return a cached token for *scope*'s path, minting one if needed.

        Args:
            scope: The intended use of the token.

        Returns:
            A token valid for at least five more minutes.

        Raises:
            AuthenticationError: If the identity token cannot be obtained,
                the broker rejects the exchange, or retries are exhausted.
        """
        token_path = self._token_path(scope)

        cached = self._cached_token(token_path)
        if cached:
            debug(f"Using cached GitHub App token for {token_path}")
            return cached

        lock = self._locks.setdefault(token_path, asyncio.Lock())
        async with lock:
            # Another caller may have minted while we waited.
            cached = self._cached_token(token_path)
            if cached:
                return cached

            minted = await retry_async(
                lambda: self._fetch_token(scope, token_path),
                self._retry,
                _is_retryable,
                sleep=self._sleep,
                label=f"GitHub App token request for {token_path}",
            )
            self._store(token_path, scope, minted)

        self._runtime.set_secret(minted.token)
        debug(f"Minted GitHub App token for {token_path} (expires in {minted.expires_in}s)")
        return minted.token

    async def validate_access(self, owner: str, repo: str) -> None:
        """Check that a READ token can see ``owner/repo``.

        Args:
            owner: Repository owner.
            repo: Repository name.

        Raises:
            AuthenticationError: If no token can be minted, or GitHub
                answers with an error status or cannot be reached.
        """
        token = await self.get_token(TokenScope.READ)

        try:
            async with GitHubClient(
                token,
                self._config.github_base_url,
                transport=self._transport,
                timeout=self._timeout,
            ) as gh:
                await gh.get_repository(owner, repo)
        except NotFoundError as exc:
            raise AuthenticationError(
                f"Repository '{owner}/{repo}' not found or the GitHub App has no access to it",
                error_code_for_status(exc.status_code),
                self.token_type,
                TokenScope.READ,
            ) from None
        except APIError as exc:
            if exc.status_code in (401, 403):
                message = (
                    f"GitHub App authentication rejected when accessing "
                    f"'{owner}/{repo}' (HTTP {exc.status_code})"
                )
            else:
                message = f"Repository access check for '{owner}/{repo}' failed: HTTP {exc.status_code}"
            raise AuthenticationError(
                message,
                error_code_for_status(exc.status_code),
                self.token_type,
                TokenScope.READ,
                retryable=is_retryable_status(exc.status_code),
            ) from None
        except ConnectionError_ as exc:
            raise AuthenticationError(
                f"Repository access check for '{owner}/{repo}' failed: {exc}",
                AuthErrorCode.NETWORK_ERROR,
                self.token_type,
                TokenScope.READ,
                retryable=True,
            ) from None

        debug(f"GitHub App access validated for {owner}/{repo}")

    async def is_healthy(self) -> bool:
        """Probe the runner for an identity token and the broker for liveness.

        Returns:
            ``True`` only if a non-empty identity token was issued and
            ``GET <api_base_url>/health`` answered with a 2xx status.
        """
        try:
            id_token = await self._runtime.get_id_token(self._config.audience)
            if not id_token:
                return False

            async with self._broker_client() as client:
                response = await client.get("/health")
            return response.is_success
        except Exception as exc:
            debug(f"GitHub App health check failed: {sanitize(str(exc))}")
            return False

    def dispose(self) -> None:
        for cached in self._token_cache.values():
            cached.token = ""
        self._token_cache.clear()
        debug("GitHub App provider disposed and tokens cleared")

    # ------------------------------------------------------------------ #
    # Cache
    # ------------------------------------------------------------------ #

    def _token_path(self, scope: TokenScope) -> str:
        if scope == TokenScope.WRITE:
            return self._config.token_paths.write
        return self._config.token_paths.read

    def _cached_token(self, token_path: str) -> Optional[str]:
        """Return the cached token for *token_path*, evicting it if stale."""
        cached = self._token_cache.get(token_path)
        if cached is None:
            return None
        if cached.is_valid():
            return cached.token
        del self._token_cache[token_path]
        return None

    def _store(self, token_path: str, scope: TokenScope, minted: GitHubTokenResponse) -> None:
        cache_config = self._config.cache_config
        now = datetime.now(timezone.utc)

        if token_path not in self._token_cache:
            while len(self._token_cache) >= cache_config.max_size:
                oldest = next(iter(self._token_cache))
                self._token_cache.pop(oldest).token = ""

        self._token_cache[token_path] = CachedToken(
            token=minted.token,
            expires_at=now + timedelta(seconds=minted.expires_in),
            scope=scope,
            cached_until=now + timedelta(seconds=cache_config.ttl_seconds),
        )

    # ------------------------------------------------------------------ #
    # Broker exchange
    # ------------------------------------------------------------------ #

    def _broker_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._config.api_base_url,
            transport=self._transport,
            timeout=self._timeout,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
        )

    async def _fetch_token(self, scope: TokenScope, token_path: str) -> GitHubTokenResponse:
        """Run one full identity -> session -> GitHub token exchange."""
        try:
            id_token = await self._runtime.get_id_token(self._config.audience)
        except IdentityTokenError as exc:
            raise AuthenticationError(
                f"Failed to obtain identity token: {exc}",
                AuthErrorCode.TOKEN_UNAVAILABLE,
                self.token_type,
                scope,
            ) from None
        if not id_token:
            raise AuthenticationError(
                "Failed to obtain identity token",
                AuthErrorCode.TOKEN_UNAVAILABLE,
                self.token_type,
                scope,
            )

        async with self._broker_client() as client:
            response = await self._request(
                client, "POST", "/tokens/auth/login", id_token, scope
            )
            session_token = self._parse(response, BrokerLoginResponse, scope).token
            if not session_token:
                raise AuthenticationError(
                    "Token broker login returned no session token",
                    AuthErrorCode.TOKEN_UNAVAILABLE,
                    self.token_type,
                    scope,
                )
            self._runtime.set_secret(session_token)

            response = await self._request(
                client, "GET", f"/tokens/pat/{token_path}", session_token, scope
            )
            minted = self._parse(response, GitHubTokenResponse, scope)

        if not minted.token:
            raise AuthenticationError(
                f"Token broker returned no token for {token_path}",
                AuthErrorCode.TOKEN_UNAVAILABLE,
                self.token_type,
                scope,
            )
        return minted

    async def _request(
        self,
        client: httpx.AsyncClient,
        method: str,
        path: str,
        bearer: str,
        scope: TokenScope,
    ) -> httpx.Response:
        try:
            response = await client.request(
                method, path, headers={"Authorization": f"Bearer {bearer}"}
            )
        except httpx.HTTPError as exc:
            raise AuthenticationError(
                f"Provider token request failed: {sanitize(str(exc))}",
                AuthErrorCode.NETWORK_ERROR,
                self.token_type,
                scope,
                retryable=True,
            ) from None

        debug(f"{method} {path} -> HTTP {response.status_code}")
        if response.is_success:
            return response

        status = response.status_code
        raise AuthenticationError(
            f"Provider token request failed: {status} {sanitize(response.reason_phrase)}",
            error_code_for_status(status),
            self.token_type,
            scope,
            retryable=is_retryable_status(status),
        )

    def _parse(self, response: httpx.Response, model: type[M], scope: TokenScope) -> M:
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError):
            raise AuthenticationError(
                "Token broker returned an unreadable response",
                AuthErrorCode.TOKEN_UNAVAILABLE,
                self.token_type,
                scope,
            ) from None
