"""Authentication manager -- provider selection, failover and telemetry.

The :class:`AuthenticationManager` is the component callers use. It owns
one :class:`~patcher_auth.providers.pat.PATProvider` (always) and one
:class:`~patcher_auth.providers.github_app.GitHubAppProvider` (only when
GitHub App authentication is enabled) and decides which of them serves a
request:

1. A previously selected provider is reused if its health probe passes.
   If the probe fails, that provider is skipped for the rest of the call.
2. Otherwise the brokered provider is probed first; if it is unhealthy
   or the probe raises, a warning and an ``auth-fallback`` event are
   emitted.
3. The static provider is probed next.
4. If neither is healthy, ``PROVIDER_UNAVAILABLE`` is raised.

Failover happens only during selection. A failed ``get_token`` or
``validate_access`` is never retried with the other provider.

For most use cases, call :func:`create_manager` with a parsed
:class:`~patcher_auth.models.AuthManagerConfig`.

See Also:
    :class:`~patcher_auth.auth.base.CredentialProvider` -- the provider interface.
    :func:`~patcher_auth.config.parse_auth_config` -- builds the config
    from Actions inputs.
"""

from __future__ import annotations

import asyncio
import time
from typing import Optional

import httpx

from patcher_auth.actions import ActionsRuntime
from patcher_auth.auth.base import CredentialProvider
from patcher_auth.auth.retry import Sleep
from patcher_auth.exceptions import AuthenticationError
from patcher_auth.models import (
    AuthErrorCode,
    AuthManagerConfig,
    FallbackEvent,
    ProviderType,
    TokenAcquisitionEvent,
    TokenScope,
)
from patcher_auth.output import debug, event, info, warning
from patcher_auth.redaction import sanitize


class AuthenticationManager:
    """Select a healthy credential provider and delegate token requests to it.

    Args:
        config: Provider, retry and selection settings.
        runtime: CI runtime shared by both providers. Defaults to a fresh
            :class:`~patcher_auth.actions.ActionsRuntime`.
        transport: Optional httpx transport passed to both providers,
            used by tests.
        sleep: Backoff sleep passed to the brokered provider.

    Example::

        from patcher_auth.auth import create_manager
        from patcher_auth.config import parse_auth_config

        manager = create_manager(parse_auth_config())
        try:
            token = await manager.get_token(TokenScope.WRITE)
        finally:
            manager.dispose()
    """

    def __init__(
        self,
        config: AuthManagerConfig,
        runtime: Optional[ActionsRuntime] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        from patcher_auth.providers.github_app import GitHubAppProvider
        from patcher_auth.providers.pat import PATProvider

        self._config = config
        self._transport = transport
        runtime = runtime or ActionsRuntime()

        self._pat_provider: CredentialProvider = PATProvider(
            config.pat_config, runtime=runtime, transport=transport
        )
        self._github_app_provider: Optional[CredentialProvider] = None
        if config.github_app_config.enabled:
            self._github_app_provider = GitHubAppProvider(
                config.github_app_config,
                config.retry_config,
                runtime=runtime,
                transport=transport,
                sleep=sleep,
            )

        self._current: Optional[CredentialProvider] = None
        self._selected_at: float = 0.0

    @property
    def config(self) -> AuthManagerConfig:
        """The configuration this manager was built from."""
        return self._config

    @property
    def transport(self) -> Optional[httpx.AsyncBaseTransport]:
        """The httpx transport shared with the providers, if one was given."""
        return self._transport

    @property
    def current_provider(self) -> Optional[CredentialProvider]:
        """The provider chosen by the last successful selection, if any."""
        return self._current

    async def get_provider(self) -> CredentialProvider:
        """Return a healthy provider, preferring GitHub App authentication.

        Returns:
            The selected :class:`~patcher_auth.auth.base.CredentialProvider`.

        Raises:
            AuthenticationError: ``PROVIDER_UNAVAILABLE`` (provider type
                ``hybrid``) when no provider is healthy.
        """
        # A provider that just failed its reuse probe is not probed again.
        failed: Optional[CredentialProvider] = None
        if self._current is not None:
            if self._selection_is_fresh() or await self._current.is_healthy():
                return self._current
            failed, self._current = self._current, None

        if self._github_app_provider is not None:
            try:
                healthy = (
                    self._github_app_provider is not failed
                    and await self._github_app_provider.is_healthy()
                )
            except Exception as exc:
                warning(f"GitHub App authentication unavailable: {sanitize(str(exc))}")
                self._log_fallback("github-app-unhealthy", exc)
            else:
                if healthy:
                    info("Using GitHub App authentication")
                    return self._select(self._github_app_provider)
                warning("GitHub App authentication unavailable: Health check failed")
                self._log_fallback("github-app-unhealthy")

        if self._pat_provider is not failed and await self._pat_provider.is_healthy():
            if self._github_app_provider is not None:
                info("Using PAT authentication (fallback from GitHub App)")
            else:
                info("Using PAT authentication")
            return self._select(self._pat_provider)

        raise AuthenticationError(
            "No healthy authentication providers available",
            AuthErrorCode.PROVIDER_UNAVAILABLE,
            ProviderType.HYBRID,
        )

    async def get_token(self, scope: TokenScope) -> str:
        """Return a token for *scope* from the selected provider.

        Emits an ``auth-telemetry`` event with the outcome and duration.

        Args:
            scope: The intended use of the token.

        Returns:
            The token string (already masked).

        Raises:
            AuthenticationError: From selection or from the provider.
        """
        started = time.monotonic()
        provider: Optional[CredentialProvider] = None
        try:
            provider = await self.get_provider()
            token = await provider.get_token(scope)
        except Exception as exc:
            label = provider.token_type if provider is not None else ProviderType.HYBRID
            self._log_telemetry(label, scope, "failed", started, exc)
            raise

        self._log_telemetry(provider.token_type, scope, "success", started)
        return token

    async def validate_access(self, owner: str, repo: str) -> None:
        """Validate ``owner/repo`` access with the selected provider."""
        provider = await self.get_provider()
        await provider.validate_access(owner, repo)

    async def get_provider_type(self) -> ProviderType:
        """Return the label of the provider that would serve the next request."""
        provider = await self.get_provider()
        return provider.token_type

    def dispose(self) -> None:
        """Dispose both providers and forget the selection. Idempotent."""
        if self._github_app_provider is not None:
            self._github_app_provider.dispose()
        self._pat_provider.dispose()
        self._current = None
        self._selected_at = 0.0
        debug("Authentication manager disposed")

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _select(self, provider: CredentialProvider) -> CredentialProvider:
        self._current = provider
        self._selected_at = time.monotonic()
        return provider

    def _selection_is_fresh(self) -> bool:
        ttl = self._config.selection_ttl_seconds
        return ttl > 0 and time.monotonic() - self._selected_at < ttl

    def _log_fallback(self, reason: str, exc: Optional[BaseException] = None) -> None:
        info(f"Authentication fallback: {reason}")
        if exc is not None:
            debug(f"Fallback error details: {sanitize(str(exc))}")
        event(
            "auth-fallback",
            FallbackEvent(
                reason=reason,
                error_type=type(exc).__name__ if exc is not None else "unknown",
            ),
        )

    def _log_telemetry(
        self,
        provider: ProviderType,
        scope: TokenScope,
        status: str,
        started: float,
        exc: Optional[BaseException] = None,
    ) -> None:
        duration_ms = int((time.monotonic() - started) * 1000)
        line = f"Token acquisition: {provider.value}/{scope.value} {status} ({duration_ms}ms)"
        if exc is not None:
            line = f"{line} - {sanitize(str(exc))}"
        debug(line)
        event(
            "auth-telemetry",
            TokenAcquisitionEvent(
                provider=provider.value,
                scope=scope,
                status=status,
                duration_ms=duration_ms,
                error_type=type(exc).__name__ if exc is not None else None,
            ),
        )


def create_manager(
    config: AuthManagerConfig,
    runtime: Optional[ActionsRuntime] = None,
) -> AuthenticationManager:
    """Create an :class:`AuthenticationManager` wired to the real runner.

    Args:
        config: Parsed configuration, usually from
            :func:`~patcher_auth.config.parse_auth_config`.
        runtime: Optional CI runtime override.

    Returns:
        A manager with the static provider and, when enabled, the
        brokered provider constructed.
    """
    manager = AuthenticationManager(config, runtime=runtime)
    debug(
        "Authentication manager created "
        f"(github_app={'enabled' if config.github_app_config.enabled else 'disabled'})"
    )
    return manager
