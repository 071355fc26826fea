"""Static personal access token provider.

This module provides :class:`PATProvider`, which serves tokens supplied as
action inputs. Up to three tokens are configured: the general
``github_token`` and optional ``read_token`` / ``update_token`` overrides.
Resolution is a pure configuration lookup; no network call is made to
mint a token.

Scope precedence:

* READ, DOWNLOAD, ADMIN -> ``read_token``, else ``github_token``
* WRITE -> ``update_token``, else ``github_token``

All configured tokens are masked as soon as the provider is constructed.

See Also:
    :class:`patcher_auth.auth.base.CredentialProvider` for the base interface.
    :class:`patcher_auth.providers.github_app.GitHubAppProvider` for the
    brokered alternative.
"""

from __future__ import annotations

from typing import Optional

import httpx

from patcher_auth.actions import ActionsRuntime
from patcher_auth.auth.base import CredentialProvider
from patcher_auth.client.github import GitHubClient
from patcher_auth.exceptions import (
    AccessDeniedError,
    APIError,
    AuthenticationError,
    ConnectionError_,
    NotFoundError,
)
from patcher_auth.models import (
    AuthErrorCode,
    PATConfig,
    ProviderType,
    TokenScope,
    error_code_for_status,
    is_retryable_status,
)
from patcher_auth.output import debug, warning


class PATProvider(CredentialProvider):
    """Serve static personal access tokens by scope.

    Args:
        config: The configured tokens, GitHub instance, and primary
            organization.
        runtime: CI runtime used to mask the tokens. Defaults to a fresh
            :class:`~patcher_auth.actions.ActionsRuntime`.
        transport: Optional httpx transport for the GitHub API, used by tests.
    """

    def __init__(
        self,
        config: PATConfig,
        runtime: Optional[ActionsRuntime] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self._runtime = runtime or ActionsRuntime()
        self._transport = transport

        for token in (config.github_token, config.read_token, config.update_token):
            if token:
                self._runtime.set_secret(token)

    @property
    def token_type(self) -> ProviderType:
        return ProviderType.PAT

    async def get_token(self, scope: TokenScope) -> str:
        """Resolve the configured token for *scope*.

        Args:
            scope: The intended use of the token.

        Returns:
            The scope-specific override if configured, else ``github_token``.

        Raises:
            AuthenticationError: ``TOKEN_UNAVAILABLE`` when neither is set.
        """
        if scope == TokenScope.WRITE:
            token = self._config.update_token or self._config.github_token
        else:
            token = self._config.read_token or self._config.github_token

        if not token:
            raise AuthenticationError(
                f"No PAT available for scope: {scope.value}",
                AuthErrorCode.TOKEN_UNAVAILABLE,
                self.token_type,
                scope,
                retryable=False,
            )
        return token

    async def validate_access(self, owner: str, repo: str) -> None:
        """Check that the READ token can see ``owner/repo``.

        A 404 outside the primary organization only produces a warning,
        since the repository may simply be hidden from the token. A 404 for
        the primary organization is fatal: that repository must exist.

        Args:
            owner: Repository owner.
            repo: Repository name.

        Raises:
            AuthenticationError: On a primary-organization 404, on 401 / 403,
                or when the check fails for any other reason.
        """
        token = await self.get_token(TokenScope.READ)

        try:
            async with GitHubClient(
                token, self._config.github_base_url, transport=self._transport
            ) as gh:
                await gh.get_repository(owner, repo)
        except NotFoundError as exc:
            if owner != self._config.github_org:
                warning(
                    f"Cannot validate access to '{owner}/{repo}' repository. This may be "
                    "due to token permissions or repository visibility. Proceeding "
                    "with download attempt."
                )
                return
            raise AuthenticationError(
                f"Cannot access the '{repo}' repository. This could indicate: "
                "1) The repository doesn't exist, 2) Your token doesn't have access "
                "to this repository, or 3) Your token lacks the 'repo' scope for "
                "private repositories. Please check your token permissions and "
                "repository access.",
                error_code_for_status(exc.status_code),
                self.token_type,
                TokenScope.READ,
            ) from None
        except AccessDeniedError as exc:
            raise AuthenticationError(
                f"Authentication failed when accessing '{owner}/{repo}'. "
                "Please check your token permissions.",
                error_code_for_status(exc.status_code),
                self.token_type,
                TokenScope.READ,
            ) from None
        except APIError as exc:
            raise AuthenticationError(
                f"Could not validate access to '{owner}/{repo}': {exc}",
                error_code_for_status(exc.status_code),
                self.token_type,
                TokenScope.READ,
                retryable=is_retryable_status(exc.status_code),
            ) from None
        except ConnectionError_ as exc:
            raise AuthenticationError(
                f"Could not validate access to '{owner}/{repo}': {exc}",
                AuthErrorCode.NETWORK_ERROR,
                self.token_type,
                TokenScope.READ,
                retryable=True,
            ) from None

        debug(f"PAT access validated for {owner}/{repo}")

    async def is_healthy(self) -> bool:
        """The provider is healthy iff a general ``github_token`` is configured."""
        return bool(self._config.github_token)

    def dispose(self) -> None:
        # Tokens belong to the configuration; nothing is cached here.
        pass
