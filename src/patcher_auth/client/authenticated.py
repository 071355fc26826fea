"""GitHub client that draws its token from the authentication manager.

:class:`AuthenticatedGitHubClient` asks the
:class:`~patcher_auth.auth.manager.AuthenticationManager` for a fresh READ
token on every operation, so a brokered token that expired between calls
is transparently re-minted. Release lookups rewrite 404 / 401 / 403
failures into messages that name the repository, the tag and the
provider in use.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import httpx

from patcher_auth.client.github import GitHubClient
from patcher_auth.exceptions import AccessDeniedError, NotFoundError
from patcher_auth.models import ProviderType, Release, TokenScope
from patcher_auth.output import info
from patcher_auth.urls import PUBLIC_GITHUB_URL

if TYPE_CHECKING:
    from patcher_auth.auth.manager import AuthenticationManager


class AuthenticatedGitHubClient:
    """Release and access operations backed by managed credentials.

    Args:
        manager: The authentication manager supplying tokens.
        base_url: Web URL of the GitHub instance.
        transport: Optional httpx transport. Defaults to the manager's.

    Example::

        client = await create_authenticated_client(manager, "https://github.com")
        release = await client.get_release_by_tag("gruntwork-io", "patcher-cli", "v0.9.4")
    """

    def __init__(
        self,
        manager: AuthenticationManager,
        base_url: str = PUBLIC_GITHUB_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._manager = manager
        self._base_url = base_url
        self._transport = transport if transport is not None else manager.transport

    async def get_release_by_tag(self, owner: str, repo: str, tag: str) -> Release:
        """Fetch release *tag* of ``owner/repo`` with a READ token.

        Raises:
            NotFoundError: If the repository or tag does not exist (or is
                hidden from the token).
            AccessDeniedError: If GitHub rejects the token.
            AuthenticationError: If no token can be obtained.
            APIError: For any other error status.
            ConnectionError_: On network failures.
        """
        token = await self._manager.get_token(TokenScope.READ)

        try:
            async with GitHubClient(token, self._base_url, transport=self._transport) as gh:
                return await gh.get_release_by_tag(owner, repo, tag)
        except NotFoundError as exc:
            raise NotFoundError(
                f"Release '{tag}' not found in repository '{owner}/{repo}'. Please check "
                "the repository exists and the tag is correct.",
                exc.status_code,
            ) from None
        except AccessDeniedError as exc:
            raise AccessDeniedError(
                f"Authentication failed when accessing '{owner}/{repo}' using "
                f"{self._provider_label().value} authentication. Please check your "
                "token permissions.",
                exc.status_code,
            ) from None

    async def validate_access(self, owner: str, repo: str) -> None:
        """Delegate to :meth:`AuthenticationManager.validate_access`."""
        await self._manager.validate_access(owner, repo)

    def _provider_label(self) -> ProviderType:
        provider = self._manager.current_provider
        return provider.token_type if provider is not None else ProviderType.HYBRID


async def create_authenticated_client(
    manager: AuthenticationManager,
    base_url: str = PUBLIC_GITHUB_URL,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AuthenticatedGitHubClient:
    """Build an :class:`AuthenticatedGitHubClient` after a token warm-up.

    A READ token is requested up front so that configuration problems
    surface before the first GitHub call, and the chosen provider is
    announced.

    Args:
        manager: The authentication manager supplying tokens.
        base_url: Web URL of the GitHub instance.
        transport: Optional httpx transport, used by tests.

    Returns:
        A ready-to-use client.

    Raises:
        AuthenticationError: If no provider can produce a READ token.
    """
    await manager.get_token(TokenScope.READ)
    provider_type = await manager.get_provider_type()
    info(f"Using {provider_type.value} authentication for GitHub operations")
    return AuthenticatedGitHubClient(manager, base_url, transport=transport)
