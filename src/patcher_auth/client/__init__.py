"""HTTP clients for the GitHub REST API.

Classes:
    :class:`GitHubClient` -- async client over :class:`httpx.AsyncClient`
    bound to a single token, with typed error mapping.
    :class:`AuthenticatedGitHubClient` -- obtains a fresh READ token from
    the :class:`~patcher_auth.auth.manager.AuthenticationManager` for each
    operation.

Example::

    from patcher_auth.client import GitHubClient

    async with GitHubClient(token) as gh:
        release = await gh.get_release_by_tag("gruntwork-io", "patcher-cli", "v0.9.4")
"""

from patcher_auth.client.authenticated import (
    AuthenticatedGitHubClient,
    create_authenticated_client,
)
from patcher_auth.client.github import GitHubClient

__all__ = [
    "AuthenticatedGitHubClient",
    "GitHubClient",
    "create_authenticated_client",
]
