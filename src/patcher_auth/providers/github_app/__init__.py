"""Brokered GitHub App token provider.

Exchanges an Actions OIDC token with the token broker for short-lived
GitHub tokens, cached per token path with retry on transient failures.

See Also:
    :class:`~patcher_auth.providers.github_app.provider.GitHubAppProvider`
"""

from patcher_auth.providers.github_app.provider import GitHubAppProvider

__all__ = ["GitHubAppProvider"]
