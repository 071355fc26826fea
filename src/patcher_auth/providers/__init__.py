"""Credential providers.

The set is closed: :class:`~patcher_auth.providers.pat.PATProvider` for
static personal access tokens and
:class:`~patcher_auth.providers.github_app.GitHubAppProvider` for tokens
minted by the broker. Both implement
:class:`~patcher_auth.auth.base.CredentialProvider`.
"""

from patcher_auth.providers.github_app import GitHubAppProvider
from patcher_auth.providers.pat import PATProvider

__all__ = ["GitHubAppProvider", "PATProvider"]
