"""Abstract base class for credential providers.

A credential provider is a source of GitHub access tokens. The set of
providers is closed: :class:`~patcher_auth.providers.pat.PATProvider`
serves static personal access tokens and
:class:`~patcher_auth.providers.github_app.GitHubAppProvider` mints
short-lived tokens through the token broker. Both are constructed and
owned by :class:`~patcher_auth.auth.manager.AuthenticationManager`.

Every provider must:

1. Report a stable :attr:`~CredentialProvider.token_type` label.
2. Return a valid token for a scope from :meth:`~CredentialProvider.get_token`.
3. Check repository reachability in :meth:`~CredentialProvider.validate_access`.
4. Answer :meth:`~CredentialProvider.is_healthy` without raising.
5. Drop all token material in :meth:`~CredentialProvider.dispose`.

See Also:
    :mod:`patcher_auth.auth.manager` for provider selection and fallback.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from patcher_auth.models import ProviderType, TokenScope


class CredentialProvider(ABC):
    """Abstract base class for the static and brokered token sources."""

    @property
    @abstractmethod
    def token_type(self) -> ProviderType:
        """Return the provider label used for telemetry and log messages.

        The label is never used to branch security decisions outside the
        manager.
        """
        ...

    @abstractmethod
    async def get_token(self, scope: TokenScope) -> str:
        """Return a valid, non-expired token for *scope*.

        The token is registered as a secret before it is returned.

        Args:
            scope: The intended use of the token.

        Returns:
            The token string.

        Raises:
            AuthenticationError: With ``TOKEN_UNAVAILABLE`` when there is no
                credential material for *scope*, or another code when
                minting fails.
        """
        ...

    @abstractmethod
    async def validate_access(self, owner: str, repo: str) -> None:
        """Check that a READ token can see ``owner/repo``.

        Args:
            owner: Repository owner (user or organization).
            repo: Repository name.

        Raises:
            AuthenticationError: If the repository cannot be reached with
                this provider's credentials.
        """
        ...

    @abstractmethod
    async def is_healthy(self) -> bool:
        """Return ``True`` if the provider can currently produce tokens.

        Implementations must not raise; any internal failure is reported as
        ``False``.
        """
        ...

    @abstractmethod
    def dispose(self) -> None:
        """Clear all cached token material from memory. Idempotent."""
        ...
