"""Static personal access token provider.

Serves ``github_token`` and its scope-specific ``read_token`` /
``update_token`` overrides without any network exchange.

See Also:
    :class:`~patcher_auth.providers.pat.provider.PATProvider`
    :mod:`patcher_auth.auth.base` for the provider interface contract.
"""

from patcher_auth.providers.pat.provider import PATProvider

__all__ = ["PATProvider"]
