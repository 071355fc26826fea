"""Credential brokering for patcher-auth.

This package coordinates the two credential providers -- static personal
access tokens and brokered GitHub App tokens -- behind a single manager
with automatic failover.

The main entry points are:

- :class:`CredentialProvider` -- abstract base class both providers implement.
- :class:`AuthenticationManager` -- selects a healthy provider and
  delegates token requests and access checks to it.
- :func:`create_manager` -- factory that builds a manager from an
  :class:`~patcher_auth.models.AuthManagerConfig`.
- :func:`retry_async` -- bounded exponential backoff used by the brokered
  provider.

Typical usage::

    from patcher_auth.auth import create_manager
    from patcher_auth.config import parse_auth_config
    from patcher_auth.models import TokenScope

    manager = create_manager(parse_auth_config())
    token = await manager.get_token(TokenScope.READ)
"""

from patcher_auth.auth.base import CredentialProvider
from patcher_auth.auth.manager import AuthenticationManager, create_manager
from patcher_auth.auth.retry import retry_async

__all__ = [
    "AuthenticationManager",
    "CredentialProvider",
    "create_manager",
    "retry_async",
]
