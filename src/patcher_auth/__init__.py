"""patcher-auth -- credential brokering for the Patcher GitHub Action.

This package obtains, caches, validates, and disposes of GitHub access
tokens for a CI job. Tokens come from one of two sources:

* static personal access tokens supplied as action inputs, or
* short-lived tokens minted by exchanging the job's OIDC identity token
  with a token broker (GitHub App authentication).

The :class:`~patcher_auth.auth.AuthenticationManager` selects a healthy
source, falls back from brokered to static tokens when the broker is
unavailable, and never lets a token reach a log line unmasked.

Typical usage::

    from patcher_auth.auth import AuthenticationManager
    from patcher_auth.config import parse_auth_config
    from patcher_auth.models import TokenScope

    manager = AuthenticationManager(parse_auth_config())
    try:
        token = await manager.get_token(TokenScope.WRITE)
    finally:
        manager.dispose()

Modules:
    app: Typer application and ``patcher-auth`` entry point.
    models: Pydantic models and enumerations shared across the package.
    config: Action input parsing and configuration validation.
    exceptions: Exception hierarchy with exit-code mapping.
    output: Actions-aware diagnostic output with secret masking.
    redaction: Last-resort scrubbing of secret-looking text.
"""

__version__ = "0.1.0"
