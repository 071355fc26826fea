"""Numeric process exit codes for the ``patcher-auth`` command line.

Each constant maps to a specific failure category and is referenced by the
corresponding :class:`~patcher_auth.exceptions.PatcherAuthError` subclass.
Workflow steps that shell out to ``patcher-auth`` can branch on the exit
code without parsing stderr.

Example::

    $ patcher-auth token --scope write
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- no provider could mint a token
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_CONFIG_ERROR = 2
"""Action inputs or the configuration file were missing or invalid."""

EXIT_AUTH_FAILURE = 3
"""A token could not be obtained, or the hosting API rejected it."""

EXIT_NOT_FOUND = 4
"""The requested repository or release was not found (HTTP 404)."""

EXIT_SERVER_ERROR = 5
"""The hosting API returned a 5xx error or rate-limited the request."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""
