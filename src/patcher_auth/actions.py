"""GitHub Actions runtime services consumed by the credential providers.

Two capabilities are needed from the CI runner:

* **Workload-identity tokens** -- :meth:`ActionsRuntime.get_id_token`
  requests an OIDC token for a given audience from the runner's token
  endpoint (``ACTIONS_ID_TOKEN_REQUEST_URL``), authenticating with
  ``ACTIONS_ID_TOKEN_REQUEST_TOKEN``. Both variables are only present when
  the workflow grants ``id-token: write``.
* **Secret masking** -- :meth:`ActionsRuntime.set_secret` registers a value
  with the runner so it is redacted from job logs.

Providers take a runtime instance in their constructor so that tests can
substitute a fake without touching the environment.
"""

from __future__ import annotations

import os
from typing import Mapping, Optional

import httpx
from pydantic import ValidationError

from patcher_auth import __version__
from patcher_auth.exceptions import IdentityTokenError
from patcher_auth.models import IdentityTokenResponse
from patcher_auth.output import add_mask, debug
from patcher_auth.redaction import sanitize

ID_TOKEN_URL_ENV = "ACTIONS_ID_TOKEN_REQUEST_URL"
ID_TOKEN_TOKEN_ENV = "ACTIONS_ID_TOKEN_REQUEST_TOKEN"

USER_AGENT = f"patcher-auth/{__version__}"


class ActionsRuntime:
    """Access to the GitHub Actions runner from inside a job.

    Args:
        env: Environment mapping to read runner variables from. Defaults to
            :data:`os.environ`.
        transport: Optional httpx transport, used by tests to stub the
            runner's token endpoint.
        timeout: Per-request timeout in seconds.

    Example::

        runtime = ActionsRuntime()
        assertion = await runtime.get_id_token("https://api.example.com")
    """

    def __init__(
        self,
        env: Optional[Mapping[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
    ) -> None:
        self._env = env if env is not None else os.environ
        self._transport = transport
        self._timeout = timeout

    async def get_id_token(self, audience: str) -> str:
        """Request a workload-identity token for *audience*.

        The returned token is masked before it is handed back.

        Args:
            audience: The ``aud`` claim the broker expects.

        Returns:
            The raw JWT string.

        Raises:
            IdentityTokenError: If the job lacks ``id-token: write``
                permission, the runner rejects the request, or the
                response carries no token.
        """
        request_url = self._env.get(ID_TOKEN_URL_ENV, "")
        request_token = self._env.get(ID_TOKEN_TOKEN_ENV, "")
        if not request_url or not request_token:
            raise IdentityTokenError(
                f"Unable to get {ID_TOKEN_URL_ENV} or {ID_TOKEN_TOKEN_ENV} "
                "environment variables. Grant the job 'id-token: write' permission."
            )

        try:
            async with httpx.AsyncClient(
                transport=self._transport, timeout=self._timeout
            ) as client:
                response = await client.get(
                    request_url,
                    params={"audience": audience},
                    headers={
                        "Authorization": f"Bearer {request_token}",
                        "Accept": "application/json",
                        "User-Agent": USER_AGENT,
                    },
                )
        except httpx.HTTPError as exc:
            raise IdentityTokenError(
                f"Failed to request identity token: {sanitize(str(exc))}"
            ) from None

        if response.status_code >= 400:
            raise IdentityTokenError(
                f"Failed to get identity token: HTTP {response.status_code}"
            )

        try:
            id_token = IdentityTokenResponse.model_validate(response.json()).value
        except (ValueError, ValidationError):
            raise IdentityTokenError("Identity token response was not valid JSON") from None

        if not id_token:
            raise IdentityTokenError("Identity token response did not contain a value")

        self.set_secret(id_token)
        debug(f"Obtained identity token for audience {audience}")
        return id_token

    def set_secret(self, value: Optional[str]) -> None:
        """Mark *value* as a secret so it is redacted from all output."""
        add_mask(value)
