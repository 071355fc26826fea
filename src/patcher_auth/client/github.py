"""Asynchronous GitHub REST client used for access checks and release lookups.

This module provides :class:`GitHubClient`, a thin wrapper around
:class:`httpx.AsyncClient` that sends a bearer token, speaks the GitHub
REST media type, and maps error statuses onto the typed exceptions in
:mod:`patcher_auth.exceptions`. Error messages only ever contain the
status code, the resource being requested, and GitHub's own (sanitized)
``message`` field.

See Also:
    :class:`~patcher_auth.client.authenticated.AuthenticatedGitHubClient`
    for the variant that obtains its token from the authentication
    manager.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from patcher_auth import __version__
from patcher_auth.exceptions import (
    AccessDeniedError,
    ConnectionError_,
    NotFoundError,
    RateLimitError,
    ServerError,
)
from patcher_auth.models import Release
from patcher_auth.output import debug
from patcher_auth.redaction import sanitize
from patcher_auth.urls import github_api_url

GITHUB_MEDIA_TYPE = "application/vnd.github+json"
GITHUB_API_VERSION = "2022-11-28"


class GitHubClient:
    """Asynchronous client for the GitHub REST API.

    Must be used as an async context manager.

    Args:
        token: Access token sent as ``Authorization: Bearer <token>``.
        base_url: Web URL of the GitHub instance. The API root is derived
            from it (``https://api.github.com`` or ``<base_url>/api/v3``).
        transport: Optional httpx transport, used by tests.
        timeout: Per-request timeout in seconds.

    Example::

        async with GitHubClient(token, "https://github.com") as gh:
            repo = await gh.get_repository("gruntwork-io", "patcher-cli")
    """

    def __init__(
        self,
        token: str,
        base_url: str = "https://github.com",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
    ) -> None:
        self._token = token
        self._api_url = github_api_url(base_url)
        self._transport = transport
        self._timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def api_url(self) -> str:
        """The resolved REST API root."""
        return self._api_url

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> GitHubClient:
        self._client = httpx.AsyncClient(
            base_url=self._api_url,
            timeout=self._timeout,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self._token}",
                "Accept": GITHUB_MEDIA_TYPE,
                "X-GitHub-Api-Version": GITHUB_API_VERSION,
                "User-Agent": f"patcher-auth/{__version__}",
            },
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    async def get_repository(self, owner: str, repo: str) -> dict[str, Any]:
        """Fetch repository metadata.

        Args:
            owner: Repository owner.
            repo: Repository name.

        Returns:
            The decoded repository object.

        Raises:
            AccessDeniedError: On 401 / 403.
            NotFoundError: On 404 (missing, or hidden from this token).
            RateLimitError: On 429.
            ServerError: On any other error status.
            ConnectionError_: On network / timeout errors.
        """
        response = await self._get(f"/repos/{owner}/{repo}", f"{owner}/{repo}")
        return response.json()

    async def get_release_by_tag(self, owner: str, repo: str, tag: str) -> Release:
        """Fetch a release and its assets by tag name.

        Args:
            owner: Repository owner.
            repo: Repository name.
            tag: Release tag, e.g. ``v0.9.4``.

        Returns:
            The parsed :class:`~patcher_auth.models.Release`.

        Raises:
            AccessDeniedError: On 401 / 403.
            NotFoundError: On 404.
            RateLimitError: On 429.
            ServerError: On any other error status.
            ConnectionError_: On network / timeout errors.
        """
        response = await self._get(
            f"/repos/{owner}/{repo}/releases/tags/{tag}",
            f"release {tag} of {owner}/{repo}",
        )
        return Release.model_validate(response.json())

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    async def _get(self, path: str, resource: str) -> httpx.Response:
        assert self._client is not None, "Client not initialised -- use as async context manager"

        try:
            response = await self._client.get(path)
        except httpx.HTTPError as exc:
            raise ConnectionError_(
                f"Request for {resource} failed: {sanitize(str(exc))}"
            ) from None

        debug(f"GET {path} -> HTTP {response.status_code}")
        self._map_response_error(response, resource)
        return response

    def _map_response_error(self, response: httpx.Response, resource: str) -> None:
        """Raise a typed exception for error HTTP status codes."""
        status = response.status_code
        if status < 400:
            return

        try:
            detail = response.json()
            msg = detail.get("message", "") if isinstance(detail, dict) else ""
        except ValueError:
            msg = ""

        full_msg = f"HTTP {status} for {resource}"
        if msg:
            full_msg = f"{full_msg}: {sanitize(str(msg))}"

        if status in (401, 403):
            raise AccessDeniedError(full_msg, status)
        if status == 404:
            raise NotFoundError(full_msg, status)
        if status == 429:
            raise RateLimitError(full_msg, status)
        raise ServerError(full_msg, status)
