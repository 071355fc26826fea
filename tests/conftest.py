"""Shared test fixtures for patcher-auth.

Provides a fake Actions runtime (so no test depends on
``ACTIONS_ID_TOKEN_REQUEST_*`` variables), configuration factories, a
backoff-sleep recorder, and automatic reset of the global output manager.
These fixtures are automatically discovered by pytest and available to
all test modules without explicit imports.
"""

from __future__ import annotations

from typing import Optional

import pytest

from patcher_auth.actions import ActionsRuntime
from patcher_auth.exceptions import IdentityTokenError
from patcher_auth.models import (
    AuthManagerConfig,
    GitHubAppConfig,
    PATConfig,
    RetryConfig,
)
from patcher_auth.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _quiet_output():
    """Install a plain, quiet OutputManager for every test and reset it after.

    Typer's CliRunner swaps sys.stdout/sys.stderr during a test; resetting
    forces a fresh manager on next use.
    """
    set_output(OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True))
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Fake runtime
# ---------------------------------------------------------------------------


class FakeRuntime(ActionsRuntime):
    """ActionsRuntime stand-in with a scripted identity token.

    Attributes:
        id_token: Value returned by :meth:`get_id_token`. An empty string
            simulates a runner that issues nothing.
        error: If set, raised by :meth:`get_id_token` instead.
        id_token_calls: Audiences requested, in order.
        secrets: Values passed to :meth:`set_secret`, in order.
    """

    def __init__(self, id_token: str = "eyJhbGciOi.eyJzdWIiOi.c2lnbmF0dXJl") -> None:
        super().__init__(env={})
        self.id_token = id_token
        self.error: Optional[Exception] = None
        self.id_token_calls: list[str] = []
        self.secrets: list[str] = []

    async def get_id_token(self, audience: str) -> str:
        self.id_token_calls.append(audience)
        if self.error is not None:
            raise self.error
        return self.id_token

    def set_secret(self, value: Optional[str]) -> None:
        if value:
            self.secrets.append(value)


@pytest.fixture
def fake_runtime() -> FakeRuntime:
    """A runtime that issues a fixed identity token."""
    return FakeRuntime()


@pytest.fixture
def no_identity_runtime() -> FakeRuntime:
    """A runtime whose job lacks ``id-token: write``."""
    runtime = FakeRuntime()
    runtime.error = IdentityTokenError("Unable to get ACTIONS_ID_TOKEN_REQUEST_URL")
    return runtime


# ---------------------------------------------------------------------------
# Backoff recorder
# ---------------------------------------------------------------------------


class SleepRecorder:
    """Async sleep replacement that records delays instead of waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


# ---------------------------------------------------------------------------
# Configuration factories
# ---------------------------------------------------------------------------


BROKER_URL = "https://broker.example.com"


@pytest.fixture
def app_config() -> GitHubAppConfig:
    """An enabled GitHub App configuration pointing at a fake broker."""
    return GitHubAppConfig(
        enabled=True,
        api_base_url=BROKER_URL,
        audience="https://broker.example.com",
        token_paths={"read": "patcher-read/acme", "write": "patcher-write/acme"},
    )


@pytest.fixture
def pat_config() -> PATConfig:
    return PATConfig(github_token="ghp_general", github_org="gruntwork-io")


@pytest.fixture
def fast_retry() -> RetryConfig:
    return RetryConfig(max_attempts=3, base_delay_ms=100, max_delay_ms=250, backoff_multiplier=2)


@pytest.fixture
def manager_config(app_config, pat_config, fast_retry) -> AuthManagerConfig:
    """Both providers configured; GitHub App enabled."""
    return AuthManagerConfig(
        github_app_config=app_config,
        pat_config=pat_config,
        retry_config=fast_retry,
    )
