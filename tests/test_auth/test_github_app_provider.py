"""Tests for the brokered GitHub App token provider."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

import httpx
import pytest

from patcher_auth.exceptions import AuthenticationError
from patcher_auth.models import (
    AuthErrorCode,
    CacheConfig,
    GitHubAppConfig,
    ProviderType,
    RetryConfig,
    TokenScope,
)
from patcher_auth.providers.github_app import GitHubAppProvider


# ---------------------------------------------------------------------------
# Fake broker
# ---------------------------------------------------------------------------


class FakeBroker:
    """Scriptable token broker and GitHub API behind an httpx.MockTransport.

    Attributes:
        login_statuses: Statuses returned by successive login calls before
            falling back to 200.
        pat_statuses: Same, for the token-path call.
        expires_in: ``expires_in`` reported for minted tokens (``None``
            omits the field).
        health_status: Status of ``GET /health``.
        repo_status: Status of the GitHub repository lookup.
    """

    def __init__(self) -> None:
        self.login_statuses: list[int] = []
        self.pat_statuses: list[int] = []
        self.expires_in: Optional[int] = 3600
        self.health_status = 200
        self.repo_status = 200
        self.requests: list[httpx.Request] = []
        self.minted = 0

    def calls(self, path_prefix: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.startswith(path_prefix)]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.url.host == "api.github.com":
            return httpx.Response(self.repo_status, json={"message": "repo"})
        if path == "/health":
            return httpx.Response(self.health_status, json={"status": "ok"})
        if path == "/tokens/auth/login":
            status = self.login_statuses.pop(0) if self.login_statuses else 200
            if status != 200:
                return httpx.Response(status)
            return httpx.Response(200, json={"token": "session-abc"})
        if path.startswith("/tokens/pat/"):
            status = self.pat_statuses.pop(0) if self.pat_statuses else 200
            if status != 200:
                return httpx.Response(status)
            self.minted += 1
            body = {"token": f"ghs_minted{self.minted}"}
            if self.expires_in is not None:
                body["expires_in"] = self.expires_in
            return httpx.Response(200, json=body)
        return httpx.Response(404)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def broker() -> FakeBroker:
    return FakeBroker()


def _make_provider(
    config: GitHubAppConfig,
    broker: FakeBroker,
    runtime,
    sleeps,
    retry: Optional[RetryConfig] = None,
) -> GitHubAppProvider:
    return GitHubAppProvider(
        config,
        retry or RetryConfig(max_attempts=3, base_delay_ms=100, max_delay_ms=250),
        runtime=runtime,
        transport=broker.transport,
        sleep=sleeps,
    )


# ---------------------------------------------------------------------------
# Two-hop exchange
# ---------------------------------------------------------------------------


class TestExchange:
    @pytest.mark.asyncio
    async def test_mints_via_login_and_token_path(self, app_config, broker, fake_runtime, sleeps) -> None:
        provider = _make_provider(app_config, broker, fake_runtime, sleeps)
        token = await provider.get_token(TokenScope.READ)

        assert token == "ghs_minted1"
        login, pat = broker.requests
        assert login.method == "POST"
        assert str(login.url) == "https://broker.example.com/tokens/auth/login"
        assert login.headers["Authorization"] == f"Bearer {fake_runtime.id_token}"
        assert pat.method == "GET"
        assert str(pat.url) == "https://broker.example.com/tokens/pat/patcher-read/acme"
        assert pat.headers["Authorization"] == "Bearer session-abc"
        assert fake_runtime.id_token_calls == ["https://broker.example.com"]

    @pytest.mark.asyncio
    async def test_write_scope_uses_write_path(self, app_config, broker, fake_runtime, sleeps) -> None:
        provider = _make_provider(app_config, broker, fake_runtime, sleeps)
        await provider.get_token(TokenScope.WRITE)
        assert broker.calls("/tokens/pat/")[0].url.path == "/tokens/pat/patcher-write/acme"

    @pytest.mark.asyncio
    async def test_session_and_minted_tokens_masked(self, app_config, broker, fake_runtime, sleeps) -> None:
        provider = _make_provider(app_config, broker, fake_runtime, sleeps)
        await provider.get_token(TokenScope.READ)
        assert "session-abc" in fake_runtime.secrets
        assert "ghs_minted1" in fake_runtime.secrets

    @pytest.mark.asyncio
    async def test_missing_expires_in_defaults_to_an_hour(self, app_config, broker, fake_runtime, sleeps) -> None:
        broker.expires_in = None
        provider = _make_provider(app_config, broker, fake_runtime, sleeps)
        await provider.get_token(TokenScope.READ)
        cached = provider._token_cache["patcher-read/acme"]
        remaining = cached.expires_at - datetime.now(timezone.utc)
        assert timedelta(minutes=59) < remaining <= timedelta(hours=1)

    @pytest.mark.asyncio
    async def test_cache_ttl_caps_lifetime(self, broker, fake_runtime, sleeps) -> None:
        config = GitHubAppConfig(
            enabled=True,
            api_base_url="https://broker.example.com",
            cache_config=CacheConfig(ttl_seconds=900),
        )
        broker.expires_in = 7200
        provider = _make_provider(config, broker, fake_runtime, sleeps)
        await provider.get_token(TokenScope.READ)
        cached = provider._token_cache["patcher-read/gruntwork-io"]
        now = datetime.now(timezone.utc)
        assert cached.cached_until - now <= timedelta(seconds=900)
        assert cached.expires_at - now > timedelta(hours=1)

    @pytest.mark.asyncio
    async def test_short_cache_ttl_still_caches(self, broker, fake_runtime, sleeps) -> None:
        config = GitHubAppConfig(
            enabled=True,
            api_base_url="https://broker.example.com",
            cache_config=CacheConfig(ttl_seconds=120),
        )
        provider = _make_provider(config, broker, fake_runtime, sleeps)
        first = await provider.get_token(TokenScope.READ)
        second = await provider.get_token(TokenScope.READ)
        assert first == second == "ghs_minted1"
        assert len(broker.calls("/tokens/pat/")) == 1

    @pytest.mark.asyncio
    async def test_entry_past_cache_ttl_is_reminted(self, broker, fake_runtime, sleeps) -> None:
        config = GitHubAppConfig(
            enabled=True,
            api_base_url="https://broker.example.com",
            cache_config=CacheConfig(ttl_seconds=120),
        )
        provider = _make_provider(config, broker, fake_runtime, sleeps)
        await provider.get_token(TokenScope.READ)
        provider._token_cache["patcher-read/gruntwork-io"].cached_until = datetime.now(timezone.utc)
        assert await provider.get_token(TokenScope.READ) == "ghs_minted2"


# ---------------------------------------------------------------------------
# Caching
# ---------------------------------------------------------------------------


class TestCaching:
    @pytest.mark.asyncio
    async def test_cache_hit_within_buffer_window(self, app_config, broker, fake_runtime, sleeps) -> None:
        provider = _make_provider(app_config, broker, fake_runtime, sleeps)
        first = await provider.get_token(TokenScope.READ)
        second = await provider.get_token(TokenScope.READ)
        assert first == second
        assert len(broker.calls("/tokens/auth/login")) == 1

    @pytest.mark.asyncio
    async def test_read_family_shares_one_path(self, app_config, broker, fake_runtime, sleeps) -> None:
        provider = _make_provider(app_config, broker, fake_runtime, sleeps)
        tokens = {await provider.get_token(s) for s in (TokenScope.READ, TokenScope.DOWNLOAD, TokenScope.ADMIN)}
        assert tokens == {"ghs_minted1"}
        assert broker.minted == 1

    @pytest.mark.asyncio
    async def test_paths_cached_independently(self, app_config, broker, fake_runtime, sleeps) -> None:
        provider = _make_provider(app_config, broker, fake_runtime, sleeps)
        read = await provider.get_token(TokenScope.READ)
        write = await provider.get_token(TokenScope.WRITE)
        assert read != write
        assert await provider.get_token(TokenScope.WRITE) == write
        assert broker.minted == 2

    @pytest.mark.asyncio
    async def test_refresh_inside_expiry_buffer(self, app_config, broker, fake_runtime, sleeps) -> None:
        provider = _make_provider(app_config, broker, fake_runtime, sleeps)
        await provider.get_token(TokenScope.READ)

        # Backdate into the five-minute safety buffer.
        cached = provider._token_cache["patcher-read/acme"]
        cached.expires_at = datetime.now(timezone.utc) + timedelta(minutes=4)

        fresh = await provider.get_token(TokenScope.READ)
        assert fresh == "ghs_minted2"
        assert len(broker.calls("/tokens/auth/login")) == 2
        assert len(broker.calls("/tokens/pat/")) == 2

    @pytest.mark.asyncio
    async def test_max_size_evicts_oldest_path(self, broker, fake_runtime, sleeps) -> None:
        config = GitHubAppConfig(
            enabled=True,
            api_base_url="https://broker.example.com",
            cache_config=CacheConfig(max_size=1),
        )
        provider = _make_provider(config, broker, fake_runtime, sleeps)
        await provider.get_token(TokenScope.READ)
        await provider.get_token(TokenScope.WRITE)
        assert list(provider._token_cache) == ["patcher-write/gruntwork-io"]

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_mint(self, app_config, broker, fake_runtime, sleeps) -> None:
        provider = _make_provider(app_config, broker, fake_runtime, sleeps)
        tokens = await asyncio.gather(*(provider.get_token(TokenScope.READ) for _ in range(5)))
        assert set(tokens) == {"ghs_minted1"}
        assert broker.minted == 1


# ---------------------------------------------------------------------------
# Failures and retry
# ---------------------------------------------------------------------------


class TestFailures:
    @pytest.mark.asyncio
    async def test_empty_identity_token_is_unavailable(self, app_config, broker, fake_runtime, sleeps) -> None:
        fake_runtime.id_token = ""
        provider = _make_provider(app_config, broker, fake_runtime, sleeps)
        with pytest.raises(AuthenticationError) as exc_info:
            await provider.get_token(TokenScope.READ)
        assert exc_info.value.code == AuthErrorCode.TOKEN_UNAVAILABLE
        assert exc_info.value.provider_type == ProviderType.GITHUB_APP
        assert broker.requests == []
        assert sleeps.delays == []

    @pytest.mark.asyncio
    async def test_identity_error_is_unavailable(self, app_config, broker, no_identity_runtime, sleeps) -> None:
        provider = _make_provider(app_config, broker, no_identity_runtime, sleeps)
        with pytest.raises(AuthenticationError) as exc_info:
            await provider.get_token(TokenScope.READ)
        assert exc_info.value.code == AuthErrorCode.TOKEN_UNAVAILABLE
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_transient_errors_retried_then_succeed(self, app_config, broker, fake_runtime, sleeps) -> None:
        broker.login_statuses = [503, 502]
        provider = _make_provider(app_config, broker, fake_runtime, sleeps)
        assert await provider.get_token(TokenScope.READ) == "ghs_minted1"
        assert len(broker.calls("/tokens/auth/login")) == 3
        assert sleeps.delays == [0.1, 0.2]

    @pytest.mark.asyncio
    async def test_rate_limit_retried(self, app_config, broker, fake_runtime, sleeps) -> None:
        broker.pat_statuses = [429]
        provider = _make_provider(app_config, broker, fake_runtime, sleeps)
        assert await provider.get_token(TokenScope.READ) == "ghs_minted1"
        assert sleeps.delays == [0.1]

    @pytest.mark.asyncio
    async def test_exhaustion_propagates_last_error(self, app_config, broker, fake_runtime, sleeps) -> None:
        broker.login_statuses = [500, 500, 503]
        provider = _make_provider(app_config, broker, fake_runtime, sleeps)
        with pytest.raises(AuthenticationError) as exc_info:
            await provider.get_token(TokenScope.READ)
        assert "503" in str(exc_info.value)
        assert exc_info.value.retryable is True
        assert len(broker.calls("/tokens/auth/login")) == 3
        assert sleeps.delays == [0.1, 0.2]
        assert provider._token_cache == {}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status, code",
        [
            (401, AuthErrorCode.INVALID_CREDENTIALS),
            (403, AuthErrorCode.INSUFFICIENT_PERMISSIONS),
        ],
    )
    async def test_auth_failures_not_retried(self, app_config, broker, fake_runtime, sleeps, status, code) -> None:
        broker.login_statuses = [status]
        provider = _make_provider(app_config, broker, fake_runtime, sleeps)
        with pytest.raises(AuthenticationError) as exc_info:
            await provider.get_token(TokenScope.READ)
        assert exc_info.value.code == code
        assert exc_info.value.retryable is False
        assert len(broker.calls("/tokens/auth/login")) == 1
        assert sleeps.delays == []

    @pytest.mark.asyncio
    async def test_transport_failure_is_retryable_network_error(self, app_config, fake_runtime, sleeps) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused")

        provider = GitHubAppProvider(
            app_config,
            RetryConfig(max_attempts=2, base_delay_ms=100),
            runtime=fake_runtime,
            transport=httpx.MockTransport(handler),
            sleep=sleeps,
        )
        with pytest.raises(AuthenticationError) as exc_info:
            await provider.get_token(TokenScope.READ)
        assert exc_info.value.code == AuthErrorCode.NETWORK_ERROR
        assert sleeps.delays == [0.1]

    @pytest.mark.asyncio
    async def test_error_messages_never_contain_tokens(self, app_config, broker, fake_runtime, sleeps) -> None:
        broker.pat_statuses = [403]
        provider = _make_provider(app_config, broker, fake_runtime, sleeps)
        with pytest.raises(AuthenticationError) as exc_info:
            await provider.get_token(TokenScope.READ)
        message = str(exc_info.value)
        assert "session-abc" not in message
        assert fake_runtime.id_token not in message
        assert "session-abc" not in repr(exc_info.value)


# ---------------------------------------------------------------------------
# Health, dispose, validate_access
# ---------------------------------------------------------------------------


class TestHealth:
    @pytest.mark.asyncio
    async def test_healthy(self, app_config, broker, fake_runtime, sleeps) -> None:
        provider = _make_provider(app_config, broker, fake_runtime, sleeps)
        assert await provider.is_healthy() is True
        assert str(broker.requests[0].url) == "https://broker.example.com/health"

    @pytest.mark.asyncio
    async def test_empty_identity_token_unhealthy(self, app_config, broker, fake_runtime, sleeps) -> None:
        fake_runtime.id_token = ""
        provider = _make_provider(app_config, broker, fake_runtime, sleeps)
        assert await provider.is_healthy() is False
        assert broker.requests == []

    @pytest.mark.asyncio
    async def test_identity_error_unhealthy(self, app_config, broker, no_identity_runtime, sleeps) -> None:
        provider = _make_provider(app_config, broker, no_identity_runtime, sleeps)
        assert await provider.is_healthy() is False

    @pytest.mark.asyncio
    async def test_broker_down_unhealthy(self, app_config, broker, fake_runtime, sleeps) -> None:
        broker.health_status = 503
        provider = _make_provider(app_config, broker, fake_runtime, sleeps)
        assert await provider.is_healthy() is False

    @pytest.mark.asyncio
    async def test_transport_error_unhealthy(self, app_config, fake_runtime, sleeps) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out")

        provider = GitHubAppProvider(
            app_config, runtime=fake_runtime, transport=httpx.MockTransport(handler), sleep=sleeps
        )
        assert await provider.is_healthy() is False


class TestDispose:
    @pytest.mark.asyncio
    async def test_dispose_zeroes_and_clears(self, app_config, broker, fake_runtime, sleeps) -> None:
        provider = _make_provider(app_config, broker, fake_runtime, sleeps)
        await provider.get_token(TokenScope.READ)
        cached = provider._token_cache["patcher-read/acme"]

        provider.dispose()

        assert cached.token == ""
        assert provider._token_cache == {}

    @pytest.mark.asyncio
    async def test_dispose_forces_fresh_mint(self, app_config, broker, fake_runtime, sleeps) -> None:
        provider = _make_provider(app_config, broker, fake_runtime, sleeps)
        await provider.get_token(TokenScope.READ)
        provider.dispose()
        provider.dispose()
        assert await provider.get_token(TokenScope.READ) == "ghs_minted2"
        assert len(broker.calls("/tokens/auth/login")) == 2


class TestValidateAccess:
    @pytest.mark.asyncio
    async def test_success(self, app_config, broker, fake_runtime, sleeps) -> None:
        provider = _make_provider(app_config, broker, fake_runtime, sleeps)
        await provider.validate_access("acme", "infra")
        repo_call = broker.requests[-1]
        assert str(repo_call.url) == "https://api.github.com/repos/acme/infra"
        assert repo_call.headers["Authorization"] == "Bearer ghs_minted1"

    @pytest.mark.asyncio
    async def test_not_found(self, app_config, broker, fake_runtime, sleeps) -> None:
        broker.repo_status = 404
        provider = _make_provider(app_config, broker, fake_runtime, sleeps)
        with pytest.raises(AuthenticationError, match="not found or the GitHub App has no access"):
            await provider.validate_access("acme", "infra")

    @pytest.mark.asyncio
    async def test_rejected(self, app_config, broker, fake_runtime, sleeps) -> None:
        broker.repo_status = 401
        provider = _make_provider(app_config, broker, fake_runtime, sleeps)
        with pytest.raises(AuthenticationError) as exc_info:
            await provider.validate_access("acme", "infra")
        assert exc_info.value.code == AuthErrorCode.INVALID_CREDENTIALS
        assert "authentication rejected" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_other_status(self, app_config, broker, fake_runtime, sleeps) -> None:
        broker.repo_status = 500
        provider = _make_provider(app_config, broker, fake_runtime, sleeps)
        with pytest.raises(AuthenticationError) as exc_info:
            await provider.validate_access("acme", "infra")
        assert "HTTP 500" in str(exc_info.value)
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_mint_failure_propagates_unchanged(self, app_config, broker, fake_runtime, sleeps) -> None:
        fake_runtime.id_token = ""
        provider = _make_provider(app_config, broker, fake_runtime, sleeps)
        with pytest.raises(AuthenticationError) as exc_info:
            await provider.validate_access("acme", "infra")
        assert exc_info.value.code == AuthErrorCode.TOKEN_UNAVAILABLE
