"""Tests for the Deye Cloud token lifecycle."""

from __future__ import annotations

import asyncio
import hashlib
import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from grid_watch.errors import AuthenticationError
from grid_watch.telemetry.token import TOKEN_PATH, Credential, TokenManager, sha256_hex


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class TokenEndpoint:
    """Serves /v1.0/account/token, issuing tok-1, tok-2, ..."""

    def __init__(self, response: dict | None = None, status: int = 200) -> None:
        self.requests: list[httpx.Request] = []
        self._response = response
        self._status = status

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self._response is not None:
            return httpx.Response(self._status, json=self._response)
        n = len(self.requests)
        return httpx.Response(
            self._status,
            json={"success": True, "code": "1000000", "accessToken": f"tok-{n}", "expiresIn": "5183999"},
        )


def _manager(deye_config, endpoint, clock=None) -> TokenManager:
    client = httpx.AsyncClient(base_url=deye_config.base_url, transport=httpx.MockTransport(endpoint))
    return TokenManager(deye_config, client, now=clock)


class TestCredential:
    def test_valid_before_expiry(self) -> None:
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)
        cred = Credential("Bearer x", now + timedelta(seconds=1))
        assert cred.is_valid(now)
        assert not cred.is_valid(now + timedelta(seconds=1))

    def test_empty_token_is_never_valid(self) -> None:
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)
        assert not Credential("", now + timedelta(days=1)).is_valid(now)

    def test_sha256_hex(self) -> None:
        assert sha256_hex("hunter2") == hashlib.sha256(b"hunter2").hexdigest()


class TestAuthenticate:
    async def test_exchange_request_shape(self, deye_config) -> None:
        endpoint = TokenEndpoint()
        mgr = _manager(deye_config, endpoint)
        await mgr.authenticate()

        req = endpoint.requests[0]
        assert req.method == "POST"
        assert req.url.path == TOKEN_PATH
        assert req.url.params["appId"] == "app-1"
        body = json.loads(req.content)
        assert body == {
            "appSecret": "app-secret",
            "email": "owner@example.com",
            "password": hashlib.sha256(b"hunter2").hexdigest(),
        }

    async def test_token_stored_with_bearer_prefix(self, deye_config) -> None:
        mgr = _manager(deye_config, TokenEndpoint())
        assert await mgr.get_valid_token() == "Bearer tok-1"

    async def test_prefix_not_doubled(self, deye_config) -> None:
        endpoint = TokenEndpoint({"success": True, "accessToken": "Bearer already"})
        mgr = _manager(deye_config, endpoint)
        assert await mgr.get_valid_token() == "Bearer already"

    async def test_expiry_uses_configured_validity(self, deye_config) -> None:
        clock = FakeClock()
        mgr = _manager(deye_config, TokenEndpoint(), clock)
        await mgr.authenticate()
        assert mgr.credential is not None
        assert mgr.credential.expires_at == clock.now + timedelta(days=59)

    async def test_success_false_raises(self, deye_config) -> None:
        endpoint = TokenEndpoint({"success": False, "code": 2101006, "msg": "wrong password"})
        mgr = _manager(deye_config, endpoint)
        with pytest.raises(AuthenticationError, match="wrong password"):
            await mgr.get_valid_token()

    async def test_missing_token_raises(self, deye_config) -> None:
        mgr = _manager(deye_config, TokenEndpoint({"success": True}))
        with pytest.raises(AuthenticationError):
            await mgr.authenticate()

    async def test_http_error_status_raises(self, deye_config) -> None:
        mgr = _manager(deye_config, TokenEndpoint({"msg": "boom"}, status=502))
        with pytest.raises(AuthenticationError, match="502"):
            await mgr.authenticate()

    async def test_transport_failure_raises(self, deye_config) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        mgr = _manager(deye_config, handler)
        with pytest.raises(AuthenticationError):
            await mgr.authenticate()

    async def test_failure_leaves_no_credential(self, deye_config) -> None:
        mgr = _manager(deye_config, TokenEndpoint({"success": False}))
        with pytest.raises(AuthenticationError):
            await mgr.authenticate()
        assert mgr.credential is None


class TestTokenReuse:
    async def test_token_reused_until_expiry(self, deye_config) -> None:
        clock = FakeClock()
        endpoint = TokenEndpoint()
        mgr = _manager(deye_config, endpoint, clock)

        assert await mgr.get_valid_token() == "Bearer tok-1"
        clock.advance(days=58)
        assert await mgr.get_valid_token() == "Bearer tok-1"
        assert len(endpoint.requests) == 1

        clock.advance(days=1, seconds=1)
        assert await mgr.get_valid_token() == "Bearer tok-2"
        assert len(endpoint.requests) == 2

    async def test_concurrent_callers_share_one_exchange(self, deye_config) -> None:
        endpoint = TokenEndpoint()
        mgr = _manager(deye_config, endpoint)

        tokens = await asyncio.gather(*(mgr.get_valid_token() for _ in range(5)))

        assert set(tokens) == {"Bearer tok-1"}
        assert len(endpoint.requests) == 1
        assert mgr.exchange_count == 1


class TestRefresh:
    async def test_refresh_replaces_rejected_token(self, deye_config) -> None:
        endpoint = TokenEndpoint()
        mgr = _manager(deye_config, endpoint)
        first = await mgr.get_valid_token()

        assert await mgr.refresh(first) == "Bearer tok-2"
        assert len(endpoint.requests) == 2

    async def test_refresh_skips_exchange_when_already_replaced(self, deye_config) -> None:
        endpoint = TokenEndpoint()
        mgr = _manager(deye_config, endpoint)
        stale = await mgr.get_valid_token()
        await mgr.refresh(stale)  # first caller renews

        # Second caller holding the same stale token gets the new one for free
        assert await mgr.refresh(stale) == "Bearer tok-2"
        assert len(endpoint.requests) == 2
