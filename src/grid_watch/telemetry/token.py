"""Bearer token lifecycle for the Deye Cloud API."""

from __future__ import annotations

import asyncio
import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

import httpx
from pydantic import ValidationError

from grid_watch.config.schema import DeyeCloudConfig
from grid_watch.errors import AuthenticationError
from grid_watch.logging.structured import mask_secret
from grid_watch.telemetry.models import TokenResponse

logger = logging.getLogger(__name__)

TOKEN_PATH = "/v1.0/account/token"


@dataclass(frozen=True)
class Credential:
    """A bearer token and the instant it stops being used."""

    token: str
    expires_at: datetime

    def is_valid(self, now: datetime) -> bool:
        return bool(self.token) and now < self.expires_at


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


class TokenManager:
    """Owns the credential and renews it on demand.

    The lock is held across the validity check and the token exchange, so
    concurrent callers that find the token expired trigger one exchange
    between them.
    """

    def __init__(
        self,
        config: DeyeCloudConfig,
        client: httpx.AsyncClient,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config
        self._client = client
        self._now = now or (lambda: datetime.now(timezone.utc))
        self._lock = asyncio.Lock()
        self._credential: Credential | None = None
        self.exchange_count = 0

    @property
    def credential(self) -> Credential | None:
        return self._credential

    async def get_valid_token(self) -> str:
        """Return a usable token, authenticating first if needed.

        Raises:
            AuthenticationError: if the exchange fails.
        """
        async with self._lock:
            if self._credential is None or not self._credential.is_valid(self._now()):
                await self._authenticate_locked()
            assert self._credential is not None
            return self._credential.token

    async def refresh(self, rejected_token: str) -> str:
        """Re-authenticate after the API rejected ``rejected_token``.

        If another caller already replaced the rejected token, the newer
        token is returned without a second exchange.
        """
        async with self._lock:
            current = self._credential
            if (
                current is None
                or current.token == rejected_token
                or not current.is_valid(self._now())
            ):
                await self._authenticate_locked()
            assert self._credential is not None
            return self._credential.token

    async def authenticate(self) -> None:
        """Force a token exchange (used at startup to fail fast)."""
        async with self._lock:
            await self._authenticate_locked()

    async def _authenticate_locked(self) -> None:
        cfg = self._config
        self.exchange_count += 1
        body = {
            "appSecret": cfg.app_secret,
            "email": cfg.email,
            "password": sha256_hex(cfg.password),
        }
        logger.info("Authenticating with Deye Cloud as %s", cfg.email)

        try:
            resp = await self._client.post(TOKEN_PATH, params={"appId": cfg.app_id}, json=body)
        except httpx.HTTPError as exc:
            raise AuthenticationError(f"token request failed: {exc}") from exc

        if resp.status_code >= 400:
            raise AuthenticationError(f"token request returned HTTP {resp.status_code}")

        try:
            parsed = TokenResponse.model_validate(resp.json())
        except (ValueError, ValidationError) as exc:
            raise AuthenticationError(f"unreadable token response: {exc}") from exc

        if not parsed.success or not parsed.access_token:
            raise AuthenticationError(f"deye auth failed: code={parsed.code} msg={parsed.msg}")

        token = parsed.access_token
        if not token.startswith("Bearer "):
            token = "Bearer " + token

        expires_at = self._now() + timedelta(seconds=cfg.token_validity_seconds)
        self._credential = Credential(token=token, expires_at=expires_at)
        logger.info(
            "Deye auth OK, token %s, provider expiresIn=%s, renewing at %s",
            mask_secret(token),
            parsed.expires_in,
            expires_at.strftime("%Y-%m-%d %H:%M"),
        )
