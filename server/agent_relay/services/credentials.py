from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

import httpx
from pydantic import ValidationError

from agent_relay.core.config import AppSettings, get_settings
from agent_relay.models.agent import AccessTokenResponse
from agent_relay.services.errors import AuthError, UpstreamTimeoutError, response_details

logger = logging.getLogger(__name__)


@dataclass
class _CachedToken:
    value: str
    expires_at: float


class CredentialCache:
    """
    Process-wide holder for the most recent bearer token.

    Refreshes are serialized so that concurrent callers hitting an empty or
    expired cache trigger a single token exchange.
    """

    def __init__(
        self,
        *,
        default_ttl: float = 900.0,
        refresh_margin: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._lock = asyncio.Lock()
        self._token: _CachedToken | None = None
        self._default_ttl = default_ttl
        self._refresh_margin = refresh_margin
        self._clock = clock

    def peek(self) -> str | None:
        token = self._token
        if token is None or token.expires_at <= self._clock():
            return None
        return token.value

    def clear(self) -> None:
        self._token = None

    async def get_or_fetch(self, exchange: Callable[[], Awaitable[AccessTokenResponse]]) -> str:
        cached = self.peek()
        if cached is not None:
            return cached

        async with self._lock:
            cached = self.peek()
            if cached is not None:
                return cached
            issued = await exchange()
            ttl = issued.expires_in if issued.expires_in else self._default_ttl
            lifetime = max(ttl - self._refresh_margin, 0.0)
            self._token = _CachedToken(value=issued.access_token, expires_at=self._clock() + lifetime)
            return issued.access_token


@dataclass
class ClientCredentialsProvider:
    token_url: str
    client_id: str
    client_secret: str
    timeout: float = 10.0
    cache: CredentialCache | None = None

    @classmethod
    def from_settings(
        cls,
        settings: AppSettings | None = None,
        *,
        cache: CredentialCache | None = None,
    ) -> "ClientCredentialsProvider":
        settings = settings or get_settings()
        if not settings.sf_token_url or not settings.sf_client_id or not settings.sf_client_secret:
            raise AuthError("SF_TOKEN_URL, SF_CLIENT_ID and SF_CLIENT_SECRET must be configured.")
        return cls(
            token_url=settings.sf_token_url,
            client_id=settings.sf_client_id,
            client_secret=settings.sf_client_secret,
            timeout=float(settings.http_timeout_sec),
            cache=cache if settings.credential_cache_enabled else None,
        )

    async def fetch(self) -> str:
        if self.cache is not None:
            return await self.cache.get_or_fetch(self._exchange)
        issued = await self._exchange()
        return issued.access_token

    def invalidate(self) -> None:
        """Discard the cached token so the next fetch re-authenticates."""
        if self.cache is not None:
            self.cache.clear()

    async def _exchange(self) -> AccessTokenResponse:
        params = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.token_url, params=params)
        except httpx.TimeoutException as exc:
            raise UpstreamTimeoutError("Token endpoint timed out.") from exc
        except httpx.RequestError as exc:
            raise AuthError("Token endpoint is unreachable.", details={"reason": str(exc)}) from exc

        if response.is_error:
            raise AuthError("Client credentials were rejected.", details=response_details(response))

        try:
            issued = AccessTokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise AuthError("Token response did not contain an access token.", details=response_details(response)) from exc

        logger.debug("credentials.issued", extra={"expires_in": issued.expires_in})
        return issued
