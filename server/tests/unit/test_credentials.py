from __future__ import annotations

import asyncio

import httpx
import pytest
from httpx import Response

from agent_relay.core.config import AppSettings
from agent_relay.services.credentials import ClientCredentialsProvider, CredentialCache
from agent_relay.services.errors import AuthError, UpstreamTimeoutError

TOKEN_URL = "https://login.example.com/services/oauth2/token"


def make_provider(cache: CredentialCache | None = None) -> ClientCredentialsProvider:
    return ClientCredentialsProvider(
        token_url=TOKEN_URL,
        client_id="client-id",
        client_secret="client-secret",
        timeout=1.0,
        cache=cache,
    )


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_fetch_performs_client_credentials_grant(respx_mock) -> None:
    route = respx_mock.post(TOKEN_URL).mock(return_value=Response(200, json={"access_token": "tok-1"}))

    token = await make_provider().fetch()

    assert token == "tok-1"
    params = route.calls.last.request.url.params
    assert params["grant_type"] == "client_credentials"
    assert params["client_id"] == "client-id"
    assert params["client_secret"] == "client-secret"


@pytest.mark.asyncio
async def test_fetch_without_cache_exchanges_every_time(respx_mock) -> None:
    route = respx_mock.post(TOKEN_URL).mock(return_value=Response(200, json={"access_token": "tok-1"}))
    provider = make_provider()

    await provider.fetch()
    await provider.fetch()

    assert route.call_count == 2


@pytest.mark.asyncio
async def test_fetch_raises_auth_error_on_rejection(respx_mock) -> None:
    respx_mock.post(TOKEN_URL).mock(return_value=Response(400, json={"error": "invalid_client"}))

    with pytest.raises(AuthError) as excinfo:
        await make_provider().fetch()

    assert excinfo.value.details["body"] == {"error": "invalid_client"}


@pytest.mark.asyncio
async def test_fetch_requires_access_token_field(respx_mock) -> None:
    respx_mock.post(TOKEN_URL).mock(return_value=Response(200, json={"token_type": "Bearer"}))

    with pytest.raises(AuthError):
        await make_provider().fetch()


@pytest.mark.asyncio
async def test_fetch_rejects_non_json_body(respx_mock) -> None:
    respx_mock.post(TOKEN_URL).mock(return_value=Response(200, text="<html>maintenance</html>"))

    with pytest.raises(AuthError):
        await make_provider().fetch()


@pytest.mark.asyncio
async def test_fetch_unreachable(respx_mock) -> None:
    respx_mock.post(TOKEN_URL).mock(side_effect=httpx.ConnectError("unreachable"))

    with pytest.raises(AuthError):
        await make_provider().fetch()


@pytest.mark.asyncio
async def test_fetch_timeout(respx_mock) -> None:
    respx_mock.post(TOKEN_URL).mock(side_effect=httpx.ReadTimeout("slow"))

    with pytest.raises(UpstreamTimeoutError):
        await make_provider().fetch()


@pytest.mark.asyncio
async def test_cache_reuses_token_until_expiry(respx_mock) -> None:
    route = respx_mock.post(TOKEN_URL).mock(
        side_effect=[
            Response(200, json={"access_token": "tok-1", "expires_in": 120}),
            Response(200, json={"access_token": "tok-2", "expires_in": 120}),
        ]
    )
    clock = FakeClock()
    provider = make_provider(CredentialCache(refresh_margin=20.0, clock=clock))

    assert await provider.fetch() == "tok-1"
    clock.now += 99
    assert await provider.fetch() == "tok-1"
    clock.now += 1
    assert await provider.fetch() == "tok-2"
    assert route.call_count == 2


@pytest.mark.asyncio
async def test_cache_falls_back_to_default_ttl(respx_mock) -> None:
    respx_mock.post(TOKEN_URL).mock(return_value=Response(200, json={"access_token": "tok-1"}))
    clock = FakeClock()
    cache = CredentialCache(default_ttl=60.0, refresh_margin=0.0, clock=clock)

    await make_provider(cache).fetch()

    clock.now += 59
    assert cache.peek() == "tok-1"
    clock.now += 1
    assert cache.peek() is None


@pytest.mark.asyncio
async def test_cache_serializes_concurrent_refresh(respx_mock) -> None:
    async def slow_token(request: httpx.Request) -> Response:
        await asyncio.sleep(0.01)
        return Response(200, json={"access_token": "tok-1"})

    route = respx_mock.post(TOKEN_URL).mock(side_effect=slow_token)
    provider = make_provider(CredentialCache())

    tokens = await asyncio.gather(*(provider.fetch() for _ in range(5)))

    assert tokens == ["tok-1"] * 5
    assert route.call_count == 1


@pytest.mark.asyncio
async def test_cache_stays_empty_after_failed_exchange(respx_mock) -> None:
    respx_mock.post(TOKEN_URL).mock(
        side_effect=[Response(401, json={"error": "invalid_client"}), Response(200, json={"access_token": "tok-2"})]
    )
    cache = CredentialCache()
    provider = make_provider(cache)

    with pytest.raises(AuthError):
        await provider.fetch()
    assert cache.peek() is None

    assert await provider.fetch() == "tok-2"


def test_from_settings_requires_credentials() -> None:
    with pytest.raises(AuthError):
        ClientCredentialsProvider.from_settings(AppSettings(_env_file=None, sf_token_url=TOKEN_URL))


def test_from_settings_attaches_cache_only_when_enabled() -> None:
    cache = CredentialCache()
    base = {"_env_file": None, "sf_token_url": TOKEN_URL, "sf_client_id": "id", "sf_client_secret": "secret"}

    disabled = ClientCredentialsProvider.from_settings(AppSettings(**base), cache=cache)
    enabled = ClientCredentialsProvider.from_settings(AppSettings(**base, credential_cache_enabled=True), cache=cache)

    assert disabled.cache is None
    assert enabled.cache is cache


@pytest.mark.asyncio
async def test_invalidate_forces_next_fetch_to_reauthenticate(respx_mock) -> None:
    route = respx_mock.post(TOKEN_URL).mock(
        side_effect=[
            Response(200, json={"access_token": "tok-1", "expires_in": 3600}),
            Response(200, json={"access_token": "tok-2", "expires_in": 3600}),
        ]
    )
    provider = make_provider(CredentialCache())

    assert await provider.fetch() == "tok-1"
    provider.invalidate()

    assert await provider.fetch() == "tok-2"
    assert route.call_count == 2


def test_invalidate_without_cache_is_a_no_op() -> None:
    provider = make_provider()

    provider.invalidate()

    assert provider.cache is None
