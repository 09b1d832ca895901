"""Tests for DiscordClient with mocked HTTP responses."""

import httpx
import pytest
import respx

from conftest import API, connection_payload, guilds_payload, member_payload
from discord_stamp.client import DiscordClient
from discord_stamp.config import Settings
from discord_stamp.errors import (
    ResourceUnavailable, TokenInvalidOrExpired, UpstreamRateLimited,
    UpstreamTimeout, UpstreamUnavailable,
)


class FakeSleep:
    def __init__(self):
        self.calls = []

    async def __call__(self, delay):
        self.calls.append(delay)


def _client(settings=None, sleep=None):
    return DiscordClient("tok-abc", settings=settings or Settings(backoff_base=0.0),
                         sleep=sleep or FakeSleep())


# ── Happy paths ──

@pytest.mark.asyncio
async def test_fetch_profile_sends_bearer():
    with respx.mock:
        route = respx.get(f"{API}/users/@me").mock(
            return_value=httpx.Response(200, json={"id": "80351110224678912",
                                                   "username": "nelly",
                                                   "email": "nelly@example.com"})
        )
        async with _client() as client:
            profile = await client.fetch_profile()

    assert profile.id == "80351110224678912"
    assert profile.username == "nelly"
    assert route.calls.last.request.headers["Authorization"] == "Bearer tok-abc"


@pytest.mark.asyncio
async def test_fetch_guilds_and_connections():
    with respx.mock:
        respx.get(f"{API}/users/@me/guilds").mock(
            return_value=httpx.Response(200, json=guilds_payload(3))
        )
        respx.get(f"{API}/users/@me/connections").mock(
            return_value=httpx.Response(200, json=[
                connection_payload("github", "nelly", True),
                connection_payload("steam", "nelly_s", False),
            ])
        )
        async with _client() as client:
            guilds = await client.fetch_guilds()
            conns = await client.fetch_connections()

    assert [g.id for g in guilds] == ["1000", "1001", "1002"]
    assert guilds[0].name == "Guild 0"
    assert [(c.type, c.verified) for c in conns] == [("github", True), ("steam", False)]
    assert not hasattr(conns[0], "id")


@pytest.mark.asyncio
async def test_fetch_guild_member_strips_everyone_role():
    with respx.mock:
        respx.get(f"{API}/users/@me/guilds/1000/member").mock(
            return_value=httpx.Response(200, json=member_payload(["1000", "555", "556"]))
        )
        async with _client() as client:
            detail = await client.fetch_guild_member("1000")

    assert detail.roles == frozenset({"555", "556"})
    assert detail.has_roles


# ── Error classification ──

@pytest.mark.asyncio
async def test_401_is_token_invalid():
    with respx.mock:
        respx.get(f"{API}/users/@me").mock(
            return_value=httpx.Response(401, json={"message": "401: Unauthorized", "code": 0})
        )
        async with _client() as client:
            with pytest.raises(TokenInvalidOrExpired) as exc:
                await client.fetch_profile()
    assert exc.value.status_code == 401


@pytest.mark.asyncio
@pytest.mark.parametrize("status,reason", [(403, "forbidden"), (404, "not_found")])
async def test_403_404_resource_unavailable(status, reason):
    with respx.mock:
        respx.get(f"{API}/users/@me/guilds/9/member").mock(
            return_value=httpx.Response(status, json={"message": "nope"})
        )
        async with _client() as client:
            with pytest.raises(ResourceUnavailable) as exc:
                await client.fetch_guild_member("9")
    assert exc.value.reason == reason


@pytest.mark.asyncio
async def test_5xx_is_upstream_unavailable_without_body_in_message():
    with respx.mock:
        respx.get(f"{API}/users/@me/guilds").mock(
            return_value=httpx.Response(502, text="secret upstream stack trace")
        )
        async with _client() as client:
            with pytest.raises(UpstreamUnavailable) as exc:
                await client.fetch_guilds()
    assert "secret" not in str(exc.value)
    assert exc.value.public_message == "Failed to check credentials"


@pytest.mark.asyncio
async def test_transport_error():
    with respx.mock:
        respx.get(f"{API}/users/@me").mock(side_effect=httpx.ConnectError("refused"))
        async with _client() as client:
            with pytest.raises(UpstreamUnavailable):
                await client.fetch_profile()


@pytest.mark.asyncio
async def test_timeout_is_upstream_timeout():
    with respx.mock:
        respx.get(f"{API}/users/@me").mock(side_effect=httpx.ReadTimeout("slow"))
        async with _client() as client:
            with pytest.raises(UpstreamTimeout):
                await client.fetch_profile()


@pytest.mark.asyncio
async def test_malformed_profile():
    with respx.mock:
        respx.get(f"{API}/users/@me").mock(return_value=httpx.Response(200, json={"username": "x"}))
        async with _client() as client:
            with pytest.raises(UpstreamUnavailable):
                await client.fetch_profile()


@pytest.mark.asyncio
async def test_guild_list_not_a_list():
    with respx.mock:
        respx.get(f"{API}/users/@me/guilds").mock(return_value=httpx.Response(200, json={}))
        async with _client() as client:
            with pytest.raises(UpstreamUnavailable):
                await client.fetch_guilds()


# ── Rate limiting ──

@pytest.mark.asyncio
async def test_429_honors_retry_after_body():
    sleep = FakeSleep()
    with respx.mock:
        route = respx.get(f"{API}/users/@me").mock(side_effect=[
            httpx.Response(429, json={"message": "You are being rate limited.",
                                      "retry_after": 0.25, "global": False}),
            httpx.Response(200, json={"id": "42"}),
        ])
        async with _client(sleep=sleep) as client:
            profile = await client.fetch_profile()

    assert profile.id == "42"
    assert route.call_count == 2
    assert sleep.calls == [0.25]


@pytest.mark.asyncio
async def test_429_honors_retry_after_header():
    sleep = FakeSleep()
    with respx.mock:
        respx.get(f"{API}/users/@me").mock(side_effect=[
            httpx.Response(429, headers={"Retry-After": "1"}),
            httpx.Response(200, json={"id": "42"}),
        ])
        async with _client(sleep=sleep) as client:
            await client.fetch_profile()

    assert sleep.calls == [1.0]


@pytest.mark.asyncio
async def test_429_exponential_backoff_without_hint():
    sleep = FakeSleep()
    settings = Settings(backoff_base=0.1, backoff_cap=0.3, max_retries=3)
    with respx.mock:
        respx.get(f"{API}/users/@me").mock(side_effect=[
            httpx.Response(429),
            httpx.Response(429),
            httpx.Response(429),
            httpx.Response(200, json={"id": "42"}),
        ])
        async with _client(settings, sleep) as client:
            await client.fetch_profile()

    assert sleep.calls == pytest.approx([0.1, 0.2, 0.3])


@pytest.mark.asyncio
async def test_429_exhausts_retries():
    sleep = FakeSleep()
    settings = Settings(backoff_base=0.0, max_retries=2)
    with respx.mock:
        route = respx.get(f"{API}/users/@me").mock(return_value=httpx.Response(429))
        async with _client(settings, sleep) as client:
            with pytest.raises(UpstreamRateLimited):
                await client.fetch_profile()

    assert route.call_count == 3
    assert len(sleep.calls) == 2


@pytest.mark.asyncio
async def test_429_retry_delay_past_budget_fails_fast():
    sleep = FakeSleep()
    settings = Settings(timeout_seconds=1.0)
    with respx.mock:
        respx.get(f"{API}/users/@me").mock(
            return_value=httpx.Response(429, json={"retry_after": 30})
        )
        async with _client(settings, sleep) as client:
            with pytest.raises(UpstreamRateLimited) as exc:
                await client.fetch_profile()

    assert sleep.calls == []
    assert exc.value.retry_after == 30


@pytest.mark.asyncio
async def test_client_requires_context():
    client = _client()
    with pytest.raises(RuntimeError):
        await client.fetch_profile()
