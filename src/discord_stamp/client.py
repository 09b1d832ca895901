"""Discord resource fetcher — authenticated GETs against the user API."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Optional

import httpx

from .config import Settings
from .errors import (
    ResourceUnavailable,
    TokenInvalidOrExpired,
    UpstreamRateLimited,
    UpstreamTimeout,
    UpstreamUnavailable,
)
from .models import Connection, GuildMemberDetail, GuildMembership, PayloadError, Profile

logger = logging.getLogger(__name__)


def _retry_after(resp: httpx.Response) -> Optional[float]:
    """Provider-supplied delay in seconds, from the JSON body or header."""
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("retry_after") is not None:
        try:
            return max(float(body["retry_after"]), 0.0)
        except (TypeError, ValueError):
            pass
    header = resp.headers.get("Retry-After")
    if header:
        try:
            return max(float(header), 0.0)
        except ValueError:
            pass
    return None


class DiscordClient:
    """Read-only client for the four endpoints the credential check uses.

    Usage:
        async with DiscordClient(token, settings=settings) as client:
            profile = await client.fetch_profile()

    Pass ``http`` to reuse an existing ``httpx.AsyncClient``; it is then left
    open on exit.
    """

    def __init__(
        self,
        token: str,
        *,
        settings: Optional[Settings] = None,
        http: Optional[httpx.AsyncClient] = None,
        sleep=asyncio.sleep,
    ):
        self.settings = settings or Settings()
        self._headers = {"Authorization": f"Bearer {token}"}
        self._http = http
        self._owns_http = http is None
        self._sleep = sleep

    async def __aenter__(self) -> "DiscordClient":
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.settings.timeout_seconds)
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None

    # ── Endpoints ──

    async def fetch_profile(self) -> Profile:
        data = await self._get("/users/@me")
        return self._parse(Profile.from_api, data, "/users/@me")

    async def fetch_guilds(self) -> list[GuildMembership]:
        data = await self._get("/users/@me/guilds")
        if not isinstance(data, list):
            raise UpstreamUnavailable("guild list payload is not a list")
        return [self._parse(GuildMembership.from_api, g, "/users/@me/guilds") for g in data]

    async def fetch_guild_member(self, guild_id: str) -> GuildMemberDetail:
        path = f"/users/@me/guilds/{guild_id}/member"
        data = await self._get(path)
        return self._parse(lambda d: GuildMemberDetail.from_api(guild_id, d), data, path)

    async def fetch_connections(self) -> list[Connection]:
        data = await self._get("/users/@me/connections")
        if not isinstance(data, list):
            raise UpstreamUnavailable("connection list payload is not a list")
        return [self._parse(Connection.from_api, c, "/users/@me/connections") for c in data]

    # ── Transport ──

    @staticmethod
    def _parse(fn, data: Any, path: str):
        try:
            return fn(data)
        except PayloadError as e:
            logger.warning("Malformed payload from %s: %s", path, e)
            raise UpstreamUnavailable(f"malformed payload from {path}") from e

    def _backoff(self, attempt: int, resp: httpx.Response) -> float:
        hinted = _retry_after(resp)
        if hinted is not None:
            return hinted
        return min(self.settings.backoff_base * (2 ** attempt), self.settings.backoff_cap)

    async def _get(self, path: str) -> Any:
        if self._http is None:
            raise RuntimeError("DiscordClient used outside 'async with'")

        url = f"{self.settings.api_base}{path}"
        deadline = time.monotonic() + self.settings.timeout_seconds
        attempt = 0

        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise UpstreamTimeout(f"request budget exhausted for {path}")
            try:
                resp = await self._http.get(url, headers=self._headers, timeout=remaining)
            except httpx.TimeoutException as e:
                logger.warning("Timeout on %s", path)
                raise UpstreamTimeout(f"timeout on {path}") from e
            except httpx.HTTPError as e:
                logger.warning("Transport error on %s: %s", path, type(e).__name__)
                raise UpstreamUnavailable(f"transport error on {path}") from e

            status = resp.status_code
            if 200 <= status < 300:
                try:
                    return resp.json()
                except ValueError as e:
                    raise UpstreamUnavailable(f"non-JSON response from {path}") from e

            if status == 401:
                raise TokenInvalidOrExpired(upstream_status=status)

            if status in (403, 404):
                raise ResourceUnavailable(f"{path} returned {status}", upstream_status=status)

            if status == 429:
                delay = self._backoff(attempt, resp)
                if attempt >= self.settings.max_retries:
                    raise UpstreamRateLimited(
                        f"rate limited on {path} after {attempt} retries",
                        retry_after=delay, upstream_status=status,
                    )
                if time.monotonic() + delay >= deadline:
                    raise UpstreamRateLimited(
                        f"retry delay {delay:.2f}s exceeds request budget on {path}",
                        retry_after=delay, upstream_status=status,
                    )
                attempt += 1
                logger.info("Rate limited on %s; retry %d in %.2fs", path, attempt, delay)
                await self._sleep(delay)
                continue

            logger.warning("Upstream %s on %s: %s", status, path, resp.text[:500])
            raise UpstreamUnavailable(f"{path} returned {status}", upstream_status=status)
