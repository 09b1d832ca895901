"""
discord_stamp.pipeline — The credential evaluation pipeline.

    token ─┬─ fetch_profile ─────┐
           ├─ fetch_guilds ──────┼─ member fan-out ─ evaluators ─ report
           └─ fetch_connections ─┘

Profile, guilds and connections are required. Any failure there aborts the
run and no partial report is produced. The member fan-out tolerates
per-guild failures. If the deadline hits during the fan-out, the report is
built from the partial tally and marked ``partial``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Optional

import httpx

from .aggregator import aggregate_member_roles
from .client import DiscordClient
from .config import Settings
from .criteria import (
    evaluate_account_age,
    evaluate_role_assignments,
    evaluate_server_count,
    evaluate_verified_connections,
)
from .errors import InvalidTokenInput, UpstreamTimeout
from .report import CredentialReport, assemble_report

logger = logging.getLogger(__name__)


def _normalize_token(access_token) -> str:
    if not isinstance(access_token, str):
        raise InvalidTokenInput("access token must be a string")
    token = access_token.strip()
    if token.lower().startswith("bearer "):
        token = token[7:].strip()
    if not token or any(ch.isspace() for ch in token):
        raise InvalidTokenInput("access token is empty or malformed")
    return token


async def _fetch_required(client: DiscordClient, budget: float):
    """Run the three required fetches together; the first failure cancels the rest."""
    tasks = [
        asyncio.ensure_future(client.fetch_profile()),
        asyncio.ensure_future(client.fetch_guilds()),
        asyncio.ensure_future(client.fetch_connections()),
    ]
    try:
        return await asyncio.wait_for(asyncio.gather(*tasks), timeout=budget)
    except asyncio.TimeoutError as e:
        logger.warning("Required fetches exceeded %.1fs deadline", budget)
        raise UpstreamTimeout("required fetches did not complete in time") from e
    finally:
        for t in tasks:
            if not t.done():
                t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


async def check_credentials(
    access_token: str,
    settings: Optional[Settings] = None,
    *,
    now: Optional[datetime] = None,
    http: Optional[httpx.AsyncClient] = None,
) -> CredentialReport:
    """Evaluate all four criteria for the account behind ``access_token``.

    Args:
        access_token: Bearer token from the OAuth2 code exchange.
        settings: Endpoints, limits and thresholds. Defaults to ``Settings()``.
        now: Reference time for the age criterion and the report timestamp.
        http: Optional shared ``httpx.AsyncClient``.

    Raises:
        InvalidTokenInput: token missing or malformed.
        TokenInvalidOrExpired: upstream rejected the token.
        UpstreamUnavailable: a required fetch failed or the deadline passed.
    """
    token = _normalize_token(access_token)
    settings = settings or Settings()
    thresholds = settings.thresholds
    now = now or datetime.now(timezone.utc)

    started = time.monotonic()
    budget = settings.timeout_seconds

    async with DiscordClient(token, settings=settings, http=http) as client:
        profile, guilds, connections = await _fetch_required(client, budget)

        remaining = budget - (time.monotonic() - started)
        tally = await aggregate_member_roles(
            client, guilds, concurrency=settings.max_concurrency, timeout=remaining,
        )

    report = assemble_report(
        profile.id,
        evaluate_account_age(profile.id, now, thresholds),
        evaluate_server_count(guilds, thresholds),
        evaluate_role_assignments(tally, thresholds),
        evaluate_verified_connections(connections, thresholds),
        evaluated_at=now,
        partial=not tally.complete,
    )
    logger.info(
        "Credential check complete",
        extra={
            "overall_passed": report.overall_passed,
            "partial": report.partial,
            "member_lookups": tally.summary(),
            "duration_ms": round((time.monotonic() - started) * 1000, 1),
        },
    )
    return report
