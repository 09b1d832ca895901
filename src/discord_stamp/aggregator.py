"""
discord_stamp.aggregator — Per-guild member fan-out with tolerated failures.

Each guild's member lookup resolves to one of two outcomes:

    MemberFetched(guild, detail)   — the member object came back
    MemberSkipped(guild, reason)   — forbidden, not_found, rate_limited, timeout
                                     or unavailable

A fixed pool of workers pulls guilds off a queue and pushes outcomes onto a
second queue. One reducer folds the outcomes into a ``RoleTally``; it is the
only writer, so there are no locks and no shared counters.

An invalid token is not tolerated: the exception propagates and the whole run
is cancelled.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Optional, Protocol, Sequence, Union

from .errors import ResourceUnavailable, UpstreamRateLimited, UpstreamTimeout, UpstreamUnavailable
from .models import GuildMemberDetail, GuildMembership

logger = logging.getLogger(__name__)

DISPLAY_LIMIT = 5

SKIP_FORBIDDEN = "forbidden"
SKIP_NOT_FOUND = "not_found"
SKIP_RATE_LIMITED = "rate_limited"
SKIP_TIMEOUT = "timeout"
SKIP_UNAVAILABLE = "unavailable"


class MemberFetcher(Protocol):
    async def fetch_guild_member(self, guild_id: str) -> GuildMemberDetail: ...


@dataclass(frozen=True)
class MemberFetched:
    index: int
    guild: GuildMembership
    detail: GuildMemberDetail


@dataclass(frozen=True)
class MemberSkipped:
    index: int
    guild: GuildMembership
    reason: str


MemberOutcome = Union[MemberFetched, MemberSkipped]


@dataclass
class RoleTally:
    """Running fold of member outcomes.

    ``details`` is capped at ``DISPLAY_LIMIT`` entries, taken in guild-list
    order; ``servers_with_roles`` always covers every fetched guild.
    """
    total: int = 0
    checked: int = 0
    servers_with_roles: int = 0
    skipped: Counter = field(default_factory=Counter)
    complete: bool = False
    _with_roles: list = field(default_factory=list, repr=False)

    def fold(self, outcome: MemberOutcome) -> None:
        self.checked += 1
        if isinstance(outcome, MemberSkipped):
            self.skipped[outcome.reason] += 1
            return
        if outcome.detail.has_roles:
            self.servers_with_roles += 1
            self._with_roles.append(
                (outcome.index, outcome.guild.name, len(outcome.detail.roles))
            )

    @property
    def details(self) -> list[dict]:
        ordered = sorted(self._with_roles)[:DISPLAY_LIMIT]
        return [{"guildName": name, "roleCount": count} for _, name, count in ordered]

    def summary(self) -> dict:
        return {
            "total": self.total,
            "checked": self.checked,
            "servers_with_roles": self.servers_with_roles,
            "skipped": dict(self.skipped),
            "complete": self.complete,
        }


async def fetch_member_outcome(
    fetcher: MemberFetcher, index: int, guild: GuildMembership
) -> MemberOutcome:
    """Resolve one guild to a tagged outcome, absorbing tolerated failures."""
    try:
        detail = await fetcher.fetch_guild_member(guild.id)
    except ResourceUnavailable as e:
        reason = SKIP_NOT_FOUND if e.reason == "not_found" else SKIP_FORBIDDEN
    except UpstreamRateLimited:
        reason = SKIP_RATE_LIMITED
    except UpstreamTimeout:
        reason = SKIP_TIMEOUT
    except UpstreamUnavailable:
        reason = SKIP_UNAVAILABLE
    else:
        return MemberFetched(index=index, guild=guild, detail=detail)
    logger.debug("Skipping member lookup for guild %s: %s", guild.id, reason)
    return MemberSkipped(index=index, guild=guild, reason=reason)


class GuildRoleAggregator:
    """Count guilds where the account holds at least one role.

    Usage:
        agg = GuildRoleAggregator(client, guilds, concurrency=5)
        tally = await agg.run()

    If ``run`` is cancelled, ``agg.tally`` still holds everything folded so
    far with ``complete=False``.
    """

    def __init__(
        self,
        fetcher: MemberFetcher,
        guilds: Sequence[GuildMembership],
        *,
        concurrency: int = 5,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.fetcher = fetcher
        self.guilds = list(guilds)
        self.concurrency = concurrency
        self.tally = RoleTally(total=len(self.guilds))

    async def _worker(self, jobs: asyncio.Queue, results: asyncio.Queue) -> None:
        while True:
            try:
                index, guild = jobs.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                outcome = await fetch_member_outcome(self.fetcher, index, guild)
            except Exception as e:
                await results.put(e)
                return
            await results.put(outcome)

    async def run(self) -> RoleTally:
        if not self.guilds:
            self.tally.complete = True
            return self.tally

        jobs: asyncio.Queue = asyncio.Queue()
        for item in enumerate(self.guilds):
            jobs.put_nowait(item)
        results: asyncio.Queue = asyncio.Queue()

        workers = [
            asyncio.ensure_future(self._worker(jobs, results))
            for _ in range(min(self.concurrency, len(self.guilds)))
        ]
        try:
            for _ in range(len(self.guilds)):
                item = await results.get()
                if isinstance(item, Exception):
                    raise item
                self.tally.fold(item)
            self.tally.complete = True
        finally:
            for w in workers:
                w.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        if self.tally.skipped:
            logger.info("Member lookups skipped: %s", dict(self.tally.skipped))
        return self.tally


async def aggregate_member_roles(
    fetcher: MemberFetcher,
    guilds: Sequence[GuildMembership],
    *,
    concurrency: int = 5,
    timeout: Optional[float] = None,
) -> RoleTally:
    """Run the fan-out, returning a partial tally if ``timeout`` elapses."""
    agg = GuildRoleAggregator(fetcher, guilds, concurrency=concurrency)
    if timeout is None or not agg.guilds:
        return await agg.run()
    try:
        return await asyncio.wait_for(agg.run(), timeout=max(timeout, 0.0))
    except asyncio.TimeoutError:
        logger.warning(
            "Member fan-out timed out after %d/%d guilds", agg.tally.checked, agg.tally.total
        )
        return agg.tally
