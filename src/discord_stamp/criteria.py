"""
discord_stamp.criteria — Pure evaluators for the four stamp criteria.

    1. ACCOUNT AGE          > 365 days, decoded from the snowflake id
    2. SERVER MEMBERSHIP    >= 10 guilds
    3. ROLE ASSIGNMENTS     >= 3 guilds where the account holds a role
    4. VERIFIED CONNECTIONS >= 2 verified external accounts

No I/O happens here. Every function takes already-fetched data and an
optional reference time, so results are reproducible.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Iterable, Sequence, Union

from .config import Thresholds
from .models import Connection, CriterionResult, GuildMembership

if TYPE_CHECKING:
    from .aggregator import RoleTally

DISCORD_EPOCH_MS = 1420070400000
SNOWFLAKE_TIMESTAMP_SHIFT = 22
MS_PER_DAY = 86_400_000

ACCOUNT_AGE = "account_age"
SERVER_COUNT = "server_count"
ROLE_ASSIGNMENTS = "role_assignments"
VERIFIED_CONNECTIONS = "verified_connections"

CRITERIA = (ACCOUNT_AGE, SERVER_COUNT, ROLE_ASSIGNMENTS, VERIFIED_CONNECTIONS)

DEFAULT_THRESHOLDS = Thresholds()

Now = Union[int, datetime, None]


def _now_ms(now: Now) -> int:
    if now is None:
        now = datetime.now(timezone.utc)
    if isinstance(now, datetime):
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        # Integer arithmetic; float timestamps lose ms precision far from epoch
        delta = now - datetime(1970, 1, 1, tzinfo=timezone.utc)
        return (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000
    return int(now)


def snowflake_to_timestamp_ms(snowflake: Union[str, int]) -> int:
    """Creation time in Unix milliseconds encoded in a Discord snowflake.

    Parsed as a Python int, so ids wider than 53 bits keep full precision.
    """
    if isinstance(snowflake, bool):
        raise ValueError("snowflake must be a numeric string or int")
    if isinstance(snowflake, str):
        if not snowflake.isdigit():
            raise ValueError(f"snowflake is not numeric: {snowflake!r}")
        value = int(snowflake)
    elif isinstance(snowflake, int):
        value = snowflake
    else:
        raise ValueError("snowflake must be a numeric string or int")
    if value < 0:
        raise ValueError("snowflake must be non-negative")
    return (value >> SNOWFLAKE_TIMESTAMP_SHIFT) + DISCORD_EPOCH_MS


def evaluate_account_age(
    account_id: Union[str, int],
    now: Now = None,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> CriterionResult:
    created_ms = snowflake_to_timestamp_ms(account_id)
    age_days = (_now_ms(now) - created_ms) // MS_PER_DAY
    created_at = datetime.fromtimestamp(created_ms // 1000, tz=timezone.utc).replace(
        microsecond=(created_ms % 1000) * 1000
    )
    return CriterionResult(
        name=ACCOUNT_AGE,
        passed=age_days > thresholds.min_account_age_days,
        metric=age_days,
        message=f"Account age is {age_days} days "
                f"(requires > {thresholds.min_account_age_days} days)",
        detail={
            "days": age_days,
            "createdAt": created_at.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        },
    )


def evaluate_server_count(
    guilds: Sequence[GuildMembership],
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> CriterionResult:
    count = len(guilds)
    return CriterionResult(
        name=SERVER_COUNT,
        passed=count >= thresholds.min_servers,
        metric=count,
        message=f"Member of {count} servers (requires {thresholds.min_servers} or more)",
        detail={"count": count},
    )


def evaluate_role_assignments(
    tally: "RoleTally",
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> CriterionResult:
    count = tally.servers_with_roles
    return CriterionResult(
        name=ROLE_ASSIGNMENTS,
        passed=count >= thresholds.min_servers_with_roles,
        metric=count,
        message=f"Has roles in {count} servers "
                f"(requires {thresholds.min_servers_with_roles} or more)",
        detail={"serversWithRoles": count, "details": [dict(d) for d in tally.details]},
    )


def evaluate_verified_connections(
    connections: Iterable[Connection],
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> CriterionResult:
    verified = [c for c in connections if c.verified]
    count = len(verified)
    return CriterionResult(
        name=VERIFIED_CONNECTIONS,
        passed=count >= thresholds.min_verified_connections,
        metric=count,
        message=f"Has {count} verified connections "
                f"(requires {thresholds.min_verified_connections} or more)",
        detail={"count": count, "connections": [c.display() for c in verified]},
    )
