"""Global test configuration and shared Discord API fixtures."""
from datetime import datetime, timezone

import pytest

from discord_stamp.config import Settings
from discord_stamp.criteria import DISCORD_EPOCH_MS, MS_PER_DAY

API = "https://discord.com/api"

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
NOW_MS = int(NOW.timestamp()) * 1000


def snowflake_for(created_ms: int, low_bits: int = 0) -> str:
    """Build a snowflake whose embedded timestamp is ``created_ms``."""
    return str(((created_ms - DISCORD_EPOCH_MS) << 22) | low_bits)


def snowflake_days_old(days: int) -> str:
    return snowflake_for(NOW_MS - days * MS_PER_DAY)


def guilds_payload(n: int) -> list[dict]:
    return [{"id": str(1000 + i), "name": f"Guild {i}", "icon": None,
             "owner": False, "permissions": "0", "features": []}
            for i in range(n)]


def member_payload(roles: list) -> dict:
    return {"roles": roles, "joined_at": "2023-01-01T00:00:00+00:00",
            "deaf": False, "mute": False, "flags": 0}


def connection_payload(kind: str, name: str, verified: bool) -> dict:
    return {"type": kind, "id": f"ext-{kind}-{name}", "name": name, "verified": verified,
            "friend_sync": False, "show_activity": True, "visibility": 1}


@pytest.fixture
def settings():
    return Settings(
        client_id="client-123",
        client_secret="secret-xyz",
        redirect_uri="http://localhost:3000/api/auth/callback",
        timeout_seconds=5.0,
        backoff_base=0.0,
        rate_limit_enabled=False,
    )
