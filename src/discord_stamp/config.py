"""discord_stamp.config — Runtime settings and policy thresholds.

Configuration via environment:
    DISCORD_CLIENT_ID       — OAuth2 application id
    DISCORD_CLIENT_SECRET   — OAuth2 application secret
    DISCORD_REDIRECT_URI    — callback registered with the application
    DISCORD_API_BASE        — API root (default https://discord.com/api)
    APP_URL                 — where the callback redirects (NEXT_PUBLIC_APP_URL also accepted)
    STAMP_TIMEOUT_SECONDS   — whole-evaluation deadline (default 10)
    STAMP_MAX_CONCURRENCY   — per-guild member fetch workers (default 5)
    STAMP_MAX_RETRIES       — 429 retries per request (default 3)
    STAMP_ID_SALT           — salt for the hashed account id in stored records
    STAMP_CHECK_RATE_LIMIT  — slowapi limit on /check-credentials (default 10/minute)
    RATELIMIT_ENABLED       — set to false to disable inbound rate limiting
    LOG_LEVEL               — default INFO

Thresholds are policy, not deployment config, and are not read from the
environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from .errors import ConfigurationError

DEFAULT_API_BASE = "https://discord.com/api"
DEFAULT_APP_URL = "http://localhost:3000"

OAUTH_SCOPES = ("identify", "guilds", "guilds.members.read", "connections")


@dataclass(frozen=True)
class Thresholds:
    """Pass marks for the four criteria.

    ``min_account_age_days`` is compared strictly (``>``); the rest use ``>=``.
    """
    min_account_age_days: int = 365
    min_servers: int = 10
    min_servers_with_roles: int = 3
    min_verified_connections: int = 2


@dataclass(frozen=True)
class Settings:
    client_id: str = ""
    client_secret: str = field(default="", repr=False)
    redirect_uri: str = ""
    api_base: str = DEFAULT_API_BASE
    app_url: str = DEFAULT_APP_URL
    timeout_seconds: float = 10.0
    max_concurrency: int = 5
    max_retries: int = 3
    backoff_base: float = 0.5
    backoff_cap: float = 5.0
    id_salt: str = field(default="", repr=False)
    log_level: str = "INFO"
    # Each check fans out to one upstream call per guild
    check_rate_limit: str = "10/minute"
    rate_limit_enabled: bool = True
    thresholds: Thresholds = field(default_factory=Thresholds)

    def __post_init__(self):
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        try:
            return cls(
                client_id=env.get("DISCORD_CLIENT_ID", ""),
                client_secret=env.get("DISCORD_CLIENT_SECRET", ""),
                redirect_uri=env.get("DISCORD_REDIRECT_URI", ""),
                api_base=env.get("DISCORD_API_BASE", DEFAULT_API_BASE).rstrip("/"),
                app_url=env.get("APP_URL") or env.get("NEXT_PUBLIC_APP_URL") or DEFAULT_APP_URL,
                timeout_seconds=float(env.get("STAMP_TIMEOUT_SECONDS", "10")),
                max_concurrency=int(env.get("STAMP_MAX_CONCURRENCY", "5")),
                max_retries=int(env.get("STAMP_MAX_RETRIES", "3")),
                id_salt=env.get("STAMP_ID_SALT", ""),
                log_level=env.get("LOG_LEVEL", "INFO"),
                check_rate_limit=env.get("STAMP_CHECK_RATE_LIMIT", "10/minute"),
                rate_limit_enabled=env.get("RATELIMIT_ENABLED", "true").lower() not in ("0", "false", "no"),
            )
        except ValueError as e:
            raise ConfigurationError(f"invalid numeric setting: {e}") from e

    @property
    def oauth_configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.redirect_uri)

    def require_oauth(self) -> "Settings":
        """Pre-flight check for the code exchange. Returns self for chaining."""
        missing = [
            name for name, value in (
                ("DISCORD_CLIENT_ID", self.client_id),
                ("DISCORD_CLIENT_SECRET", self.client_secret),
                ("DISCORD_REDIRECT_URI", self.redirect_uri),
            ) if not value
        ]
        if missing:
            raise ConfigurationError(f"missing settings: {', '.join(missing)}")
        return self
