"""discord_stamp — Verify Discord account engagement for a credential stamp."""

__version__ = "0.1.0"

from discord_stamp.config import Settings, Thresholds
from discord_stamp.errors import (
    StampError, ConfigurationError, InvalidTokenInput, AuthExchangeFailed,
    TokenInvalidOrExpired, UpstreamUnavailable, UpstreamRateLimited,
    UpstreamTimeout, ResourceUnavailable,
)
from discord_stamp.models import (
    Profile, GuildMembership, GuildMemberDetail, Connection, CriterionResult,
)
from discord_stamp.criteria import (
    snowflake_to_timestamp_ms,
    evaluate_account_age, evaluate_server_count,
    evaluate_role_assignments, evaluate_verified_connections,
)
from discord_stamp.client import DiscordClient
from discord_stamp.aggregator import (
    GuildRoleAggregator, RoleTally, MemberFetched, MemberSkipped,
    aggregate_member_roles,
)
from discord_stamp.report import CredentialReport, assemble_report, hash_account_id
from discord_stamp.oauth import authorize_url, exchange_code
from discord_stamp.pipeline import check_credentials

__all__ = [
    "Settings",
    "Thresholds",
    "StampError",
    "ConfigurationError",
    "InvalidTokenInput",
    "AuthExchangeFailed",
    "TokenInvalidOrExpired",
    "UpstreamUnavailable",
    "UpstreamRateLimited",
    "UpstreamTimeout",
    "ResourceUnavailable",
    "Profile",
    "GuildMembership",
    "GuildMemberDetail",
    "Connection",
    "CriterionResult",
    "snowflake_to_timestamp_ms",
    "evaluate_account_age",
    "evaluate_server_count",
    "evaluate_role_assignments",
    "evaluate_verified_connections",
    "DiscordClient",
    "GuildRoleAggregator",
    "RoleTally",
    "MemberFetched",
    "MemberSkipped",
    "aggregate_member_roles",
    "CredentialReport",
    "assemble_report",
    "hash_account_id",
    "authorize_url",
    "exchange_code",
    "check_credentials",
]
