"""Typed views over Discord API payloads.

Parsing drops everything the credential check does not need: connection
account ids, avatars, emails, nicknames and so on never leave this module.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


class PayloadError(ValueError):
    """An API payload is missing a field the pipeline depends on."""


@dataclass(frozen=True)
class Profile:
    id: str
    username: str = ""

    @classmethod
    def from_api(cls, data: Any) -> "Profile":
        if not isinstance(data, dict) or not data.get("id"):
            raise PayloadError("profile payload has no id")
        if not str(data["id"]).isdigit():
            raise PayloadError("profile id is not a snowflake")
        return cls(id=str(data["id"]), username=str(data.get("username") or ""))


@dataclass(frozen=True)
class GuildMembership:
    id: str
    name: str

    @classmethod
    def from_api(cls, data: Any) -> "GuildMembership":
        if not isinstance(data, dict) or not data.get("id"):
            raise PayloadError("guild entry has no id")
        return cls(id=str(data["id"]), name=str(data.get("name") or ""))


@dataclass(frozen=True)
class GuildMemberDetail:
    """Role ids the account holds in one guild.

    The default ``@everyone`` role shares its id with the guild. The API
    already leaves it out, but it is stripped here too so a change upstream
    cannot inflate the count.
    """
    guild_id: str
    roles: frozenset

    @classmethod
    def from_api(cls, guild_id: str, data: Any) -> "GuildMemberDetail":
        if not isinstance(data, dict):
            raise PayloadError("member payload is not an object")
        roles = data.get("roles") or []
        if not isinstance(roles, list):
            raise PayloadError("member roles is not a list")
        return cls(
            guild_id=guild_id,
            roles=frozenset(str(r) for r in roles if str(r) != guild_id),
        )

    @property
    def has_roles(self) -> bool:
        return bool(self.roles)


@dataclass(frozen=True)
class Connection:
    type: str
    name: str
    verified: bool

    @classmethod
    def from_api(cls, data: Any) -> "Connection":
        if not isinstance(data, dict) or "type" not in data:
            raise PayloadError("connection entry has no type")
        return cls(
            type=str(data["type"]),
            name=str(data.get("name") or ""),
            verified=data.get("verified") is True,
        )

    def display(self) -> dict:
        return {"type": self.type, "name": self.name}


@dataclass(frozen=True)
class CriterionResult:
    """Outcome of one criterion. ``detail`` holds display-only data."""
    name: str
    passed: bool
    metric: int
    message: str
    detail: Optional[dict] = None

    def to_dict(self) -> dict:
        out = {"passed": self.passed, "metric": self.metric, "message": self.message}
        if self.detail:
            out.update(self.detail)
        return out
