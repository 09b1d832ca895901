"""discord_stamp.errors — Failure taxonomy for the credential pipeline.

Every error carries an HTTP-style ``status_code`` and a ``public_message``
that is safe to show an end user. Upstream response bodies go to the log,
never into ``public_message``.
"""

from __future__ import annotations

from typing import Optional


class StampError(Exception):
    """Base class for all credential-check failures."""

    status_code: int = 500
    public_message: str = "Failed to check credentials"

    def __init__(self, message: str = "", *, upstream_status: Optional[int] = None):
        self.upstream_status = upstream_status
        super().__init__(message or self.public_message)


class ConfigurationError(StampError):
    """Missing client credentials or endpoints. Raised pre-flight."""

    public_message = "Discord OAuth2 is not configured"


class InvalidTokenInput(StampError):
    """Caller supplied no access token, or a malformed one."""

    status_code = 400
    public_message = "Access token is required"


class AuthExchangeFailed(StampError):
    """The authorization code could not be exchanged for a token.

    Codes are single-use, so this is never retried. The user has to start
    the OAuth flow again.
    """

    status_code = 502
    public_message = "Authorization failed"


class TokenInvalidOrExpired(StampError):
    """Upstream answered 401. Aborts the whole evaluation."""

    status_code = 401
    public_message = "Invalid or expired access token"


class UpstreamUnavailable(StampError):
    """5xx, transport failure or malformed payload on a required fetch."""


class UpstreamRateLimited(UpstreamUnavailable):
    """429 responses persisted past the retry budget."""

    def __init__(self, message: str = "", *, retry_after: float = 0.0, **kwargs):
        self.retry_after = retry_after
        super().__init__(message, **kwargs)


class UpstreamTimeout(UpstreamUnavailable):
    """The required fetches did not finish inside the evaluation deadline."""


class ResourceUnavailable(StampError):
    """403/404 on a single resource.

    Tolerated when it comes from a per-guild member fetch; anywhere else it
    is as fatal as any other upstream failure.
    """

    @property
    def reason(self) -> str:
        return "not_found" if self.upstream_status == 404 else "forbidden"
