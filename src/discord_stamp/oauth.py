"""OAuth2 helpers: authorization URL and code-for-token exchange."""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import quote, urlencode

import httpx

from .config import OAUTH_SCOPES, Settings
from .errors import AuthExchangeFailed

logger = logging.getLogger(__name__)


def authorize_url(settings: Settings, state: Optional[str] = None) -> str:
    """URL that starts the authorization flow with the scopes the check needs."""
    settings.require_oauth()
    params = {
        "client_id": settings.client_id,
        "redirect_uri": settings.redirect_uri,
        "response_type": "code",
        "scope": " ".join(OAUTH_SCOPES),
    }
    if state:
        params["state"] = state
    return f"{settings.api_base}/oauth2/authorize?{urlencode(params, quote_via=quote)}"


async def exchange_code(
    code: Optional[str],
    settings: Settings,
    *,
    http: Optional[httpx.AsyncClient] = None,
) -> str:
    """Exchange an authorization code for a bearer token.

    Codes are single-use, so a failed exchange is never retried.

    Raises:
        ConfigurationError: client credentials are missing.
        AuthExchangeFailed: no code, a non-2xx response, or no token in the body.
    """
    if not code or not code.strip():
        raise AuthExchangeFailed("no authorization code supplied")
    settings.require_oauth()

    form = {
        "client_id": settings.client_id,
        "client_secret": settings.client_secret,
        "grant_type": "authorization_code",
        "code": code.strip(),
        "redirect_uri": settings.redirect_uri,
    }
    url = f"{settings.api_base}/oauth2/token"

    owns = http is None
    client = http or httpx.AsyncClient(timeout=settings.timeout_seconds)
    try:
        resp = await client.post(
            url, data=form, headers={"Content-Type": "application/x-www-form-urlencoded"}
        )
    except httpx.HTTPError as e:
        logger.warning("Token exchange transport error: %s", type(e).__name__)
        raise AuthExchangeFailed("token endpoint unreachable") from e
    finally:
        if owns:
            await client.aclose()

    if not resp.is_success:
        logger.warning(
            "Token exchange rejected",
            extra={"upstream_status": resp.status_code, "upstream_body": resp.text[:500]},
        )
        raise AuthExchangeFailed(
            f"token endpoint returned {resp.status_code}", upstream_status=resp.status_code
        )

    try:
        token = resp.json().get("access_token")
    except (ValueError, AttributeError):
        token = None
    if not token:
        logger.warning("Token exchange response carried no access_token")
        raise AuthExchangeFailed("no access_token in token response")
    return token
