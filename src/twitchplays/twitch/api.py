# Twitch identity API: token exchange, refresh and validation.
#
# "Token invalid" answers (HTTP 400/401) come back as None; anything else that
# goes wrong raises TokenRefreshError so startup stops with a visible reason.

from __future__ import annotations

import logging
import time
import urllib.parse

import httpx

from twitchplays.errors import TokenRefreshError
from twitchplays.twitch.models import AccessToken, ValidationResult

ID_BASE = "https://id.twitch.tv/oauth2"
AUTHORIZE_URL = f"{ID_BASE}/authorize"
TOKEN_URL = f"{ID_BASE}/token"
VALIDATE_URL = f"{ID_BASE}/validate"

_INVALID_STATUSES = (400, 401)


def build_authorize_url(client_id: str, redirect_uri: str, scopes: list[str], state: str) -> str:
    """Authorization URL for the code flow. Re-consent is always forced."""
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": " ".join(scopes),
        "force_verify": "true",
        "state": state,
    }
    return f"{AUTHORIZE_URL}?{urllib.parse.urlencode(params, quote_via=urllib.parse.quote)}"


class TwitchAuthApi:
    """Thin async wrapper over the id.twitch.tv OAuth2 endpoints."""

    def __init__(self, timeout: float = 15.0, logger: logging.Logger | None = None):
        self.timeout = timeout
        self._log = logger or logging.getLogger(__name__)

    async def fetch_token(
        self,
        client_id: str,
        client_secret: str,
        code: str,
        redirect_uri: str,
    ) -> AccessToken | None:
        """Exchange an authorization code for a token pair."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    TOKEN_URL,
                    data={
                        "client_id": client_id,
                        "client_secret": client_secret,
                        "code": code,
                        "grant_type": "authorization_code",
                        "redirect_uri": redirect_uri,
                    },
                )
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as e:
            self._log.error("Code exchange rejected (%d): %s", e.response.status_code, e)
            return None
        except (httpx.HTTPError, ValueError) as e:
            self._log.error("Code exchange failed: %s", e)
            return None

        if not isinstance(data, dict) or "access_token" not in data:
            self._log.error("Code exchange response had no access_token")
            return None
        self._log.info("Obtained chat token from authorization code")
        return AccessToken.from_response(data, time.time())

    async def refresh(
        self,
        client_id: str,
        client_secret: str,
        refresh_value: str,
    ) -> AccessToken | None:
        """Trade a refresh token for a new token pair.

        Returns None if Twitch rejects the refresh token.
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    TOKEN_URL,
                    data={
                        "client_id": client_id,
                        "client_secret": client_secret,
                        "grant_type": "refresh_token",
                        "refresh_token": refresh_value,
                    },
                )
                if resp.status_code in _INVALID_STATUSES:
                    self._log.warning("Refresh token rejected (%d)", resp.status_code)
                    return None
                resp.raise_for_status()
                data = resp.json()
            token = AccessToken.from_response(data, time.time())
        except (httpx.HTTPError, ValueError, KeyError) as e:
            raise TokenRefreshError(f"Token refresh failed: {e}") from e

        self._log.info("Refreshed chat token")
        return token

    async def validate(self, access_value: str) -> ValidationResult | None:
        """Introspect a token. Returns None if it is no longer valid."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.get(
                    VALIDATE_URL,
                    headers={"Authorization": f"OAuth {access_value}"},
                )
                if resp.status_code in _INVALID_STATUSES:
                    return None
                resp.raise_for_status()
                data = resp.json()
            return ValidationResult(
                client_id=data.get("client_id", ""),
                login=data["login"],
                user_id=data["user_id"],
                scopes=frozenset(data.get("scopes") or ()),
                expires_in=data.get("expires_in"),
            )
        except (httpx.HTTPError, ValueError, KeyError) as e:
            raise TokenRefreshError(f"Token validation failed: {e}") from e
