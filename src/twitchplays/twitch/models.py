# Twitch auth data models.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ClientRegistration:
    """A registered Twitch application (dev.twitch.tv/console/apps)."""

    client_id: str = ""
    client_secret: str = ""
    redirect_uri: str = ""


@dataclass
class AccessToken:
    """Access + refresh token pair returned by the token endpoint."""

    value: str
    refresh_value: str = ""
    expiration: float | None = None  # Unix timestamp

    @classmethod
    def from_response(cls, data: dict[str, Any], now: float) -> AccessToken:
        expires_in = data.get("expires_in")
        return cls(
            value=data["access_token"],
            refresh_value=data.get("refresh_token", ""),
            expiration=now + expires_in if expires_in else None,
        )

    def is_expired(self, now: float) -> bool:
        return self.expiration is not None and self.expiration < now


@dataclass
class TokenRecord:
    """The chat user a token belongs to, plus the token itself."""

    user_name: str = ""
    user_id: str = ""
    access_token: AccessToken | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TokenRecord:
        token = data.get("access_token")
        return cls(
            user_name=data.get("user_name", ""),
            user_id=data.get("user_id", ""),
            access_token=AccessToken(**token) if token else None,
        )


@dataclass(frozen=True)
class ValidationResult:
    """Response of the /oauth2/validate endpoint. Never persisted."""

    client_id: str
    login: str
    user_id: str
    scopes: frozenset[str] = field(default_factory=frozenset)
    expires_in: int | None = None

    def covers(self, required: frozenset[str] | set[str] | tuple[str, ...]) -> bool:
        return set(required) <= self.scopes
