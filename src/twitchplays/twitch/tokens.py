# Token lifecycle: validate, refresh and persist the chat token.
#
# Invariant: while a record holds an access token, its user_name/user_id are
# those reported by the last successful validation of that token.

from __future__ import annotations

import logging
import time
from collections.abc import Iterable

from twitchplays.errors import TokenRefreshError
from twitchplays.twitch.api import TwitchAuthApi
from twitchplays.twitch.models import ClientRegistration, TokenRecord
from twitchplays.twitch.store import CredentialStore


class TokenLifecycleManager:
    """Keeps the persisted chat token usable between runs."""

    def __init__(
        self,
        api: TwitchAuthApi,
        store: CredentialStore,
        required_scopes: Iterable[str],
        logger: logging.Logger | None = None,
    ):
        self.api = api
        self.store = store
        self.required_scopes = frozenset(required_scopes)
        self._log = logger or logging.getLogger(__name__)

    async def validate_and_refresh(
        self,
        registration: ClientRegistration,
        record: TokenRecord,
    ) -> bool:
        """Validate the token, refreshing it once if Twitch says it is invalid.

        Returns True (and persists the record) iff the record still holds an
        access token afterwards.
        """
        if record.access_token is None:
            return False

        result = await self.api.validate(record.access_token.value)
        if result is None:
            self._log.info("Stored token is no longer valid, refreshing")
            record.access_token = await self.api.refresh(
                registration.client_id,
                registration.client_secret,
                record.access_token.refresh_value,
            )
            if record.access_token is not None:
                result = await self.api.validate(record.access_token.value)
                record.user_name = result.login if result else ""
                record.user_id = result.user_id if result else ""
        elif not record.user_name and not record.user_id and result.covers(self.required_scopes):
            record.user_name = result.login
            record.user_id = result.user_id
            self._log.info("Authenticated as %s", record.user_name)
        elif result.login != record.user_name or not result.covers(self.required_scopes):
            self._log.warning(
                "Token no longer matches user %r or required scopes %s, discarding it",
                record.user_name,
                sorted(self.required_scopes),
            )
            record.access_token = None

        if record.access_token is None:
            return False
        self.store.write_tokens(record)
        return True

    async def load_tokens(self, registration: ClientRegistration) -> TokenRecord:
        """Read the persisted record and validate it.

        The record is returned whatever the outcome; callers check
        ``access_token`` to see whether it is usable.
        """
        record = self.store.read_tokens() or TokenRecord()
        await self.validate_and_refresh(registration, record)
        return record

    def clear_tokens(self) -> None:
        """Wipe the persisted token so the next run re-authorizes."""
        if self.store.has_tokens():
            self.store.write_tokens(TokenRecord())
            self._log.info("Cleared stored chat token")

    async def refresh_if_expired(
        self,
        registration: ClientRegistration,
        record: TokenRecord,
    ) -> bool:
        """Refresh the token ahead of use once its expiration has passed.

        Returns True if a refresh happened. Raises TokenRefreshError if the
        refresh is rejected.
        """
        token = record.access_token
        if token is None or not token.is_expired(time.time()):
            return False

        refreshed = await self.api.refresh(
            registration.client_id,
            registration.client_secret,
            token.refresh_value,
        )
        if refreshed is None:
            raise TokenRefreshError(
                f"Twitch rejected the refresh token for {record.user_name or 'the chat user'}"
            )
        token.value = refreshed.value
        token.refresh_value = refreshed.refresh_value or token.refresh_value
        token.expiration = refreshed.expiration
        self.store.write_tokens(record)
        return True
