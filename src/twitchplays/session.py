# Session connector: bounded, backed-off retries for the chat connection.

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

DEFAULT_RETRY_LIMIT = 10


class ChatSession(Protocol):
    """A chat connection. ``process`` raises ConnectionError once it has dropped."""

    async def connect(self) -> bool: ...

    async def process(self) -> list: ...


class SessionConnector:
    """Connects a chat session, retrying up to ``retry_limit`` attempts in total.

    The delay between attempts starts at ``initial_delay`` and doubles after
    every failure, capped at ``max_delay``.
    """

    def __init__(
        self,
        retry_limit: int = DEFAULT_RETRY_LIMIT,
        initial_delay: float = 1.0,
        max_delay: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        logger: logging.Logger | None = None,
    ):
        if retry_limit < 1:
            raise ValueError("retry_limit must be at least 1")
        self.retry_limit = retry_limit
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self._sleep = sleep
        self._log = logger or logging.getLogger(__name__)

    def delays(self):
        """Backoff delays to wait after each failed attempt but the last."""
        delay = self.initial_delay
        for _ in range(self.retry_limit - 1):
            yield min(delay, self.max_delay)
            delay *= 2

    async def connect(self, session: ChatSession) -> bool:
        self._log.info("Connecting to Twitch chat...")
        delays = self.delays()
        for attempt in range(1, self.retry_limit + 1):
            try:
                if await session.connect():
                    return True
            except Exception as e:
                self._log.debug("Connect attempt %d raised: %s", attempt, e, exc_info=True)

            if attempt == self.retry_limit:
                break
            delay = next(delays)
            self._log.error(
                "Connection failed (attempt %d/%d), retrying in %g seconds...",
                attempt,
                self.retry_limit,
                delay,
            )
            await self._sleep(delay)

        self._log.error("Unable to connect to Twitch after %d attempts", self.retry_limit)
        return False
