"""Chat command dispatch loop.

Polls the chat session, looks up the first word of every message in the
command table and plays the matching key presses. One action runs at a time;
the loop only moves on once the keys have been released.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping

from twitchplays.commands import CommandAction
from twitchplays.errors import ChatConnectionError
from twitchplays.input import KeyInjector
from twitchplays.session import ChatSession

DEFAULT_POLL_INTERVAL = 0.01


def command_token(text: str) -> str | None:
    """Lowercased first word of a chat message, or None for blank text."""
    words = text.split()
    return words[0].lower() if words else None


class CommandDispatcher:
    """Drives the injector from chat until ``cancel`` is set.

    Cancellation is checked once per poll; an action already being played
    always finishes. When the session reports a dropped connection the
    ``reconnect`` callback gets one chance to restore it.
    """

    def __init__(
        self,
        session: ChatSession,
        injector: KeyInjector,
        commands: Mapping[str, CommandAction],
        cancel: asyncio.Event,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        focus: Callable[[], object] | None = None,
        reconnect: Callable[[], Awaitable[bool]] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        logger: logging.Logger | None = None,
    ):
        self.session = session
        self.injector = injector
        self.commands = commands
        self.cancel = cancel
        self.poll_interval = poll_interval
        self._focus = focus
        self._reconnect = reconnect
        self._sleep = sleep
        self._log = logger or logging.getLogger(__name__)

    async def execute(self, action: CommandAction) -> None:
        """Play one action. Every key pressed is released, even if interrupted."""
        hold = action.hold_ms / 1000
        if action.is_combo:
            pressed: list[int] = []
            try:
                for code in action.scan_codes:
                    self.injector.key_down(code)
                    pressed.append(code)
                await self._sleep(hold)
            finally:
                for code in pressed:
                    self.injector.key_up(code)
        else:
            for code in action.scan_codes:
                self.injector.key_down(code)
                try:
                    await self._sleep(hold)
                finally:
                    self.injector.key_up(code)

    async def dispatch(self, text: str) -> bool:
        """Play the command in ``text``. Returns False if it is not a command."""
        token = command_token(text)
        if token is None:
            return False
        action = self.commands.get(token)
        if action is None:
            return False
        self._log.debug("Command %r -> %s", token, action)
        await self.execute(action)
        return True

    async def _restore_session(self) -> None:
        if self._reconnect is None or not await self._reconnect():
            raise ChatConnectionError(
                "Lost the connection to Twitch chat and could not reconnect."
            )

    async def run(self) -> None:
        if self._focus is not None:
            try:
                self._focus()
            except Exception as e:
                self._log.warning("Could not focus target window: %s", e)

        self._log.info("Listening for chat commands (%d registered)", len(self.commands))
        while not self.cancel.is_set():
            try:
                messages = await self.session.process()
            except ConnectionError as e:
                self._log.warning("Chat connection lost: %s", e)
                await self._restore_session()
                continue
            for message in messages:
                if message.text and message.text.strip():
                    await self.dispatch(message.text)
            await self._sleep(self.poll_interval)
        self._log.info("Command dispatch stopped")
