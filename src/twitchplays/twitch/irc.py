"""Read-only Twitch IRC client.

Joins the authenticated user's own channel and hands back the chat lines
received since the previous poll. Handles PING/PONG and auth-failure NOTICEs.
A dropped connection or a server RECONNECT closes the session; the next poll
raises ConnectionError so the owner can reconnect with its retry policy.
"""

from __future__ import annotations

import asyncio
import logging
import re
import ssl
import time
from dataclasses import dataclass

from twitchplays.twitch.models import TokenRecord

# Twitch may prepend IRCv3 tags to PRIVMSG lines.
PRIVMSG_RE = re.compile(
    r"^(?:@(?P<tags>[^\s]+)\s+)?:(?P<nick>[^!]+)![^ ]+ PRIVMSG #(?P<chan>[^ ]+) :(?P<msg>.*)$"
)
NOTICE_RE = re.compile(
    r"^(?:@(?P<tags>[^\s]+)\s+)?:(?P<server>[^ ]+)\s+NOTICE\s+(?P<target>[^ ]+)\s+:(?P<msg>.*)$"
)
RECONNECT_RE = re.compile(r"^(?:@(?P<tags>[^\s]+)\s+)?:(?P<server>[^ ]+)\s+RECONNECT\b")
WELCOME_RE = re.compile(r"^:[^ ]+ 001 ")

_AUTH_FAILURES = (
    "login authentication failed",
    "improperly formatted auth",
    "login unsuccessful",
    "authentication failed",
)

MAX_LINES_PER_POLL = 500


@dataclass(frozen=True)
class IrcMessage:
    user: str
    channel: str
    text: str


def parse_privmsg(line: str) -> IrcMessage | None:
    m = PRIVMSG_RE.match(line)
    if not m:
        return None
    return IrcMessage(user=m.group("nick"), channel=m.group("chan"), text=m.group("msg"))


def is_auth_failure(line: str) -> bool:
    notice = NOTICE_RE.match(line)
    if not notice:
        return False
    lowered = notice.group("msg").strip().lower()
    return any(marker in lowered for marker in _AUTH_FAILURES)


class TwitchIrcClient:
    """One chat connection for the user the token belongs to."""

    def __init__(
        self,
        record: TokenRecord,
        host: str = "irc.chat.twitch.tv",
        port: int = 6697,
        secure: bool = True,
        read_timeout: float = 0.05,
        login_timeout: float = 10.0,
        logger: logging.Logger | None = None,
    ):
        self.record = record
        self.host = host
        self.port = port
        self.secure = secure
        self.read_timeout = read_timeout
        self.login_timeout = login_timeout
        self._log = logger or logging.getLogger(__name__)
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None

    @property
    def channel(self) -> str:
        return self.record.user_name.lower()

    @property
    def connected(self) -> bool:
        return self._writer is not None and not self._writer.is_closing()

    async def _send(self, line: str) -> None:
        assert self._writer is not None
        self._writer.write((line + "\r\n").encode("utf-8"))
        await self._writer.drain()

    async def _readline(self, timeout: float) -> str | None:
        """Next line without the CRLF, or None on timeout.

        Raises ConnectionError when the server closes the stream.
        """
        assert self._reader is not None
        try:
            raw = await asyncio.wait_for(self._reader.readline(), timeout=timeout)
        except asyncio.TimeoutError:
            return None
        if not raw:
            raise ConnectionError("Twitch closed the chat connection")
        return raw.decode("utf-8", errors="replace").rstrip("\r\n")

    async def connect(self) -> bool:
        """Open the socket, log in and join the user's channel.

        Returns whether the server accepted the login.
        """
        await self.close()
        token = self.record.access_token
        if token is None or not self.channel:
            self._log.error("Cannot connect to chat without a validated token")
            return False

        try:
            ctx = ssl.create_default_context() if self.secure else None
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port, ssl=ctx),
                timeout=self.login_timeout,
            )
            await self._send("CAP REQ :twitch.tv/tags twitch.tv/commands")
            await self._send(f"PASS oauth:{token.value}")
            await self._send(f"NICK {self.channel}")
            await self._send(f"JOIN #{self.channel}")
            return await self._await_welcome()
        except (OSError, asyncio.TimeoutError) as e:
            self._log.warning("Chat connection to %s:%d failed: %s", self.host, self.port, e)
            await self.close()
            return False

    async def _await_welcome(self) -> bool:
        deadline = time.monotonic() + self.login_timeout
        while time.monotonic() < deadline:
            line = await self._readline(deadline - time.monotonic())
            if line is None:
                break
            if line.startswith("PING "):
                await self._send(f"PONG {line.split(' ', 1)[1]}")
            elif is_auth_failure(line):
                self._log.error("Twitch chat login failed: %s", line)
                await self.close()
                return False
            elif WELCOME_RE.match(line):
                self._log.info("Joined #%s", self.channel)
                return True
        self._log.warning("Timed out waiting for Twitch chat login")
        await self.close()
        return False

    async def process(self) -> list[IrcMessage]:
        """Return the chat messages received since the last call.

        Raises ConnectionError if the session is not connected.
        """
        if not self.connected:
            raise ConnectionError("Not connected to Twitch chat")

        messages: list[IrcMessage] = []
        try:
            for _ in range(MAX_LINES_PER_POLL):
                line = await self._readline(self.read_timeout)
                if line is None:
                    break
                if line.startswith("PING "):
                    await self._send(f"PONG {line.split(' ', 1)[1]}")
                elif RECONNECT_RE.match(line):
                    self._log.info("Twitch requested a reconnect")
                    await self.close()
                    break
                else:
                    msg = parse_privmsg(line)
                    if msg is not None:
                        messages.append(msg)
        except (ConnectionError, OSError) as e:
            self._log.warning("Chat read failed: %s", e)
            await self.close()
        return messages

    async def close(self) -> None:
        writer, self._writer, self._reader = self._writer, None, None
        if writer is None:
            return
        writer.close()
        try:
            await writer.wait_closed()
        except (OSError, ssl.SSLError):
            pass
