"""Browser authorization flow for the chat token.

Opens the Twitch consent page, catches the redirect on a one-shot local
server, checks the CSRF state and exchanges the returned code for a token.
"""

from __future__ import annotations

import asyncio
import html
import logging
import secrets
import socket
import sys
import webbrowser
from collections.abc import Callable
from dataclasses import dataclass
from urllib.parse import urlsplit

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse

from twitchplays.config import REDIRECT_URI
from twitchplays.errors import AuthorizationError
from twitchplays.twitch.api import TwitchAuthApi, build_authorize_url
from twitchplays.twitch.models import ClientRegistration, TokenRecord

RESPONSE_TEMPLATE = "<html><body><h3>{header}</h3><p>{body}</p></body></html>"

CSRF_MESSAGE = "CSRF attack detected. Check your firewall settings."


@dataclass(frozen=True)
class CallbackResult:
    """What one redirect request told us, and the page to answer it with."""

    header: str
    body: str
    code: str | None = None
    error: str | None = None


def render_page(header: str, body: str) -> str:
    return RESPONSE_TEMPLATE.format(header=html.escape(header), body=html.escape(body))


def evaluate_callback(query: dict[str, str], expected_state: str) -> CallbackResult:
    """Decide the outcome of a redirect request.

    A state that does not match the one generated for this attempt is
    rejected even when a code is present.
    """
    error = query.get("error")
    if error:
        description = query.get("error_description")
        detail = f"{error}: {description}" if description else error
        return CallbackResult(
            header="Error!",
            body=f"{detail}. Close this window and try again.",
            error=detail,
        )

    state = query.get("state")
    if state is None or not secrets.compare_digest(state, expected_state):
        return CallbackResult(header="Error!", body=CSRF_MESSAGE, error="state mismatch")

    code = query.get("code")
    if not code:
        return CallbackResult(
            header="Error!",
            body="Unexpected error.",
            error="no authorization code in redirect",
        )

    return CallbackResult(
        header="Authentication complete!",
        body="You may now close this window.",
        code=code,
    )


def create_callback_app(
    expected_state: str,
    on_result: Callable[[CallbackResult], None],
) -> FastAPI:
    """FastAPI app answering the redirect at ``/``."""
    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)

    @app.get("/")
    async def oauth_callback(request: Request) -> HTMLResponse:
        result = evaluate_callback(dict(request.query_params), expected_state)
        on_result(result)
        return HTMLResponse(render_page(result.header, result.body))

    return app


def _bind_listener(host: str, port: int) -> socket.socket:
    """Listening socket for the redirect endpoint. Raises OSError if the port is taken."""
    sock = socket.socket(socket.AF_INET6 if ":" in host else socket.AF_INET, socket.SOCK_STREAM)
    try:
        if sys.platform != "win32":
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
        sock.listen()
    except OSError:
        sock.close()
        raise
    return sock


class AuthorizationFlow:
    """One authorization attempt per call to ``request_authorization``."""

    def __init__(
        self,
        api: TwitchAuthApi,
        redirect_uri: str = REDIRECT_URI,
        timeout: float = 60.0,
        open_browser: Callable[[str], bool] = webbrowser.open,
        logger: logging.Logger | None = None,
    ):
        self.api = api
        self.redirect_uri = redirect_uri
        self.timeout = timeout
        self._open_browser = open_browser
        self._log = logger or logging.getLogger(__name__)

    def _launch(self, url: str) -> None:
        self._log.info("If the browser does not open, visit: %s", url)
        try:
            if not self._open_browser(url):
                self._log.warning("No browser available to open the Twitch login page")
        except Exception as e:
            self._log.warning("Failed to launch browser: %s", e)

    async def _await_code(self, url: str, state: str) -> str:
        """Serve the redirect endpoint until one request arrives.

        Raises AuthorizationError on timeout or a rejected redirect.
        """
        loop = asyncio.get_running_loop()
        outcome: asyncio.Future[CallbackResult] = loop.create_future()

        def on_result(result: CallbackResult) -> None:
            if not outcome.done():
                outcome.set_result(result)

        target = urlsplit(self.redirect_uri)
        host, port = target.hostname or "localhost", target.port or 80
        try:
            sock = _bind_listener(host, port)
        except OSError as e:
            raise AuthorizationError(f"Could not listen on {self.redirect_uri}: {e}") from e

        config = uvicorn.Config(
            create_callback_app(state, on_result),
            host=host,
            port=port,
            log_level="warning",
        )
        server = uvicorn.Server(config)
        server_task = asyncio.create_task(server.serve(sockets=[sock]))

        try:
            while not server.started:
                if server_task.done():
                    raise AuthorizationError(
                        f"Could not serve {self.redirect_uri}"
                    ) from server_task.exception()
                await asyncio.sleep(0.05)

            self._launch(url)

            try:
                result = await asyncio.wait_for(outcome, timeout=self.timeout)
            except asyncio.TimeoutError:
                raise AuthorizationError(
                    f"No redirect received within {self.timeout:.0f} seconds"
                ) from None
        finally:
            server.should_exit = True
            if not server_task.done():
                await server_task
            sock.close()

        if result.code is None:
            raise AuthorizationError(result.error or "authorization failed")
        return result.code

    async def request_authorization(
        self,
        registration: ClientRegistration,
        scopes: list[str],
    ) -> TokenRecord | None:
        """Run the browser flow and exchange the code for a token.

        The returned record has empty identity fields; validation fills them.
        """
        state = secrets.token_urlsafe(32)
        url = build_authorize_url(registration.client_id, self.redirect_uri, scopes, state)

        try:
            code = await self._await_code(url, state)
        except AuthorizationError as e:
            self._log.error("Twitch authorization failed: %s", e)
            return None

        token = await self.api.fetch_token(
            registration.client_id,
            registration.client_secret,
            code,
            self.redirect_uri,
        )
        if token is None:
            return None
        return TokenRecord(access_token=token)
