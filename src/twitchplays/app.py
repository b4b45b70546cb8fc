# Runner: loads the client registration, authenticates, connects to chat
# and hands control to the command dispatcher.

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Callable
from functools import partial

from rich.prompt import Prompt

from twitchplays.commands import build_command_table
from twitchplays.config import Settings
from twitchplays.dispatcher import CommandDispatcher
from twitchplays.errors import ChatConnectionError, ConfigurationError
from twitchplays.input import KeyInjector, SendInputInjector, default_key_mapper
from twitchplays.session import SessionConnector
from twitchplays.twitch.api import TwitchAuthApi
from twitchplays.twitch.auth import AuthorizationFlow
from twitchplays.twitch.irc import TwitchIrcClient
from twitchplays.twitch.models import ClientRegistration, TokenRecord
from twitchplays.twitch.store import CredentialStore
from twitchplays.twitch.tokens import TokenLifecycleManager
from twitchplays.window import focus_process_window

logger = logging.getLogger(__name__)


def masked_prompt(message: str) -> str:
    return Prompt.ask(message, password=True)


_LABELS = {"client_id": "Client id", "client_secret": "Client secret"}


def check_registration(registration: ClientRegistration) -> None:
    """Raise ConfigurationError naming the first blank required field."""
    for field in _LABELS:
        if not getattr(registration, field).strip():
            raise ConfigurationError(f"{_LABELS[field]} missing or invalid", field=field)


def load_client_registration(
    store: CredentialStore,
    prompt: Callable[[str], str] = masked_prompt,
    log: logging.Logger = logger,
) -> ClientRegistration:
    """Read the stored registration, prompting until id and secret are present.

    Each accepted answer is persisted straight away.
    """
    registration = store.read_client() or ClientRegistration()
    while True:
        try:
            check_registration(registration)
            return registration
        except ConfigurationError as e:
            label = _LABELS[e.field]
            log.error("%s. Enter %s:", e, label.lower())
            value = prompt(label).strip()
            if value:
                setattr(registration, e.field, value)
                store.write_client(registration)


def correct_redirect_uri(
    registration: ClientRegistration,
    redirect_uri: str,
    store: CredentialStore,
    tokens: TokenLifecycleManager,
    log: logging.Logger = logger,
) -> bool:
    """Point a stale registration at our redirect URI and drop its token."""
    if registration.redirect_uri == redirect_uri:
        return False
    if registration.redirect_uri:
        log.warning(
            "The redirect URI saved in your client data is outdated. Make sure your "
            "registered Twitch application lists %s as an OAuth Redirect URL before continuing.",
            redirect_uri,
        )
    registration.redirect_uri = redirect_uri
    store.write_client(registration)
    tokens.clear_tokens()
    return True


async def authenticate(
    registration: ClientRegistration,
    tokens: TokenLifecycleManager,
    flow: AuthorizationFlow,
    scopes: list[str],
    log: logging.Logger = logger,
) -> TokenRecord | None:
    """Return a validated token record, running the browser flow if needed."""
    record = await tokens.load_tokens(registration)
    if record.access_token is None:
        log.warning("User token not found. Launching Twitch login.")
        fresh = await flow.request_authorization(registration, scopes)
        if fresh is None:
            return None
        record.access_token = fresh.access_token
        record.user_name = record.user_id = ""

    if await tokens.validate_and_refresh(registration, record):
        return record
    log.error("Something went wrong authenticating")
    return None


async def run_bot(
    settings: Settings,
    registration: ClientRegistration,
    record: TokenRecord,
    tokens: TokenLifecycleManager,
    cancel: asyncio.Event,
    injector: KeyInjector | None = None,
    session: TwitchIrcClient | None = None,
    connector: SessionConnector | None = None,
) -> None:
    """Connect to chat and dispatch commands until ``cancel`` is set."""
    injector = injector or SendInputInjector()
    await tokens.refresh_if_expired(registration, record)

    session = session or TwitchIrcClient(record, host=settings.irc_host, port=settings.irc_port)
    connector = connector or SessionConnector(
        retry_limit=settings.retry_limit,
        initial_delay=settings.retry_initial_delay,
        max_delay=settings.retry_max_delay,
    )

    async def reconnect() -> bool:
        await tokens.refresh_if_expired(registration, record)
        return await connector.connect(session)

    if not await connector.connect(session):
        raise ChatConnectionError(
            "Unable to connect to Twitch, please verify your connection and try again."
        )

    dispatcher = CommandDispatcher(
        session,
        injector,
        build_command_table(default_key_mapper()),
        cancel,
        poll_interval=settings.poll_interval,
        focus=partial(focus_process_window, settings.target_process),
        reconnect=reconnect,
    )
    try:
        await dispatcher.run()
    finally:
        await session.close()


def _install_cancel_handler(cancel: asyncio.Event) -> Callable[[], None]:
    """Route SIGINT/SIGTERM to ``cancel``. Returns a function undoing it."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel.set)
        loop.add_signal_handler(signal.SIGTERM, cancel.set)
    except NotImplementedError:
        # Windows event loops: a plain handler that hops onto the loop.
        previous = signal.getsignal(signal.SIGINT)
        signal.signal(signal.SIGINT, lambda signum, frame: loop.call_soon_threadsafe(cancel.set))
        return partial(signal.signal, signal.SIGINT, previous)
    except RuntimeError:
        # Not the main thread; Ctrl+C stays a KeyboardInterrupt.
        return lambda: None

    def restore() -> None:
        loop.remove_signal_handler(signal.SIGINT)
        loop.remove_signal_handler(signal.SIGTERM)

    return restore


async def run(settings: Settings, reset_client: bool = False, reset_auth: bool = False) -> bool:
    """Full startup sequence. Returns False if the bot never got going."""
    store = CredentialStore(settings.config_dir)
    api = TwitchAuthApi(timeout=settings.http_timeout)
    tokens = TokenLifecycleManager(api, store, settings.scopes)
    flow = AuthorizationFlow(api, redirect_uri=settings.redirect_uri, timeout=settings.auth_timeout)

    if reset_client:
        logger.info("Clearing client data")
        store.write_client(ClientRegistration())
    if reset_auth:
        logger.info("Clearing auth credentials")
        store.write_tokens(TokenRecord())

    logger.info("Loading client data...")
    registration = load_client_registration(store)
    correct_redirect_uri(registration, settings.redirect_uri, store, tokens)

    logger.info("Authenticating...")
    record = await authenticate(registration, tokens, flow, settings.scopes)
    if record is None:
        return False

    cancel = asyncio.Event()
    restore_signals = _install_cancel_handler(cancel)
    try:
        await run_bot(settings, registration, record, tokens, cancel)
    finally:
        restore_signals()
    return True
