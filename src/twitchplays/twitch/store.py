# Credential Store: file-based persistence of the client registration and
# chat token at ~/.twitchplays/.
#
# Records are read and written as whole JSON documents; files are chmod 0600.

from __future__ import annotations

import json
import logging
import os
import stat
from dataclasses import asdict
from pathlib import Path
from typing import Any

from twitchplays.config import get_config_dir
from twitchplays.twitch.models import ClientRegistration, TokenRecord

CLIENT_FILE = "client_data.json"
TOKEN_FILE = "token_data.json"


class CredentialStore:
    """Owner-only JSON files holding the two persisted records."""

    def __init__(self, directory: Path | None = None, logger: logging.Logger | None = None):
        self._directory = directory
        self._log = logger or logging.getLogger(__name__)

    def _path(self, name: str) -> Path:
        d = self._directory if self._directory is not None else get_config_dir()
        d.mkdir(parents=True, exist_ok=True)
        return d / name

    def _read(self, name: str) -> dict[str, Any] | None:
        path = self._path(name)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text())
        except (json.JSONDecodeError, OSError) as e:
            self._log.warning("Failed to read %s: %s", path, e)
            return None
        if not isinstance(data, dict):
            self._log.warning("Ignoring malformed record in %s", path)
            return None
        return data

    def _write(self, name: str, data: dict[str, Any]) -> None:
        path = self._path(name)
        path.write_text(json.dumps(data, indent=2))
        os.chmod(path, stat.S_IRUSR | stat.S_IWUSR)
        self._log.debug("Wrote %s", path)

    # -- client registration ---------------------------------------------

    def read_client(self) -> ClientRegistration | None:
        data = self._read(CLIENT_FILE)
        if data is None:
            return None
        return ClientRegistration(
            client_id=data.get("client_id", ""),
            client_secret=data.get("client_secret", ""),
            redirect_uri=data.get("redirect_uri", ""),
        )

    def write_client(self, registration: ClientRegistration) -> None:
        self._write(CLIENT_FILE, asdict(registration))

    # -- token record ----------------------------------------------------

    def has_tokens(self) -> bool:
        return self._path(TOKEN_FILE).exists()

    def read_tokens(self) -> TokenRecord | None:
        data = self._read(TOKEN_FILE)
        if data is None:
            return None
        try:
            return TokenRecord.from_dict(data)
        except (TypeError, KeyError) as e:
            self._log.warning("Failed to load token record: %s", e)
            return None

    def write_tokens(self, record: TokenRecord) -> None:
        self._write(TOKEN_FILE, asdict(record))
