"""Console + file logging.

Console output goes through Rich; everything at DEBUG and above is also
written to a size-rotated log file in the config directory.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

_MAX_LOG_BYTES = 8 * 1024 * 1024
_LOG_BACKUPS = 10

_NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn", "uvicorn.access", "uvicorn.error")


def setup_logging(level: str = "INFO", log_file: Path | None = None) -> None:
    """Install the console handler (and optional file handler) on the root logger.

    Calling it again replaces the handlers installed by a previous call.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_twitchplays", False):
            root.removeHandler(handler)
            handler.close()

    console = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    console.setLevel(level.upper())
    console.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    console._twitchplays = True  # type: ignore[attr-defined]
    root.addHandler(console)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=_MAX_LOG_BYTES,
            backupCount=_LOG_BACKUPS,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s|%(levelname)s|%(name)s|%(message)s")
        )
        file_handler._twitchplays = True  # type: ignore[attr-defined]
        root.addHandler(file_handler)

    root.setLevel(logging.DEBUG if log_file is not None else level.upper())

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
