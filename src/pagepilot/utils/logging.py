"""Process logging for pagepilot: rotating file output and secret scrubbing."""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:  # pragma: no cover - import cycle guard
    from ..services.settings import Settings

__all__ = [
    "SecretFilter",
    "configure_from_settings",
    "default_data_dir",
    "get_log_path",
    "setup_logging",
]

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_NAME = "pagepilot.log"

_DATA_DIR = Path.home() / ".pagepilot"
_THIRD_PARTY_LOGGERS: tuple[str, ...] = ("asyncio", "httpx", "httpcore", "openai", "websockets")
_REDACTED = "[redacted]"
_TRACEBACK_FORMATTER = logging.Formatter()

_log_path: Path | None = None


class SecretFilter(logging.Filter):
    """Replaces registered secret values (API keys) in log messages and traceback text."""

    def __init__(self, secrets: Iterable[str] = ()) -> None:
        super().__init__()
        self._secrets = {secret for secret in secrets if secret and len(secret) >= 8}

    def add(self, secret: str) -> None:
        if secret and len(secret) >= 8:
            self._secrets.add(secret)

    def filter(self, record: logging.LogRecord) -> bool:
        if not self._secrets:
            return True
        message = record.getMessage()
        scrubbed = self.scrub(message)
        if scrubbed != message:
            record.msg = scrubbed
            record.args = None
        if record.exc_info and not record.exc_text:
            record.exc_text = _TRACEBACK_FORMATTER.formatException(record.exc_info)
        if record.exc_text:
            record.exc_text = self.scrub(record.exc_text)
        if record.stack_info:
            record.stack_info = self.scrub(record.stack_info)
        return True

    def scrub(self, text: str) -> str:
        for secret in self._secrets:
            text = text.replace(secret, _REDACTED)
        return text


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    secrets: Iterable[str] = (),
    force: bool = False,
) -> Path:
    """Install a rotating ``pagepilot.log`` handler (plus stderr when ``console``) on the root logger.

    Calling it again is a no-op returning the same path unless ``force`` is set.
    """

    global _log_path
    if _log_path is not None and not force:
        return _log_path

    directory = Path(log_dir or os.environ.get("PAGEPILOT_LOG_DIR") or _DATA_DIR / "logs").expanduser()
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / LOG_FILE_NAME

    secret_filter = SecretFilter(secrets)
    handlers = list(_build_handlers(path, level, console, max_bytes, backup_count))
    for handler in handlers:
        handler.addFilter(secret_filter)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    quiet = max(level, logging.WARNING)
    for name in _THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(quiet)

    _log_path = path
    return path


def configure_from_settings(settings: "Settings", *, console: bool = True, force: bool = False) -> Path:
    """Set up logging at DEBUG when ``settings.debug_logging`` is on, INFO otherwise."""

    level = logging.DEBUG if settings.debug_logging else logging.INFO
    return setup_logging(level, console=console, secrets=(settings.api_key,), force=force)


def get_log_path() -> Path | None:
    return _log_path


def default_data_dir() -> Path:
    """Directory holding the event log and cached model limits."""

    if _log_path is not None:
        return _log_path.parent
    return _DATA_DIR


def _build_handlers(
    path: Path,
    level: int,
    console: bool,
    max_bytes: int,
    backup_count: int,
) -> Iterable[logging.Handler]:
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    file_handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    yield file_handler
    if console:
        stream_handler = logging.StreamHandler()
        stream_handler.setLevel(level)
        stream_handler.setFormatter(formatter)
        yield stream_handler
