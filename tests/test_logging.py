"""Tests for process logging setup."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from pagepilot.services.settings import Settings
from pagepilot.utils import logging as logging_utils


@pytest.fixture
def restore_root_logging(monkeypatch: pytest.MonkeyPatch):
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    monkeypatch.setattr(logging_utils, "_log_path", None)
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def _record(message: str, *args: object) -> logging.LogRecord:
    return logging.LogRecord("test", logging.INFO, __file__, 1, message, args, None)


def test_secret_filter_scrubs_registered_values() -> None:
    secret_filter = logging_utils.SecretFilter(["sk-live-abcdef123"])
    record = _record("calling with key %s", "sk-live-abcdef123")

    assert secret_filter.filter(record) is True
    assert record.getMessage() == "calling with key [redacted]"


def test_secret_filter_ignores_short_values() -> None:
    secret_filter = logging_utils.SecretFilter(["abc", ""])
    record = _record("abc stays")

    secret_filter.filter(record)

    assert record.getMessage() == "abc stays"


def test_setup_logging_writes_rotating_file(tmp_path: Path, restore_root_logging: None) -> None:
    path = logging_utils.setup_logging(logging.INFO, log_dir=tmp_path, console=False, secrets=["sk-test-99999999"])
    logging.getLogger("pagepilot.test").info("key is %s", "sk-test-99999999")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert path == tmp_path / "pagepilot.log"
    assert logging_utils.get_log_path() == path
    assert logging_utils.default_data_dir() == tmp_path
    text = path.read_text(encoding="utf-8")
    assert "key is [redacted]" in text
    assert "sk-test-99999999" not in text
    assert logging.getLogger("httpx").level == logging.WARNING


def test_secret_in_exception_traceback_is_scrubbed(tmp_path: Path, restore_root_logging: None) -> None:
    path = logging_utils.setup_logging(logging.INFO, log_dir=tmp_path, console=False, secrets=["sk-live-abcdef123"])
    try:
        raise RuntimeError("provider rejected key sk-live-abcdef123")
    except RuntimeError:
        logging.getLogger("pagepilot.test").exception("request failed")
    for handler in logging.getLogger().handlers:
        handler.flush()

    text = path.read_text(encoding="utf-8")
    assert "RuntimeError: provider rejected key [redacted]" in text
    assert "sk-live-abcdef123" not in text


def test_setup_logging_is_idempotent_unless_forced(tmp_path: Path, restore_root_logging: None) -> None:
    first = logging_utils.setup_logging(log_dir=tmp_path / "a", console=False)

    assert logging_utils.setup_logging(log_dir=tmp_path / "b", console=False) == first
    assert logging_utils.setup_logging(log_dir=tmp_path / "b", console=False, force=True) == tmp_path / "b" / "pagepilot.log"


def test_configure_from_settings_uses_debug_flag(
    tmp_path: Path, restore_root_logging: None, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("PAGEPILOT_LOG_DIR", str(tmp_path))

    logging_utils.configure_from_settings(Settings(debug_logging=True), console=False)

    assert logging.getLogger().level == logging.DEBUG
