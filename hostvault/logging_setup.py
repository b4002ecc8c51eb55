"""Logging for the ``hostvault`` logger tree: owner-only rotating file, redacted arguments."""

from __future__ import annotations

import logging
import logging.handlers
import os
import platform
import sys
from collections.abc import Mapping
from pathlib import Path

from hostvault.util.memory import SecureMemory
from hostvault.vault.models import ConnectionDetails

LOG_FILE_NAME = "hostvault.log"
MAX_PLAIN_LENGTH = 50

FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CONSOLE_FORMAT = "hostvault: %(levelname)s: %(message)s"

# marks handlers this module installed so a second call can replace them
_OWNED = "_hostvault_handler"


def redact(value):
    """Log-safe stand-in for a single ``%`` argument."""
    if isinstance(value, SecureMemory):
        return "<secret>"
    if isinstance(value, ConnectionDetails):
        return f"{value.username}@{value.host}:{value.port}"
    if isinstance(value, (bytes, bytearray, memoryview)):
        return f"<{len(value)} bytes>"
    if isinstance(value, str) and len(value) > MAX_PLAIN_LENGTH:
        return f"<{len(value)} chars>"
    return value


class SecureFormatter(logging.Formatter):
    """Formats a redacted copy of each record; the original is left alone."""

    def format(self, record):
        args = record.args
        if args:
            record = logging.makeLogRecord(record.__dict__)
            if isinstance(args, Mapping):
                record.args = {key: redact(value) for key, value in args.items()}
            else:
                record.args = tuple(redact(arg) for arg in args)
        return super().format(record)


def setup_secure_logging(
    log_dir: Path, level: int = logging.INFO, console: bool = False
) -> logging.Logger:
    """(Re)configure the ``hostvault`` logger.

    Handlers from an earlier call are closed and replaced, so each CLI
    invocation logs to the data directory it resolved.
    """
    log_dir.mkdir(parents=True, exist_ok=True)
    _owner_only(log_dir, 0o700)
    log_file = log_dir / LOG_FILE_NAME

    logger = logging.getLogger("hostvault")
    for old in [h for h in logger.handlers if getattr(h, _OWNED, False)]:
        logger.removeHandler(old)
        old.close()

    file_handler = logging.handlers.RotatingFileHandler(
        log_file, maxBytes=10 * 1024 * 1024, backupCount=3, encoding="utf-8"
    )
    file_handler.setFormatter(SecureFormatter(FILE_FORMAT))
    handlers = [file_handler]

    if console:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(SecureFormatter(CONSOLE_FORMAT))
        handlers.append(stream_handler)

    for handler in handlers:
        setattr(handler, _OWNED, True)
        logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False

    _owner_only(log_file, 0o600)
    return logger


def _owner_only(path: Path, mode: int) -> None:
    if platform.system() == "Windows":
        return
    try:
        os.chmod(path, mode)
    except OSError:
        pass
