"""Tests for SecureFormatter redaction and logger setup."""

from __future__ import annotations

import logging
import platform

import pytest

from hostvault.logging_setup import LOG_FILE_NAME, SecureFormatter, setup_secure_logging
from hostvault.util.memory import SecureMemory


def _format(msg, args):
    record = logging.LogRecord("hostvault.test", logging.INFO, __file__, 1, msg, args, None)
    return SecureFormatter("%(message)s").format(record), record


@pytest.fixture
def clean_logger():
    yield logging.getLogger("hostvault")
    logger = logging.getLogger("hostvault")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


class TestSecureFormatter:
    def test_secret_types_redacted(self, make_record):
        with make_record(username="deploy", password="hunter2").connection() as details:
            text, _ = _format(
                "key=%s details=%s raw=%s", (SecureMemory(b"k" * 32), details, b"hunter2")
            )
        assert "hunter2" not in text
        assert "key=<secret>" in text
        assert "details=deploy@1.2.3.4:22" in text
        assert "raw=<7 bytes>" in text

    def test_long_strings_redacted_short_kept(self):
        text, _ = _format("%s %s %d", ("x" * 51, "prod", 3))
        assert text == "<51 chars> prod 3"

    def test_mapping_args(self):
        record = logging.LogRecord(
            "hostvault.test", logging.INFO, __file__, 1, "%(pw)s", None, None
        )
        record.args = {"pw": b"secret"}
        assert SecureFormatter("%(message)s").format(record) == "<6 bytes>"

    def test_original_record_untouched(self):
        _, record = _format("%s", (b"abc",))
        assert record.args == (b"abc",)


class TestSetup:
    def test_writes_redacted_file(self, tmp_path, clean_logger):
        setup_secure_logging(tmp_path / "logs")
        logging.getLogger("hostvault.vault").info("key %s", SecureMemory(b"s3cr3t"))
        for handler in clean_logger.handlers:
            handler.flush()
        content = (tmp_path / "logs" / LOG_FILE_NAME).read_text()
        assert "key <secret>" in content
        assert "s3cr3t" not in content

    def test_repeated_setup_replaces_handlers(self, tmp_path, clean_logger):
        setup_secure_logging(tmp_path / "one")
        setup_secure_logging(tmp_path / "two", console=True)
        assert len(clean_logger.handlers) == 2
        logging.getLogger("hostvault").warning("moved")
        for handler in clean_logger.handlers:
            handler.flush()
        assert "moved" in (tmp_path / "two" / LOG_FILE_NAME).read_text()
        assert "moved" not in (tmp_path / "one" / LOG_FILE_NAME).read_text()

    def test_level_and_propagation(self, tmp_path, clean_logger):
        setup_secure_logging(tmp_path, level=logging.DEBUG)
        assert clean_logger.level == logging.DEBUG
        assert clean_logger.propagate is False

    @pytest.mark.skipif(platform.system() == "Windows", reason="Unix permissions")
    def test_owner_only(self, tmp_path, clean_logger):
        setup_secure_logging(tmp_path / "logs")
        assert (tmp_path / "logs").stat().st_mode & 0o777 == 0o700
        assert (tmp_path / "logs" / LOG_FILE_NAME).stat().st_mode & 0o777 == 0o600
