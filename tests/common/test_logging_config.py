import json
import logging
import sys
from datetime import datetime
from pathlib import Path

import pytest

from common.logging_config import (
    REDACTED_PLACEHOLDER,
    JSONFormatter,
    SecretRedactionFilter,
    build_log_file_path,
    setup_logging,
    shutdown_logging,
)


@pytest.fixture(autouse=True)
def restore_root_logger():
    yield
    shutdown_logging()


def make_record(msg, args=None, exc_info=None):
    return logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=args,
        exc_info=exc_info,
    )


def test_redact_replaces_registered_secrets():
    redaction = SecretRedactionFilter()
    redaction.register("hunter2")

    assert redaction.redact("password is hunter2!") == (
        f"password is {REDACTED_PLACEHOLDER}!"
    )


def test_redact_ignores_empty_secret():
    redaction = SecretRedactionFilter()
    redaction.register("")
    redaction.register(None)

    assert redaction.redact("nothing to hide") == "nothing to hide"


def test_redact_longest_secret_first():
    redaction = SecretRedactionFilter()
    redaction.register_all(["abc", "abcdef"])

    assert redaction.redact("abcdef") == REDACTED_PLACEHOLDER


def test_filter_redacts_format_arguments():
    redaction = SecretRedactionFilter()
    redaction.register("s3cret")
    record = make_record("connecting with %s", ("s3cret",))

    assert redaction.filter(record) is True
    assert record.getMessage() == f"connecting with {REDACTED_PLACEHOLDER}"


def test_filter_redacts_exception_text():
    redaction = SecretRedactionFilter()
    redaction.register("s3cret")
    try:
        raise RuntimeError("bad password s3cret")
    except RuntimeError:
        record = make_record("failed", exc_info=sys.exc_info())

    redaction.filter(record)

    assert "s3cret" not in record.exc_text
    assert record.exc_info is None


def test_clear_forgets_secrets():
    redaction = SecretRedactionFilter()
    redaction.register("s3cret")
    redaction.clear()

    assert redaction.redact("s3cret") == "s3cret"


def test_build_log_file_path():
    started = datetime(2024, 3, 1, 9, 5, 7)

    path = build_log_file_path("/var/log/erp", "erpnext_install", started)

    assert path == Path("/var/log/erp/erpnext_install_2024-03-01_09-05-07.log")


def test_json_formatter_emits_one_object():
    formatter = JSONFormatter("svc")
    line = formatter.format(make_record("hello %s", ("world",)))

    entry = json.loads(line)
    assert entry["message"] == "hello world"
    assert entry["level"] == "INFO"
    assert entry["service"] == "svc"


def test_secrets_never_reach_log_file(tmp_path):
    redaction = SecretRedactionFilter()
    redaction.register("db-root-secret")
    log_file = tmp_path / "run.log"

    logger, actual = setup_logging(
        "provision_test",
        log_file_path=log_file,
        redaction_filter=redaction,
        enable_console=False,
    )
    logger.info("mysqladmin password db-root-secret")
    logger.debug("env MYSQL_PWD=%s", "db-root-secret")
    shutdown_logging()

    content = actual.read_text(encoding="utf-8")
    assert actual == log_file
    assert "db-root-secret" not in content
    assert REDACTED_PLACEHOLDER in content
    assert "env MYSQL_PWD" in content


def test_json_log_file(tmp_path):
    log_file = tmp_path / "run.log"

    logger, actual = setup_logging(
        "provision_json",
        log_file_path=log_file,
        enable_console=False,
        log_format="json",
    )
    logger.warning("careful")
    shutdown_logging()

    entries = [
        json.loads(line)
        for line in actual.read_text(encoding="utf-8").splitlines()
    ]
    assert any(e["message"] == "careful" for e in entries)


def test_unwritable_log_dir_falls_back_to_cwd(tmp_path, monkeypatch):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")
    monkeypatch.chdir(tmp_path)

    logger, actual = setup_logging(
        "provision_fallback",
        log_file_path=blocker / "logs" / "run.log",
        enable_console=False,
    )
    shutdown_logging()

    assert actual == tmp_path / "run.log"
    assert "not writable" in actual.read_text(encoding="utf-8")


def test_no_log_file_requested():
    logger, actual = setup_logging("provision_console", enable_console=False)

    assert actual is None
    assert logger.name == "provision_console"
