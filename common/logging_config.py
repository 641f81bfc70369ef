# -*- coding: utf-8 -*-
"""
Run-scoped logging configuration for the ERPNext provisioner.

Every run writes to the console and to a timestamped log file. A redaction
filter attached to each handler replaces registered secret values before a
record is emitted, so collected passwords never reach either sink.
"""

import json
import logging
import os
import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

REDACTED_PLACEHOLDER = "********"
TEXT_LOG_FORMAT = "[%(asctime)s] %(levelname)s %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d_%H:%M:%S"
LOG_FILE_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"


class SecretRedactionFilter(logging.Filter):
    """
    Replaces every registered secret value in a record with a placeholder.

    The message is rendered once (msg % args) and the record's args are
    cleared, so secrets passed as format arguments are redacted as well.
    """

    def __init__(self, placeholder: str = REDACTED_PLACEHOLDER):
        super().__init__()
        self.placeholder = placeholder
        self._secrets: List[str] = []
        self._lock = threading.Lock()

    def register(self, secret: Optional[str]) -> None:
        """Register a secret value. Empty values are ignored."""
        if not secret:
            return
        with self._lock:
            if secret not in self._secrets:
                self._secrets.append(secret)
                # Longest first so a secret containing another is fully masked
                self._secrets.sort(key=len, reverse=True)

    def register_all(self, secrets: Iterable[str]) -> None:
        for secret in secrets:
            self.register(secret)

    def clear(self) -> None:
        with self._lock:
            self._secrets = []

    def redact(self, text: str) -> str:
        with self._lock:
            secrets = list(self._secrets)
        for secret in secrets:
            text = text.replace(secret, self.placeholder)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = self.redact(record.getMessage())
        record.args = None
        if record.exc_info and not record.exc_text:
            record.exc_text = logging.Formatter().formatException(
                record.exc_info
            )
        if record.exc_text:
            record.exc_text = self.redact(record.exc_text)
            record.exc_info = None
        return True


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for machine-readable log files.

    Each record becomes one JSON object with timestamp, level, logger,
    message and source location.
    """

    def __init__(self, service_name: str = "erpnext-provisioner"):
        super().__init__()
        self.service_name = service_name
        self.hostname = os.environ.get("HOSTNAME", "unknown")

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "service": self.service_name,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "hostname": self.hostname,
        }
        if record.exc_text:
            log_entry["exception"] = record.exc_text
        elif record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False)


class FlushingFileHandler(logging.FileHandler):
    """File handler that flushes and fsyncs after every record."""

    def emit(self, record: logging.LogRecord) -> None:
        super().emit(record)
        if self.stream is not None:
            try:
                os.fsync(self.stream.fileno())
            except OSError:
                pass


def build_log_file_path(
    log_dir: str,
    prefix: str = "erpnext_install",
    started_at: Optional[datetime] = None,
) -> Path:
    """Derive the run-scoped log file path from the run start time."""
    started_at = started_at or datetime.now()
    return Path(log_dir) / (
        f"{prefix}_{started_at.strftime(LOG_FILE_TIMESTAMP_FORMAT)}.log"
    )


def _open_file_handler(log_file_path: Path) -> Tuple[logging.FileHandler, Path]:
    try:
        log_file_path.parent.mkdir(parents=True, exist_ok=True)
        return FlushingFileHandler(log_file_path, encoding="utf-8"), log_file_path
    except OSError:
        fallback = Path.cwd() / log_file_path.name
        return FlushingFileHandler(fallback, encoding="utf-8"), fallback


def setup_logging(
    service_name: str,
    log_file_path: Optional[Path] = None,
    redaction_filter: Optional[SecretRedactionFilter] = None,
    log_level: Optional[str] = None,
    enable_console: bool = True,
    log_format: str = "text",
) -> Tuple[logging.Logger, Optional[Path]]:
    """
    Set up run-scoped logging.

    Args:
        service_name: Name of the logger returned to the caller.
        log_file_path: Run log file. When the directory is not writable the
            file is created in the current directory instead.
        redaction_filter: Filter attached to every handler.
        log_level: Logging level (DEBUG, INFO, ...). Defaults to $LOG_LEVEL or INFO.
        enable_console: Whether to log to stdout.
        log_format: "text" or "json" for the file handler.

    Returns:
        The configured logger and the actual log file path (None when no
        file was requested).
    """
    if log_level is None:
        log_level = os.environ.get("LOG_LEVEL", "INFO").upper()

    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    text_formatter = logging.Formatter(TEXT_LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(text_formatter)
        if redaction_filter is not None:
            console_handler.addFilter(redaction_filter)
        root_logger.addHandler(console_handler)

    actual_path: Optional[Path] = None
    fallback_used = False
    if log_file_path is not None:
        file_handler, actual_path = _open_file_handler(Path(log_file_path))
        fallback_used = actual_path != Path(log_file_path)
        # The file always receives debug output for post-mortem analysis
        file_handler.setLevel(logging.DEBUG)
        root_logger.setLevel(min(numeric_level, logging.DEBUG))
        if log_format == "json":
            file_handler.setFormatter(JSONFormatter(service_name))
        else:
            file_handler.setFormatter(text_formatter)
        if redaction_filter is not None:
            file_handler.addFilter(redaction_filter)
        root_logger.addHandler(file_handler)

    logger = logging.getLogger(service_name)
    if fallback_used:
        logger.warning(
            f"Log directory '{Path(log_file_path).parent}' is not writable; logging to {actual_path}"
        )
    if actual_path is not None:
        logger.info(f"Logging installation details to {actual_path}")
    return logger, actual_path


def shutdown_logging() -> None:
    """Flush and close every root handler."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        handler.flush()
        handler.close()
        root_logger.removeHandler(handler)
