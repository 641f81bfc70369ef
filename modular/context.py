"""
Run-scoped state shared by the engine and every step.

A RunContext is created after parameter collection and passed explicitly to
probes and actions; nothing in the provisioner reaches for module-level
state instead.
"""

import logging
import threading
import time
from pathlib import Path
from typing import Optional

from common.command_utils import (
    CommandResult,
    run_command,
    run_command_as,
    run_elevated_command,
)
from common.logging_config import SecretRedactionFilter
from modular.errors import RunCancelledError
from setup.config_models import AppSettings, RunParameters


class CancellationToken:
    """
    Cooperative cancellation with an optional deadline.

    The engine checks the token between steps and attempts; backoff sleeps
    go through wait() so a cancel interrupts them immediately.
    """

    def __init__(self, timeout_seconds: Optional[float] = None):
        self._event = threading.Event()
        self._reason = ""
        self._deadline = (
            time.monotonic() + timeout_seconds if timeout_seconds else None
        )

    def cancel(self, reason: str = "Run cancelled by operator") -> None:
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._reason = "Run deadline exceeded"
            self._event.set()
            return True
        return False

    @property
    def reason(self) -> str:
        return self._reason

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise RunCancelledError(self._reason)

    def wait(self, seconds: float) -> bool:
        """
        Sleep up to `seconds`, returning early on cancellation.

        Returns:
            True if the token was cancelled during (or before) the wait.
        """
        if seconds <= 0:
            return self.cancelled
        if self._deadline is not None:
            seconds = max(0.0, min(seconds, self._deadline - time.monotonic()))
        self._event.wait(seconds)
        return self.cancelled


class RunContext:
    """
    Carries collected parameters, settings, the logger and the step cursor
    for the duration of one run.

    Use as a context manager; on exit the secrets held by the parameters are
    dropped.
    """

    def __init__(
        self,
        app_settings: AppSettings,
        params: RunParameters,
        logger: Optional[logging.Logger] = None,
        redaction_filter: Optional[SecretRedactionFilter] = None,
        cancel_token: Optional[CancellationToken] = None,
        log_file_path: Optional[Path] = None,
    ):
        self.app_settings = app_settings
        self.params = params
        self.logger = logger or logging.getLogger("erpnext_provisioner")
        self.redaction_filter = redaction_filter or SecretRedactionFilter()
        self.cancel_token = cancel_token or CancellationToken(
            app_settings.run_timeout_seconds
        )
        self.log_file_path = log_file_path
        self.cursor = 0
        self.redaction_filter.register_all(params.secret_values())

    def __enter__(self) -> "RunContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self.params.clear_secrets()

    def advance(self) -> int:
        """Move the step cursor forward and return its new value."""
        self.cursor += 1
        return self.cursor

    @property
    def system_user(self) -> str:
        return self.params.system_user or ""

    @property
    def site_name(self) -> str:
        return self.params.site_name or ""

    @property
    def home_dir(self) -> Path:
        return Path("/home") / self.system_user

    @property
    def bench_dir(self) -> Path:
        return self.home_dir / self.app_settings.bench.bench_dir_name

    def secret(self, name: str) -> str:
        """Plain value of a secret parameter, or '' when missing."""
        value = getattr(self.params, name)
        return value.get_secret_value() if value is not None else ""

    def run(self, command, **kwargs) -> CommandResult:
        return run_command(
            command, self.app_settings, current_logger=self.logger, **kwargs
        )

    def run_elevated(self, command, **kwargs) -> CommandResult:
        return run_elevated_command(
            command, self.app_settings, current_logger=self.logger, **kwargs
        )

    def run_as(self, account: str, command, **kwargs) -> CommandResult:
        return run_command_as(
            account,
            command,
            self.app_settings,
            current_logger=self.logger,
            **kwargs,
        )
