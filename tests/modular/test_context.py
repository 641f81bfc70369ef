from pathlib import Path

import pytest

from modular.context import CancellationToken, RunContext
from modular.errors import RunCancelledError


def test_token_cancel():
    token = CancellationToken()
    assert not token.cancelled

    token.cancel("stop now")

    assert token.cancelled
    assert token.reason == "stop now"
    with pytest.raises(RunCancelledError, match="stop now"):
        token.raise_if_cancelled()


def test_token_wait_returns_early_when_cancelled():
    token = CancellationToken()
    token.cancel()

    assert token.wait(30) is True


def test_token_deadline(mocker):
    clock = mocker.patch("modular.context.time.monotonic", return_value=100.0)
    token = CancellationToken(timeout_seconds=10)
    assert not token.cancelled

    clock.return_value = 111.0

    assert token.cancelled
    assert token.reason == "Run deadline exceeded"


def test_context_registers_secrets(run_context, redaction_filter):
    assert redaction_filter.redact("db-root-secret") == "********"
    assert redaction_filter.redact("admin-secret-xyz") == "********"


def test_context_paths(run_context):
    assert run_context.system_user == "frappe"
    assert run_context.home_dir == Path("/home/frappe")
    assert run_context.bench_dir == Path("/home/frappe/frappe-bench")


def test_secret_lookup(run_context):
    assert run_context.secret("admin_password") == "admin-secret-xyz"


def test_close_clears_secrets(app_settings, run_params, mock_logger):
    with RunContext(app_settings, run_params, mock_logger) as ctx:
        assert ctx.secret("db_root_password") == "db-root-secret"

    assert ctx.secret("db_root_password") == ""
    assert run_params.admin_password is None


def test_advance_moves_cursor(run_context):
    assert run_context.advance() == 1
    assert run_context.advance() == 2
    assert run_context.cursor == 2


def test_run_helpers_pass_settings_and_logger(run_context, mocker):
    run_elevated = mocker.patch("modular.context.run_elevated_command")

    run_context.run_elevated(["nginx", "-t"])

    run_elevated.assert_called_once_with(
        ["nginx", "-t"],
        run_context.app_settings,
        current_logger=run_context.logger,
    )
