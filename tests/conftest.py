# tests/conftest.py
import logging
import os
from unittest.mock import MagicMock

import pytest
from pydantic import SecretStr

from common.logging_config import SecretRedactionFilter
from modular.context import CancellationToken, RunContext
from setup.config_models import AppSettings, RunParameters


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep ERP_/ERPNEXT_ variables of the developer's shell out of the tests."""
    for key in list(os.environ):
        if key.startswith("ERP_") or key.startswith("ERPNEXT_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def app_settings():
    """AppSettings with zero backoff so retries never sleep."""
    return AppSettings(
        retry={"max_attempts": 3, "backoff_seconds": 0},
        input_max_attempts=3,
        symbols={
            "success": "✅",
            "error": "❌",
            "warning": "!",
            "info": "ℹ️",
            "step": "➡️",
            "gear": "⚙️",
            "critical": "🔥",
        },
    )


@pytest.fixture
def mock_logger():
    """Fixture to create a mock logger for testing."""
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def run_params():
    return RunParameters(
        system_user="frappe",
        system_user_password=SecretStr("user-pass-123"),
        db_root_password=SecretStr("db-root-secret"),
        admin_password=SecretStr("admin-secret-xyz"),
        site_name="erp.example.com",
        create_new_user=True,
    )


@pytest.fixture
def redaction_filter():
    return SecretRedactionFilter()


@pytest.fixture
def run_context(app_settings, run_params, mock_logger, redaction_filter):
    ctx = RunContext(
        app_settings,
        run_params,
        logger=mock_logger,
        redaction_filter=redaction_filter,
        cancel_token=CancellationToken(),
    )
    yield ctx
    ctx.close()
