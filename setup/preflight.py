# setup/preflight.py
# -*- coding: utf-8 -*-
"""
Pre-flight checks run before any mutating step.

Each check raises on a conflict so the run stops before the host is
touched.
"""

import logging
from typing import Optional

from common.command_utils import log_erp_server
from common.network_utils import get_port_listener
from common.system_utils import (
    current_user,
    get_dpkg_architecture,
    is_root,
    user_exists,
    user_in_group,
)
from modular.errors import EnvironmentMismatchError, PreflightConflictError
from setup.config_models import AppSettings, RunParameters

module_logger = logging.getLogger(__name__)

SUDO_GROUP = "sudo"


def check_architecture(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> str:
    """
    Raises:
        EnvironmentMismatchError: The CPU architecture has no PDF renderer build.
    """
    logger_to_use = current_logger if current_logger else module_logger
    supported = app_settings.wkhtmltopdf.supported_architectures
    arch = get_dpkg_architecture(app_settings, current_logger=logger_to_use)
    if arch not in supported:
        raise EnvironmentMismatchError(
            f"Unsupported architecture: {arch or 'unknown'} (supported: {', '.join(supported)})"
        )
    log_erp_server(
        f"{app_settings.symbols.get('success', '✅')} Architecture {arch} is supported.",
        "debug",
        logger_to_use,
        app_settings,
    )
    return arch


def check_http_port(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> None:
    """
    The HTTP port may be free or held by nginx (a previous run); anything
    else is a conflict.

    Raises:
        PreflightConflictError: Another process listens on the port.
    """
    logger_to_use = current_logger if current_logger else module_logger
    port = app_settings.nginx.listen_port
    listener = get_port_listener(port, app_settings, current_logger=logger_to_use)
    if listener is None:
        log_erp_server(
            f"Port {port} is free.", "debug", logger_to_use, app_settings
        )
        return
    if "nginx" in listener:
        log_erp_server(
            f"{app_settings.symbols.get('info', 'ℹ️')} Port {port} is already served by nginx.",
            "info",
            logger_to_use,
            app_settings,
        )
        return
    raise PreflightConflictError(
        f"Port {port} is already in use by another process: {listener}. Stop it and re-run."
    )


def check_account(
    app_settings: AppSettings,
    params: RunParameters,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Raises:
        PreflightConflictError: The account exists although a new one is
            required, or the existing account cannot use sudo.
    """
    logger_to_use = current_logger if current_logger else module_logger
    if params.create_new_user:
        if (
            params.system_user
            and app_settings.require_new_account
            and user_exists(params.system_user)
        ):
            raise PreflightConflictError(
                f"User '{params.system_user}' already exists. Choose another name or disable require_new_account."
            )
        return

    account = params.system_user or current_user()
    if is_root() or user_in_group(account, SUDO_GROUP):
        log_erp_server(
            f"Account '{account}' has sudo access.",
            "debug",
            logger_to_use,
            app_settings,
        )
        return
    raise PreflightConflictError(
        f"User '{account}' is not in the {SUDO_GROUP} group. Add it with 'usermod -aG {SUDO_GROUP} {account}' or create a new user."
    )


def run_preflight_checks(
    app_settings: AppSettings,
    params: RunParameters,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """Run every pre-flight check, stopping at the first conflict."""
    logger_to_use = current_logger if current_logger else module_logger
    log_erp_server(
        f"{app_settings.symbols.get('step', '➡️')} Running pre-flight checks...",
        "info",
        logger_to_use,
        app_settings,
    )
    check_architecture(app_settings, logger_to_use)
    check_http_port(app_settings, logger_to_use)
    check_account(app_settings, params, logger_to_use)
    log_erp_server(
        f"{app_settings.symbols.get('success', '✅')} Pre-flight checks passed.",
        "info",
        logger_to_use,
        app_settings,
    )
