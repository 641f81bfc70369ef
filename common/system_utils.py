# common/system_utils.py
# -*- coding: utf-8 -*-
"""
System-level utility functions for the provisioner.

Account lookups, architecture detection and service
state queries.
"""

import getpass
import grp
import logging
import os
import pwd
from typing import Optional

from common.command_utils import (
    _symbols,
    log_erp_server,
    run_command,
    run_elevated_command,
)
from setup.config_models import AppSettings

module_logger = logging.getLogger(__name__)


def user_exists(username: str) -> bool:
    """Check whether a local account exists."""
    try:
        pwd.getpwnam(username)
        return True
    except KeyError:
        return False


def user_in_group(username: str, group_name: str) -> bool:
    """
    Check whether `username` belongs to `group_name`, either as a
    supplementary member or through its primary group.
    """
    try:
        group = grp.getgrnam(group_name)
    except KeyError:
        return False
    if username in group.gr_mem:
        return True
    try:
        return pwd.getpwnam(username).pw_gid == group.gr_gid
    except KeyError:
        return False


def current_user() -> str:
    return getpass.getuser()


def is_root() -> bool:
    return os.geteuid() == 0


def get_dpkg_architecture(
    app_settings: Optional[AppSettings],
    current_logger: Optional[logging.Logger] = None,
) -> Optional[str]:
    """
    Get the Debian package architecture (e.g., 'amd64', 'arm64').
    """
    logger_to_use = current_logger if current_logger else module_logger
    result = run_command(
        ["dpkg", "--print-architecture"],
        app_settings,
        current_logger=logger_to_use,
        quiet=True,
    )
    if not result.ok:
        log_erp_server(
            f"{_symbols(app_settings).get('warning', '!')} Could not determine package architecture: {result.output}",
            "warning",
            logger_to_use,
            app_settings,
        )
        return None
    return result.stdout.strip() or None


def service_is_active(
    service_name: str,
    app_settings: Optional[AppSettings],
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    result = run_elevated_command(
        ["systemctl", "is-active", "--quiet", service_name],
        app_settings,
        current_logger=current_logger,
        quiet=True,
    )
    return result.ok
