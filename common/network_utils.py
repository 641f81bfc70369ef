# common/network_utils.py
# -*- coding: utf-8 -*-
"""
Network-related utility functions.
"""
import logging
import re
import socket
from typing import Optional

from setup.config_models import AppSettings
from .command_utils import _symbols, log_erp_server, run_elevated_command

module_logger = logging.getLogger(__name__)

HOSTNAME_PATTERN = re.compile(
    r"^(?=.{1,253}$)[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?"
    r"(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?)*$"
)


def is_valid_hostname(name: str) -> bool:
    """Check that `name` is a hostname-like site identifier."""
    if not isinstance(name, str):
        return False
    return bool(HOSTNAME_PATTERN.match(name))


def get_port_listener(
    port: int,
    app_settings: Optional[AppSettings],
    current_logger: Optional[logging.Logger] = None,
) -> Optional[str]:
    """
    Describe the process listening on a TCP port.

    Returns:
        The `ss` output line(s) for the listener, "unknown" when the port is
        bound but `ss` is unavailable, or None when the port is free.
    """
    logger_to_use = current_logger if current_logger else module_logger
    result = run_elevated_command(
        ["ss", "-Hltnp", f"sport = :{port}"],
        app_settings,
        current_logger=logger_to_use,
        quiet=True,
    )
    if result.ok:
        return result.stdout.strip() or None

    log_erp_server(
        f"{_symbols(app_settings).get('warning', '!')} 'ss' unavailable ({result.exit_code}); probing port {port} with a socket.",
        "debug",
        logger_to_use,
        app_settings,
    )
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.settimeout(1.0)
        if s.connect_ex(("127.0.0.1", port)) == 0:
            return "unknown"
    return None
