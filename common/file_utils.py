# common/file_utils.py
# -*- coding: utf-8 -*-
"""
File system utility functions: writing privileged files, backing them up
and removing leftovers from earlier installations.
"""

import datetime
import logging
from pathlib import Path
from typing import Optional

from setup.config_models import AppSettings

from .command_utils import (
    CommandResult,
    _symbols,
    log_erp_server,
    run_elevated_command,
)

module_logger = logging.getLogger(__name__)


def write_file_elevated(
    file_path: str,
    content: str,
    app_settings: Optional[AppSettings],
    mode: Optional[str] = None,
    append: bool = False,
    current_logger: Optional[logging.Logger] = None,
) -> CommandResult:
    """
    Write `content` to a root-owned file through `tee`.

    The content travels over stdin so it never appears on a command line or
    in the log.

    Args:
        file_path: Destination path.
        content: Text to write.
        app_settings: Application settings.
        mode: Optional chmod mode applied after writing (e.g. "0440").
        append: Append instead of truncating.
        current_logger: Logger to use.

    Returns:
        The result of the last command run (tee or chmod).
    """
    logger_to_use = current_logger if current_logger else module_logger
    tee_cmd = ["tee", "-a", file_path] if append else ["tee", file_path]
    result = run_elevated_command(
        tee_cmd,
        app_settings,
        cmd_input=content,
        current_logger=logger_to_use,
        quiet=True,
    )
    if not result.ok:
        log_erp_server(
            f"{_symbols(app_settings).get('error', '❌')} Failed to write {file_path}: {result.stderr.strip()}",
            "error",
            logger_to_use,
            app_settings,
        )
        return result
    log_erp_server(
        f"{_symbols(app_settings).get('success', '✅')} Wrote {file_path}",
        "info",
        logger_to_use,
        app_settings,
    )
    if mode:
        result = run_elevated_command(
            ["chmod", mode, file_path],
            app_settings,
            current_logger=logger_to_use,
        )
    return result


def backup_file(
    file_path: str,
    app_settings: Optional[AppSettings],
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """
    Backup a specified file to a timestamped copy next to it.

    Returns:
        bool: True if the backup succeeded or no backup was needed (file
        absent). False if the copy failed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = _symbols(app_settings)

    if not Path(file_path).is_file():
        log_erp_server(
            f"{symbols.get('info', 'ℹ️')} File {file_path} does not exist or is not a regular file. No backup needed.",
            "debug",
            logger_to_use,
            app_settings,
        )
        return True

    timestamp = datetime.datetime.now().strftime("%Y%m%d-%H%M%S")
    backup_path = f"{file_path}.bak.{timestamp}"
    result = run_elevated_command(
        ["cp", "-a", file_path, backup_path],
        app_settings,
        current_logger=logger_to_use,
    )
    if result.ok:
        log_erp_server(
            f"{symbols.get('success', '✅')} Backed up {file_path} to {backup_path}",
            "info",
            logger_to_use,
            app_settings,
        )
        return True
    log_erp_server(
        f"{symbols.get('error', '❌')} Failed to backup {file_path} to {backup_path}",
        "error",
        logger_to_use,
        app_settings,
    )
    return False


def remove_path_elevated(
    path: str,
    app_settings: Optional[AppSettings],
    current_logger: Optional[logging.Logger] = None,
) -> CommandResult:
    """Remove a file, symlink or directory tree if present."""
    logger_to_use = current_logger if current_logger else module_logger
    target = Path(path)
    if not (target.exists() or target.is_symlink()):
        log_erp_server(
            f"{_symbols(app_settings).get('info', 'ℹ️')} {path} does not exist. Nothing to remove.",
            "debug",
            logger_to_use,
            app_settings,
        )
        return CommandResult(command=f"rm -rf {path}", exit_code=0)
    return run_elevated_command(
        ["rm", "-rf", path], app_settings, current_logger=logger_to_use
    )
