# common/command_utils.py
# -*- coding: utf-8 -*-
"""
Utilities for executing shell commands and logging their output.

Commands never raise on a non-zero exit status: callers inspect the
returned CommandResult instead.
"""

import getpass
import logging
import os
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from setup.config_models import SYMBOLS_DEFAULT, AppSettings

module_logger = logging.getLogger(__name__)

TIMED_OUT_EXIT_CODE: int = 124
COMMAND_NOT_FOUND_EXIT_CODE: int = 127


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a single external command."""

    command: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.timed_out

    @property
    def output(self) -> str:
        """Combined stdout/stderr, stripped."""
        parts = [p.strip() for p in (self.stdout, self.stderr) if p and p.strip()]
        return "\n".join(parts)


def log_erp_server(
    message: str,
    level: str = "info",
    current_logger: Optional[logging.Logger] = None,
    app_settings: Optional[AppSettings] = None,
    exc_info: bool = False,
) -> None:
    """
    Logs messages to a provisioner logger at a defined logging level.

    Args:
        message (str): The log message to be recorded.
        level (str): The severity level of the log message. Defaults to "info". Common options
            include "debug", "info", "success", "warning", "error", and "critical".
        current_logger (Optional[logging.Logger]): A logger instance to use for logging. If not provided,
            a module-level logger will be used.
        app_settings (Optional[AppSettings]): Optional application settings that can influence logging behavior.
        exc_info (bool): Indicator to include exception details in the log. By default, this is set to False.
    """
    effective_logger = current_logger if current_logger else module_logger

    if level == "warning":
        effective_logger.warning(message, exc_info=exc_info)
    elif level == "error":
        effective_logger.error(message, exc_info=exc_info)
    elif level == "critical":
        effective_logger.critical(message, exc_info=exc_info)
    elif level == "debug":
        effective_logger.debug(message, exc_info=exc_info)
    else:
        effective_logger.info(message, exc_info=exc_info)


def _symbols(app_settings: Optional[AppSettings]) -> Dict[str, str]:
    return (
        app_settings.symbols
        if app_settings and app_settings.symbols
        else SYMBOLS_DEFAULT
    )


def _get_elevated_command_prefix(
    env: Optional[Dict[str, str]] = None,
) -> List[str]:
    """
    Determines the command prefix that ensures elevated privileges when required.

    Returns an empty list when the process is already root. Otherwise returns
    ["sudo"], forwarding any explicitly passed environment keys with
    --preserve-env so they survive the privilege switch.
    """
    if os.geteuid() == 0:
        return []
    prefix = ["sudo"]
    if env:
        prefix.append(f"--preserve-env={','.join(sorted(env))}")
    return prefix


def _to_display(command: Union[List[str], str]) -> str:
    if isinstance(command, str):
        return command
    return shlex.join(command)


def run_command(
    command: Union[List[str], str],
    app_settings: Optional[AppSettings],
    timeout: Optional[float] = None,
    shell: bool = False,
    cmd_input: Optional[str] = None,
    current_logger: Optional[logging.Logger] = None,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    quiet: bool = False,
) -> CommandResult:
    """
    Executes a system command and captures its output.

    Args:
        command: The command to execute, as an argv list or a shell string.
        app_settings: Optional application settings (symbols, default timeout).
        timeout: Seconds before the child is killed. Defaults to
            app_settings.command_timeout_seconds when settings are given.
        shell: Run the command through /bin/sh.
        cmd_input: Text fed to the command's standard input. Never logged.
        current_logger: Logger to use for logging details.
        cwd: Working directory for the child.
        env: Extra environment variables merged over the current environment.
        quiet: Log the invocation at debug level only (used by probes).

    Returns:
        CommandResult: exit code and captured streams. A timeout yields
        TIMED_OUT_EXIT_CODE with timed_out=True; a missing binary yields
        COMMAND_NOT_FOUND_EXIT_CODE.
    """
    effective_logger = current_logger if current_logger else module_logger
    symbols = _symbols(app_settings)
    if timeout is None and app_settings is not None:
        timeout = app_settings.command_timeout_seconds

    if shell and isinstance(command, list):
        command_to_run: Union[List[str], str] = " ".join(command)
    elif not shell and isinstance(command, str):
        command_to_run = shlex.split(command)
    else:
        command_to_run = command
    command_str = _to_display(command_to_run)

    log_erp_server(
        f"{symbols.get('gear', '⚙️')} Executing: {command_str} {f'(in {cwd})' if cwd else ''}".rstrip(),
        "debug" if quiet else "info",
        effective_logger,
        app_settings,
    )

    child_env = None
    if env:
        child_env = dict(os.environ)
        child_env.update(env)

    try:
        completed = subprocess.run(
            command_to_run,
            shell=shell,
            capture_output=True,
            text=True,
            input=cmd_input,
            cwd=cwd,
            env=child_env,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        log_erp_server(
            f"{symbols.get('error', '❌')} Command `{command_str}` timed out after {timeout}s.",
            "error",
            effective_logger,
            app_settings,
        )
        return CommandResult(
            command=command_str,
            exit_code=TIMED_OUT_EXIT_CODE,
            stdout=_decode(e.stdout),
            stderr=_decode(e.stderr),
            timed_out=True,
        )
    except FileNotFoundError as e:
        log_erp_server(
            f"{symbols.get('error', '❌')} Command not found: {e.filename}. Ensure it's installed and in PATH.",
            "debug" if quiet else "error",
            effective_logger,
            app_settings,
        )
        return CommandResult(
            command=command_str,
            exit_code=COMMAND_NOT_FOUND_EXIT_CODE,
            stderr=f"command not found: {e.filename}",
        )
    except OSError as e:
        log_erp_server(
            f"{symbols.get('error', '❌')} Could not start `{command_str}`: {e}",
            "error",
            effective_logger,
            app_settings,
        )
        return CommandResult(
            command=command_str,
            exit_code=COMMAND_NOT_FOUND_EXIT_CODE,
            stderr=str(e),
        )

    result = CommandResult(
        command=command_str,
        exit_code=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
    )
    if not quiet:
        if result.stdout.strip():
            log_erp_server(
                f"   stdout: {result.stdout.strip()}",
                "debug",
                effective_logger,
                app_settings,
            )
        if result.stderr.strip():
            log_erp_server(
                f"   stderr: {result.stderr.strip()}",
                "debug" if result.ok else "warning",
                effective_logger,
                app_settings,
            )
        if not result.ok:
            log_erp_server(
                f"{symbols.get('error', '❌')} Command `{command_str}` failed (rc {result.exit_code}).",
                "warning",
                effective_logger,
                app_settings,
            )
    return result


def _decode(stream: Union[bytes, str, None]) -> str:
    if stream is None:
        return ""
    if isinstance(stream, bytes):
        return stream.decode("utf-8", errors="replace")
    return stream


def run_elevated_command(
    command: Union[List[str], str],
    app_settings: Optional[AppSettings],
    timeout: Optional[float] = None,
    shell: bool = False,
    cmd_input: Optional[str] = None,
    current_logger: Optional[logging.Logger] = None,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    quiet: bool = False,
) -> CommandResult:
    """
    Executes a command with elevated permissions for this invocation only.

    Shell strings are wrapped as `bash -c` so the whole pipeline runs
    elevated rather than just its first word.
    """
    prefix = _get_elevated_command_prefix(env)
    if shell:
        shell_str = command if isinstance(command, str) else " ".join(command)
        argv = prefix + ["bash", "-c", shell_str]
    elif isinstance(command, str):
        argv = prefix + shlex.split(command)
    else:
        argv = prefix + list(command)
    return run_command(
        argv,
        app_settings,
        timeout=timeout,
        shell=False,
        cmd_input=cmd_input,
        current_logger=current_logger,
        cwd=cwd,
        env=env,
        quiet=quiet,
    )


def run_command_as(
    account: str,
    command: Union[List[str], str],
    app_settings: Optional[AppSettings],
    timeout: Optional[float] = None,
    cmd_input: Optional[str] = None,
    current_logger: Optional[logging.Logger] = None,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    quiet: bool = False,
) -> CommandResult:
    """
    Executes a command as another system account through a login shell.

    When the target account is the invoking user the command runs directly.
    Otherwise it is executed via `sudo -u <account> -H bash -lc`, changing to
    `cwd` inside that shell so the account's own permissions apply.
    """
    shell_str = command if isinstance(command, str) else shlex.join(command)
    if account == getpass.getuser():
        return run_command(
            ["bash", "-lc", shell_str],
            app_settings,
            timeout=timeout,
            cmd_input=cmd_input,
            current_logger=current_logger,
            cwd=cwd,
            env=env,
            quiet=quiet,
        )

    if cwd:
        shell_str = f"cd {shlex.quote(cwd)} && {shell_str}"
    argv = ["sudo", "-u", account, "-H"]
    if env:
        argv.append(f"--preserve-env={','.join(sorted(env))}")
    argv += ["bash", "-lc", shell_str]
    return run_command(
        argv,
        app_settings,
        timeout=timeout,
        cmd_input=cmd_input,
        current_logger=current_logger,
        env=env,
        quiet=quiet,
    )


def command_exists(command_name: str) -> bool:
    """
    Check if a command exists in the system's PATH.

    /usr/local/bin is searched as well since pip and npm global installs
    land there and may not be on a minimal PATH.
    """
    search_path = os.environ.get("PATH", "")
    if "/usr/local/bin" not in search_path.split(os.pathsep):
        search_path = os.pathsep.join(filter(None, [search_path, "/usr/local/bin"]))
    return shutil.which(command_name, path=search_path) is not None


def check_package_installed(
    package_name: str,
    app_settings: Optional[AppSettings],
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """
    Checks if a given package is installed on the system using `dpkg-query`.

    Returns:
        bool: True if dpkg reports "install ok installed" for the package.
    """
    result = run_command(
        ["dpkg-query", "-W", "-f=${Status}", package_name],
        app_settings,
        current_logger=current_logger,
        quiet=True,
    )
    return result.ok and "install ok installed" in result.stdout
