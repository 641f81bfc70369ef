# setup/cli_handler.py
# -*- coding: utf-8 -*-
"""
Handles Command Line Interface (CLI) interactions for the provisioner:
collecting run parameters and displaying the effective configuration.
"""

import datetime
import getpass
import logging
import queue
import re
import threading
from typing import Callable, Optional

from pydantic import SecretStr

from common.command_utils import log_erp_server
from common.logging_config import SecretRedactionFilter
from common.network_utils import is_valid_hostname
from common.system_utils import current_user, user_exists
from modular.errors import EmptyInputError, InvalidInputError, MismatchError
from setup.config_models import AppSettings, RunParameters

module_logger = logging.getLogger(__name__)

USERNAME_PATTERN = re.compile(r"^[a-z_][a-z0-9_-]{0,31}$")

Reader = Callable[[str], str]


class TimedLineReader:
    """
    Reads one line at a time with an optional timeout.

    At most one reader thread is ever blocked on the terminal. When a read
    times out its thread stays pending, and the next read waits on that
    thread's result instead of starting a second reader.
    """

    def __init__(self) -> None:
        self._lines: "queue.Queue[str]" = queue.Queue()
        self._pending = False

    def _read_into_queue(self, reader: Reader, prompt: str) -> None:
        try:
            line = reader(prompt)
        except EOFError:
            line = ""
        self._lines.put(line)

    def read(
        self, reader: Reader, prompt: str, timeout_seconds: Optional[float]
    ) -> Optional[str]:
        """
        Returns:
            The line read, "" on EOF, or None if the wait timed out.
        """
        if not self._pending:
            if not timeout_seconds:
                try:
                    return reader(prompt)
                except EOFError:
                    return ""
            self._pending = True
            threading.Thread(
                target=self._read_into_queue, args=(reader, prompt), daemon=True
            ).start()
        else:
            print(prompt, end="", flush=True)

        try:
            line = self._lines.get(timeout=timeout_seconds or None)
        except queue.Empty:
            return None
        self._pending = False
        return line


class ParameterCollector:
    """
    Collects run parameters interactively or from the environment.

    Sensitive values are registered with the redaction filter the moment
    they are read and are only ever logged as "value provided" or
    "value missing".
    """

    def __init__(
        self,
        app_settings: AppSettings,
        redaction_filter: SecretRedactionFilter,
        logger: Optional[logging.Logger] = None,
        input_func: Reader = input,
        secret_input_func: Reader = getpass.getpass,
        interactive: bool = True,
    ):
        self.app_settings = app_settings
        self.redaction_filter = redaction_filter
        self.logger = logger or module_logger
        self.input_func = input_func
        self.secret_input_func = secret_input_func
        self.interactive = interactive
        self.max_attempts = app_settings.input_max_attempts
        self.timeout_seconds = app_settings.input_timeout_seconds
        self.line_reader = TimedLineReader()

    def _log(self, message: str, level: str = "info") -> None:
        log_erp_server(message, level, self.logger, self.app_settings)

    def collect(
        self,
        prompt: str,
        sensitive: bool = False,
        confirm: bool = False,
        timeout_seconds: Optional[float] = None,
    ) -> str:
        """
        Prompt for a value until a non-empty one is given.

        Raises:
            EmptyInputError: No value after the configured number of attempts
                (empty entries and timeouts both count), or the confirmation
                timed out.
            MismatchError: `confirm` is set and the confirmation differs.
        """
        symbols = self.app_settings.symbols
        if not self.interactive:
            self._log(
                f"{symbols.get('error', '❌')} {prompt}: value missing (non-interactive mode).",
                "error",
            )
            raise EmptyInputError(f"{prompt} was not provided")

        reader = self.secret_input_func if sensitive else self.input_func
        timeout = timeout_seconds or self.timeout_seconds
        for attempt in range(1, self.max_attempts + 1):
            value = self.line_reader.read(reader, f"Enter {prompt}: ", timeout)
            if value is None:
                self._log(
                    f"{symbols.get('warning', '⚠️')} No input for {prompt} within {timeout}s. Attempt {attempt}/{self.max_attempts}.",
                    "warning",
                )
                continue
            if not sensitive:
                value = value.strip()
            if not value.strip():
                self._log(
                    f"{symbols.get('warning', '⚠️')} {prompt} cannot be empty. Attempt {attempt}/{self.max_attempts}.",
                    "warning",
                )
                continue

            if sensitive:
                self.redaction_filter.register(value)
            if confirm:
                again = self.line_reader.read(reader, f"Confirm {prompt}: ", timeout)
                if again is None:
                    self._log(
                        f"{symbols.get('error', '❌')} No confirmation for {prompt} within {timeout}s.",
                        "error",
                    )
                    raise EmptyInputError(
                        f"No confirmation for {prompt} within {timeout}s"
                    )
                if not sensitive:
                    again = again.strip()
                if again != value:
                    self._log(
                        f"{symbols.get('error', '❌')} {prompt} entries do not match.",
                        "error",
                    )
                    raise MismatchError(f"{prompt} entries do not match")

            if sensitive:
                self._log(f"{prompt}: value provided.")
            else:
                self._log(f"{prompt} provided: {value}")
            return value

        self._log(
            f"{symbols.get('error', '❌')} {prompt}: value missing after {self.max_attempts} attempts.",
            "error",
        )
        raise EmptyInputError(
            f"Failed to provide {prompt} after {self.max_attempts} attempts"
        )

    def collect_yes_no(self, prompt: str, default: bool = True) -> bool:
        """Ask a y/n question; empty input or EOF takes the default."""
        if not self.interactive:
            return default
        suffix = "(Y/n)" if default else "(y/N)"
        answer = self.line_reader.read(
            self.input_func, f"{prompt} {suffix}: ", self.timeout_seconds
        )
        if not answer or not answer.strip():
            return default
        return answer.strip().lower() in ("y", "yes")

    def _secret(self, current: Optional[SecretStr], prompt: str, confirm: bool) -> SecretStr:
        if current is not None and current.get_secret_value():
            self.redaction_filter.register(current.get_secret_value())
            self._log(f"{prompt}: value provided (environment).")
            return current
        return SecretStr(self.collect(prompt, sensitive=True, confirm=confirm))

    def collect_run_parameters(self, params: RunParameters) -> RunParameters:
        """
        Fill in every missing run parameter and validate the result.

        Raises:
            InputError: A value is missing, mismatched, or malformed.
        """
        if "create_new_user" not in params.model_fields_set:
            params.create_new_user = self.collect_yes_no(
                "Do you want to create a new user for Frappe Bench?",
                default=True,
            )
        self._log(f"Create new user: {params.create_new_user}")

        if params.create_new_user:
            if not params.system_user:
                params.system_user = self.collect("Frappe Bench username")
            if not USERNAME_PATTERN.match(params.system_user):
                raise InvalidInputError(
                    f"'{params.system_user}' is not a valid account name"
                )
            existing = user_exists(params.system_user)
            label = (
                f"password for existing user {params.system_user}"
                if existing
                else f"password for new user {params.system_user}"
            )
            params.system_user_password = self._secret(
                params.system_user_password, label, confirm=not existing
            )
        else:
            params.system_user = current_user()
            params.system_user_password = None
            self._log(
                f"Using current user {params.system_user} for Frappe Bench setup."
            )

        params.db_root_password = self._secret(
            params.db_root_password,
            "MariaDB root password to be set or existing password",
            confirm=False,
        )
        params.admin_password = self._secret(
            params.admin_password,
            "Administrator password for ERPNext",
            confirm=True,
        )

        if not params.site_name:
            params.site_name = self.collect(
                "site name for ERPNext (e.g., erp.mysite.com)"
            )
        if not is_valid_hostname(params.site_name):
            raise InvalidInputError(
                f"Site name '{params.site_name}' is not a valid hostname"
            )
        return params


def cli_prompt_for_confirmation(
    prompt_message: str,
    app_settings: AppSettings,
    current_logger_instance: Optional[logging.Logger] = None,
) -> bool:
    """
    Prompt the user to confirm an action. Defaults to "No" on EOF.
    """
    logger_to_use = (
        current_logger_instance if current_logger_instance else module_logger
    )
    symbols = app_settings.symbols
    try:
        user_input = (
            input(f"   {symbols.get('info', 'ℹ️')} {prompt_message} (y/N): ")
            .strip()
            .lower()
        )
        return user_input == "y"
    except EOFError:
        log_erp_server(
            f"{symbols.get('warning', '!')} No user input (EOF), defaulting to 'N' for prompt: '{prompt_message}'",
            "warning",
            logger_to_use,
            app_settings,
        )
        return False


def view_configuration(
    app_config: AppSettings,
    params: Optional[RunParameters] = None,
    current_logger: Optional[logging.Logger] = None,
) -> str:
    """
    Displays the current effective configuration values. Secrets are shown
    only as [SET] / [NOT SET].

    Returns:
        The rendered configuration text.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_config.symbols

    def secret_state(value: Optional[SecretStr]) -> str:
        return "[SET]" if value is not None and value.get_secret_value() else "[NOT SET]"

    config_text = f"{symbols.get('info', 'ℹ️')} Current effective configuration values (CLI > YAML > ENV > Defaults):\n\n"
    config_text += f"  Log Directory:                 {app_config.log_dir}\n"
    config_text += f"  Log Format:                    {app_config.log_format}\n"
    config_text += f"  Command Timeout (s):           {app_config.command_timeout_seconds}\n"
    config_text += f"  Run Timeout (s):               {app_config.run_timeout_seconds or 'unlimited'}\n"
    config_text += f"  Upgrade Packages:              {app_config.upgrade_packages}\n"
    config_text += f"  Clean Previous Install:        {app_config.clean_previous_install}\n"
    config_text += f"  Retry Policy:                  {app_config.retry.max_attempts} attempts, {app_config.retry.backoff_seconds}s backoff\n\n"

    config_text += f"  Node.js Major Version:         {app_config.nodejs.major_version}\n"
    config_text += f"  wkhtmltopdf:                   {app_config.wkhtmltopdf.version} ({app_config.wkhtmltopdf.build_tag})\n"
    config_text += f"  MariaDB Charset Config:        {app_config.mariadb.charset_conf_path}\n"
    config_text += f"  Frappe Branch:                 {app_config.bench.frappe_branch}\n"
    config_text += "  Apps:\n"
    for app in app_config.bench.apps:
        branch = f" --branch {app.branch}" if app.branch else ""
        install = "install" if app.install else "fetch only"
        config_text += f"    {app.app_name:<12} get-app{branch} {app.fetch_argument} ({install})\n"
    config_text += f"  Nginx Sites Available:         {app_config.nginx.sites_available_dir}\n"
    config_text += f"  Listen Port:                   {app_config.nginx.listen_port}\n"
    config_text += f"  Smoke Test:                    {app_config.smoke_test.url_template} contains '{app_config.smoke_test.marker}'\n"

    if params is not None:
        config_text += "\n  Run Parameters:\n"
        config_text += f"    Site Name:                   {params.site_name or '[NOT SET]'}\n"
        config_text += f"    System User:                 {params.system_user or '[NOT SET]'}\n"
        config_text += f"    Create New User:             {params.create_new_user}\n"
        config_text += f"    System User Password:        {secret_state(params.system_user_password)}\n"
        config_text += f"    DB Root Password:            {secret_state(params.db_root_password)}\n"
        config_text += f"    Admin Password:              {secret_state(params.admin_password)}\n"

    config_text += f"\n  Timestamp (current view):      {datetime.datetime.now().strftime('%Y-%m-%d-%H%M%S')}\n"

    log_erp_server(
        "Displaying current configuration:", "info", logger_to_use, app_config
    )
    log_erp_server(f"\n{config_text}\n", "info", logger_to_use, app_config)
    return config_text
