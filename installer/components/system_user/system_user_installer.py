# installer/components/system_user/system_user_installer.py
# -*- coding: utf-8 -*-
"""
System account that owns the bench, plus the sudo rights it needs.
"""

import re
from typing import List

from common.command_utils import CommandResult, log_erp_server
from common.file_utils import remove_path_elevated, write_file_elevated
from common.system_utils import user_exists, user_in_group
from installer.base_component import BaseComponent
from modular.context import RunContext
from modular.probes import command_output_matches, file_has_content
from modular.step import (
    CheckResult,
    Command,
    CommandAction,
    FunctionAction,
    Probe,
    Step,
)

SUDOERS_DIR = "/etc/sudoers.d"
SUPERVISORCTL_PATH = "/usr/bin/supervisorctl"


def account_exists(account: str) -> Probe:
    def probe(ctx: RunContext) -> CheckResult:
        if user_exists(account):
            return CheckResult.satisfied(f"user {account} exists")
        return CheckResult.unsatisfied(f"user {account} does not exist")

    return probe


def account_in_group(account: str, group: str) -> Probe:
    def probe(ctx: RunContext) -> CheckResult:
        if user_in_group(account, group):
            return CheckResult.satisfied(f"{account} is in {group}")
        return CheckResult.unsatisfied(f"{account} is not in {group}")

    return probe


def password_is_set(account: str) -> Probe:
    """Satisfied when `passwd -S` reports a usable password (status P)."""
    return command_output_matches(
        Command(["passwd", "-S", account], elevate=True),
        rf"^{re.escape(account)} P\b",
    )


class SystemUserComponent(BaseComponent):
    """
    Creates the bench account (when requested) and grants it passwordless
    control over supervisor.
    """

    metadata = {"description": "Frappe bench system account"}

    @property
    def sudoers_path(self) -> str:
        return f"{SUDOERS_DIR}/{self.system_user}"

    def sudoers_content(self) -> str:
        return f"{self.system_user} ALL=(ALL) NOPASSWD: {SUPERVISORCTL_PATH}\n"

    def _install_sudoers(self, ctx: RunContext) -> CommandResult:
        result = write_file_elevated(
            self.sudoers_path,
            self.sudoers_content(),
            ctx.app_settings,
            mode="0440",
            current_logger=ctx.logger,
        )
        if not result.ok:
            return result
        check = ctx.run_elevated(["visudo", "-cf", self.sudoers_path])
        if not check.ok:
            log_erp_server(
                f"{ctx.app_settings.symbols.get('error', '❌')} visudo rejected {self.sudoers_path}; removing it.",
                "error",
                ctx.logger,
                ctx.app_settings,
            )
            remove_path_elevated(self.sudoers_path, ctx.app_settings, ctx.logger)
        return check

    def steps(self) -> List[Step]:
        account = self.system_user
        policy = self.default_retry_policy()
        steps: List[Step] = []
        if self.params.create_new_user:
            steps += [
                Step(
                    name="system-account",
                    description=f"Create system user {account}",
                    precondition=account_exists(account),
                    action=CommandAction(
                        Command(
                            ["adduser", "--disabled-login", "--gecos", "", account],
                            elevate=True,
                        ),
                        description="adduser --disabled-login",
                    ),
                    postcondition=account_exists(account),
                    retry_policy=policy,
                ),
                Step(
                    name="system-account-password",
                    description=f"Set the password of {account}",
                    precondition=password_is_set(account),
                    action=CommandAction(
                        Command(
                            ["chpasswd"],
                            elevate=True,
                            input=lambda ctx: f"{account}:{ctx.secret('system_user_password')}\n",
                        ),
                        description="chpasswd",
                    ),
                    retry_policy=policy,
                ),
                Step(
                    name="system-account-sudo",
                    description=f"Add {account} to the sudo group",
                    precondition=account_in_group(account, "sudo"),
                    action=CommandAction(
                        Command(["usermod", "-aG", "sudo", account], elevate=True),
                        description="usermod -aG sudo",
                    ),
                    postcondition=account_in_group(account, "sudo"),
                    retry_policy=policy,
                ),
            ]
        steps.append(
            Step(
                name="supervisor-sudoers",
                description=f"Allow {account} to run supervisorctl without a password",
                precondition=file_has_content(
                    self.sudoers_path, lambda ctx: self.sudoers_content()
                ),
                action=FunctionAction(
                    self._install_sudoers,
                    description=f"write {self.sudoers_path} and validate with visudo",
                ),
                retry_policy=policy,
            )
        )
        return steps
