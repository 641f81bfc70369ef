# installer/components/prerequisites/prerequisites_installer.py
# -*- coding: utf-8 -*-
"""
Core system prerequisites required by every later step.

This module provides the PrerequisitesComponent, which refreshes the package
index, optionally upgrades the system and installs the base toolchain. It
serves as a foundational "Stage 0" for the installation process.
"""

from typing import List

from installer.base_component import APT_ENV, BaseComponent
from modular.probes import all_of, commands_exist, packages_installed
from modular.step import Command, CommandAction, RetryPolicy, Step


def apt_get(*args: str) -> Command:
    """An elevated, non-interactive apt-get invocation."""
    return Command(["apt-get", *args], elevate=True, env=APT_ENV)


REPAIR_COMMAND = apt_get("install", "-f", "-y")


class PrerequisitesComponent(BaseComponent):
    """
    Installer for core system prerequisites: Python toolchain, git, redis,
    nginx, MariaDB, supervisor and the fonts the PDF renderer needs.
    """

    metadata = {"description": "Core system packages"}

    def steps(self) -> List[Step]:
        packages = list(self.app_settings.system_packages)
        steps = [
            Step(
                name="apt-update",
                description="Refresh the package index",
                action=CommandAction(
                    apt_get("update"), description="apt-get update"
                ),
                retry_policy=RetryPolicy(max_attempts=3, backoff_seconds=5),
            )
        ]
        if self.app_settings.upgrade_packages:
            steps.append(
                Step(
                    name="apt-upgrade",
                    description="Upgrade installed packages",
                    action=CommandAction(
                        apt_get("upgrade", "-y"), description="apt-get upgrade -y"
                    ),
                    fallback_action=CommandAction(
                        REPAIR_COMMAND,
                        apt_get("upgrade", "-y"),
                        description="apt-get install -f -y, then upgrade again",
                    ),
                    retry_policy=self.default_retry_policy(),
                )
            )
        steps.append(
            Step(
                name="system-prerequisites",
                description="Install the base toolchain and services",
                precondition=packages_installed(packages),
                action=CommandAction(
                    apt_get("install", "-y", *packages),
                    description=f"apt-get install -y ({len(packages)} packages)",
                ),
                fallback_action=CommandAction(
                    REPAIR_COMMAND,
                    apt_get("install", "-y", *packages),
                    description="apt-get install -f -y, then install again",
                ),
                postcondition=all_of(
                    packages_installed(packages),
                    commands_exist(self.app_settings.required_commands),
                ),
                retry_policy=self.default_retry_policy(),
            )
        )
        return steps
