# installer/components/cleanup/cleanup_installer.py
# -*- coding: utf-8 -*-
"""
Removes leftovers of an earlier installation before provisioning again.
"""

from pathlib import Path
from typing import List

from common.command_utils import CommandResult, log_erp_server
from common.file_utils import remove_path_elevated
from installer.base_component import BaseComponent
from modular.context import RunContext
from modular.step import CheckResult, FunctionAction, Step


class CleanupComponent(BaseComponent):
    """
    Deletes the bench directory, the bench tool's state directory and the
    site's nginx files. Only enabled with `clean_previous_install`.
    """

    metadata = {"description": "Removal of a previous installation"}

    def is_enabled(self) -> bool:
        return self.app_settings.clean_previous_install

    def leftover_paths(self) -> List[str]:
        nginx = self.app_settings.nginx
        paths = [self.bench_dir, f"{self.home_dir}/.bench"]
        if self.params.site_name:
            paths += [
                f"{nginx.sites_enabled_dir}/{self.params.site_name}",
                f"{nginx.sites_available_dir}/{self.params.site_name}",
            ]
        return paths

    def _nothing_left(self, ctx: RunContext) -> CheckResult:
        present = [
            p for p in self.leftover_paths() if Path(p).exists() or Path(p).is_symlink()
        ]
        if present:
            return CheckResult.unsatisfied(f"leftovers present: {', '.join(present)}")
        return CheckResult.satisfied("no previous installation found")

    def _remove_leftovers(self, ctx: RunContext) -> CommandResult:
        result = CommandResult(command="cleanup", exit_code=0)
        for path in self.leftover_paths():
            log_erp_server(
                f"{ctx.app_settings.symbols.get('warning', '⚠️')} Removing {path}",
                "warning",
                ctx.logger,
                ctx.app_settings,
            )
            result = remove_path_elevated(path, ctx.app_settings, ctx.logger)
            if not result.ok:
                return result
        return result

    def steps(self) -> List[Step]:
        return [
            Step(
                name="cleanup-previous-install",
                description="Remove the previous bench and site configuration",
                precondition=self._nothing_left,
                action=FunctionAction(
                    self._remove_leftovers,
                    description="rm -rf bench directory, ~/.bench and nginx site files",
                ),
                postcondition=self._nothing_left,
                retry_policy=self.default_retry_policy(),
            )
        ]
