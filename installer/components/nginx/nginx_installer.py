"""
Nginx site configuration module.

Renders the site file, enables it and validates the whole configuration
with `nginx -t` before it can go live.
"""

from typing import List

from common.command_utils import CommandResult, log_erp_server
from common.file_utils import (
    backup_file,
    remove_path_elevated,
    write_file_elevated,
)
from installer.base_component import BaseComponent
from installer.components.nginx.nginx_site_template import NginxSiteTemplate
from modular.context import RunContext
from modular.probes import all_of, file_has_content, path_exists
from modular.step import FunctionAction, Step


class NginxComponent(BaseComponent):
    """
    Configurator for the Nginx reverse proxy in front of the bench.
    """

    metadata = {"description": "Nginx reverse proxy site configuration"}

    @property
    def available_path(self) -> str:
        return f"{self.app_settings.nginx.sites_available_dir}/{self.params.site_name}"

    @property
    def enabled_path(self) -> str:
        return f"{self.app_settings.nginx.sites_enabled_dir}/{self.params.site_name}"

    def template(self) -> NginxSiteTemplate:
        return NginxSiteTemplate.from_settings(
            self.params.site_name or "", self.bench_dir, self.app_settings.nginx
        )

    def apply_site_config(self, ctx: RunContext) -> CommandResult:
        """
        Write, enable and test the site file. When `nginx -t` fails the
        enable symlink is removed again.
        """
        symbols = ctx.app_settings.symbols
        if not backup_file(self.available_path, ctx.app_settings, ctx.logger):
            return CommandResult(
                command=f"backup {self.available_path}",
                exit_code=1,
                stderr="could not back up the existing site file",
            )
        result = write_file_elevated(
            self.available_path,
            self.template().render(),
            ctx.app_settings,
            mode="0644",
            current_logger=ctx.logger,
        )
        if not result.ok:
            return result

        result = ctx.run_elevated(
            ["ln", "-sfn", self.available_path, self.enabled_path]
        )
        if not result.ok:
            return result

        test = ctx.run_elevated(["nginx", "-t"])
        if not test.ok:
            log_erp_server(
                f"{symbols.get('error', '❌')} Nginx configuration test failed. Disabling {self.enabled_path}.",
                "error",
                ctx.logger,
                ctx.app_settings,
            )
            remove_path_elevated(self.enabled_path, ctx.app_settings, ctx.logger)
            return test

        log_erp_server(
            f"{symbols.get('success', '✅')} Nginx configuration test passed.",
            "info",
            ctx.logger,
            ctx.app_settings,
        )
        return test

    def steps(self) -> List[Step]:
        rendered = all_of(
            file_has_content(self.available_path, lambda ctx: self.template().render()),
            path_exists(self.enabled_path),
        )
        return [
            Step(
                name="nginx-site",
                description=f"Configure nginx for {self.params.site_name}",
                precondition=rendered,
                action=FunctionAction(
                    self.apply_site_config,
                    description=f"render {self.available_path}, enable and nginx -t",
                ),
                postcondition=rendered,
                retry_policy=self.default_retry_policy(),
            )
        ]
