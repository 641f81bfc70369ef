# installer/components/bench/bench_installer.py
# -*- coding: utf-8 -*-
"""
Frappe bench tool, bench bootstrap, site creation and application install.

Everything except the bench CLI install and the production setup runs as
the bench account, never as the installer.
"""

import json
import re
from typing import Any, List, Optional

from installer.base_component import BaseComponent
from modular.context import RunContext
from modular.probes import command_output_matches, commands_exist, path_exists
from modular.step import CheckResult, Command, CommandAction, Probe, Step
from setup.config_models import AppSpec


def site_config_value(config_path: str, key: str, expected: Any) -> Probe:
    """Satisfied when a bench JSON config file holds `key == expected`."""

    def probe(ctx: RunContext) -> CheckResult:
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return CheckResult.unsatisfied(f"{config_path} does not exist")
        except (OSError, json.JSONDecodeError) as e:
            return CheckResult.check_failed(f"cannot read {config_path}: {e}")
        if data.get(key) == expected:
            return CheckResult.satisfied(f"{key} = {expected!r}")
        return CheckResult.unsatisfied(f"{key} = {data.get(key)!r}")

    return probe


class BenchComponent(BaseComponent):
    """
    Installs frappe-bench and bootstraps the bench, the site and the
    configured applications.
    """

    metadata = {"description": "Frappe bench and ERPNext site"}

    def as_account(self, argv, cwd: Optional[str] = None, **kwargs) -> Command:
        """A command run as the bench account, by default inside the bench."""
        return Command(
            argv, run_as=self.system_user, cwd=cwd or self.bench_dir, **kwargs
        )

    def _bench_cli_steps(self) -> List[Step]:
        pip_install = [
            "pip3",
            "install",
            *self.app_settings.bench.pip_extra_args,
            "frappe-bench",
        ]
        return [
            Step(
                name="bench-cli",
                description="Install the frappe-bench CLI",
                precondition=commands_exist(["bench"]),
                action=CommandAction(
                    Command(pip_install, elevate=True),
                    description="pip3 install frappe-bench",
                ),
                fallback_action=CommandAction(
                    Command(
                        [
                            "pip3",
                            "install",
                            *self.app_settings.bench.pip_extra_args,
                            "--upgrade",
                            "pip",
                        ],
                        elevate=True,
                    ),
                    Command(pip_install, elevate=True),
                    description="upgrade pip, then pip3 install frappe-bench",
                ),
                postcondition=commands_exist(["bench"]),
                retry_policy=self.default_retry_policy(),
            )
        ]

    def _bootstrap_steps(self) -> List[Step]:
        bench = self.app_settings.bench
        site = self.params.site_name or ""
        policy = self.default_retry_policy()
        frappe_app = f"{self.bench_dir}/apps/frappe"
        site_config = f"{self.bench_dir}/sites/{site}/site_config.json"

        steps = [
            Step(
                name="bench-init",
                description=f"Initialise {self.bench_dir} on {bench.frappe_branch}",
                precondition=path_exists(frappe_app),
                action=CommandAction(
                    self.as_account(
                        [
                            "bench",
                            "init",
                            "--frappe-branch",
                            bench.frappe_branch,
                            bench.bench_dir_name,
                        ],
                        cwd=self.home_dir,
                        timeout=bench.init_timeout_seconds,
                    ),
                    description=f"bench init {bench.bench_dir_name}",
                ),
                postcondition=path_exists(frappe_app),
                retry_policy=policy,
            ),
            Step(
                name="bench-frontend-deps",
                description="Add frontend build packages",
                action=CommandAction(
                    self.as_account(
                        ["yarn", "add", *bench.frontend_packages], cwd=frappe_app
                    ),
                    description=f"yarn add {' '.join(bench.frontend_packages)}",
                ),
                retry_policy=policy,
                critical=False,
            ),
            Step(
                name="bench-yarn-install",
                description="Verify and install frontend dependencies",
                action=CommandAction(
                    self.as_account(["yarn", "install", "--check-files"], cwd=frappe_app),
                    description="yarn install --check-files",
                ),
                retry_policy=policy,
            ),
        ]
        if bench.developer_mode:
            common_config = f"{self.bench_dir}/sites/common_site_config.json"
            steps.append(
                Step(
                    name="bench-developer-mode",
                    description="Enable developer mode",
                    precondition=site_config_value(common_config, "developer_mode", 1),
                    action=CommandAction(
                        self.as_account(
                            ["bench", "set-config", "-g", "developer_mode", "1"]
                        ),
                        description="bench set-config -g developer_mode 1",
                    ),
                    postcondition=site_config_value(common_config, "developer_mode", 1),
                    retry_policy=policy,
                )
            )
        steps.append(
            Step(
                name="site-create",
                description=f"Create site {site}",
                precondition=path_exists(site_config),
                action=CommandAction(
                    self.as_account(
                        lambda ctx: [
                            "bench",
                            "new-site",
                            ctx.site_name,
                            "--mariadb-root-password",
                            ctx.secret("db_root_password"),
                            "--admin-password",
                            ctx.secret("admin_password"),
                        ]
                    ),
                    description=f"bench new-site {site}",
                ),
                postcondition=path_exists(site_config),
                retry_policy=policy,
            )
        )
        steps += [self._get_app_step(app) for app in bench.apps]
        steps += [
            self._install_app_step(app) for app in bench.apps if app.install
        ]
        return steps

    def _get_app_step(self, app: AppSpec) -> Step:
        app_dir = f"{self.bench_dir}/apps/{app.app_name}"
        argv = ["bench", "get-app"]
        if app.branch:
            argv += ["--branch", app.branch]
        argv.append(app.fetch_argument)
        return Step(
            name=f"get-app-{app.app_name}",
            description=f"Fetch {app.app_name}",
            precondition=path_exists(app_dir),
            action=CommandAction(
                self.as_account(argv), description=" ".join(argv)
            ),
            postcondition=path_exists(app_dir),
            retry_policy=self.default_retry_policy(),
        )

    def _install_app_step(self, app: AppSpec) -> Step:
        site = self.params.site_name or ""
        installed = command_output_matches(
            self.as_account(["bench", "--site", site, "list-apps"]),
            rf"^{re.escape(app.app_name)}\b",
            re.MULTILINE,
        )
        return Step(
            name=f"install-app-{app.app_name}",
            description=f"Install {app.app_name} into {site}",
            precondition=installed,
            action=CommandAction(
                self.as_account(["bench", "--site", site, "install-app", app.app_name]),
                description=f"bench --site {site} install-app {app.app_name}",
            ),
            postcondition=installed,
            retry_policy=self.default_retry_policy(),
        )

    def _production_steps(self) -> List[Step]:
        bench_name = self.app_settings.bench.bench_dir_name
        supervisor_conf = f"/etc/supervisor/conf.d/{bench_name}.conf"
        return [
            Step(
                name="bench-production",
                description="Configure supervisor and nginx for production",
                precondition=path_exists(supervisor_conf),
                action=CommandAction(
                    Command(
                        ["bench", "setup", "production", self.system_user, "--yes"],
                        elevate=True,
                        cwd=self.bench_dir,
                    ),
                    description=f"bench setup production {self.system_user}",
                ),
                postcondition=path_exists(supervisor_conf),
                retry_policy=self.default_retry_policy(),
            )
        ]

    def steps(self) -> List[Step]:
        steps = self._bench_cli_steps() + self._bootstrap_steps()
        if self.app_settings.bench.production_setup:
            steps += self._production_steps()
        return steps
