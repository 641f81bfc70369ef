# installer/components/smoke_test/smoke_test_installer.py
# -*- coding: utf-8 -*-
"""
End-of-run verification that the site answers over HTTP.
"""

import re
from pathlib import Path
from typing import List

from common.command_utils import CommandResult
from common.file_utils import write_file_elevated
from installer.base_component import BaseComponent
from modular.context import RunContext
from modular.probes import http_contains
from modular.step import CheckResult, FunctionAction, Probe, RetryPolicy, Step

HOSTS_FILE = "/etc/hosts"


def hosts_entry_present(site_name: str, hosts_file: str = HOSTS_FILE) -> Probe:
    pattern = re.compile(rf"^\s*[0-9a-fA-F.:]+\s+(.*\s)?{re.escape(site_name)}(\s|$)", re.MULTILINE)

    def probe(ctx: RunContext) -> CheckResult:
        try:
            content = Path(hosts_file).read_text(encoding="utf-8")
        except OSError as e:
            return CheckResult.check_failed(f"cannot read {hosts_file}: {e}")
        if pattern.search(content):
            return CheckResult.satisfied(f"{site_name} resolves via {hosts_file}")
        return CheckResult.unsatisfied(f"{site_name} missing from {hosts_file}")

    return probe


def _wait_for_site(ctx: RunContext) -> CommandResult:
    return CommandResult(command="wait for site", exit_code=0)


class SmokeTestComponent(BaseComponent):
    """
    Maps the site name to the loopback address and checks that the
    homepage contains the expected marker.
    """

    metadata = {"description": "HTTP smoke test"}

    def _add_hosts_entry(self, ctx: RunContext) -> CommandResult:
        return write_file_elevated(
            HOSTS_FILE,
            f"127.0.0.1 {ctx.site_name}\n",
            ctx.app_settings,
            append=True,
            current_logger=ctx.logger,
        )

    def steps(self) -> List[Step]:
        site = self.params.site_name or ""
        smoke = self.app_settings.smoke_test
        return [
            Step(
                name="site-hosts-entry",
                description=f"Resolve {site} locally",
                precondition=hosts_entry_present(site),
                action=FunctionAction(
                    self._add_hosts_entry, description=f"append {site} to {HOSTS_FILE}"
                ),
                postcondition=hosts_entry_present(site),
                retry_policy=RetryPolicy(max_attempts=1, backoff_seconds=0),
                critical=False,
            ),
            Step(
                name="smoke-test",
                description=f"Check that the site serves '{smoke.marker}'",
                action=FunctionAction(_wait_for_site, description="wait for site"),
                postcondition=http_contains(
                    lambda ctx: smoke.url_template.format(site_name=ctx.site_name),
                    smoke.marker,
                    timeout=smoke.request_timeout_seconds,
                ),
                retry_policy=RetryPolicy(
                    max_attempts=smoke.max_attempts,
                    backoff_seconds=smoke.backoff_seconds,
                ),
            ),
        ]
