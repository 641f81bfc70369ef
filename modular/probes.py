"""
Reusable, side-effect-free probes for step pre- and postconditions.

Each helper returns a Probe: a callable taking the RunContext and returning
a CheckResult. Probes only observe the system; anything that would change
state belongs in an action.
"""

import re
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence, Union

import requests

from common.command_utils import check_package_installed, command_exists
from common.system_utils import service_is_active
from modular.context import RunContext
from modular.step import CheckResult, Command, Probe


def command_succeeds(command: Command) -> Probe:
    """Satisfied when the command exits zero."""

    def probe(ctx: RunContext) -> CheckResult:
        result = command.execute(ctx)
        if result.timed_out:
            return CheckResult.check_failed(f"'{result.command}' timed out")
        if result.ok:
            return CheckResult.satisfied(f"'{result.command}' succeeded")
        return CheckResult.unsatisfied(
            f"'{result.command}' exited {result.exit_code}"
        )

    return probe


def command_output_matches(
    command: Command,
    pattern: Union[str, Callable[[RunContext], str]],
    flags: int = 0,
) -> Probe:
    """Satisfied when the command exits zero and its output matches `pattern`."""

    def probe(ctx: RunContext) -> CheckResult:
        regex = pattern(ctx) if callable(pattern) else pattern
        result = command.execute(ctx)
        if result.timed_out:
            return CheckResult.check_failed(f"'{result.command}' timed out")
        if not result.ok:
            return CheckResult.unsatisfied(
                f"'{result.command}' exited {result.exit_code}"
            )
        if re.search(regex, result.output, flags):
            return CheckResult.satisfied(f"output matches {regex!r}")
        return CheckResult.unsatisfied(f"output does not match {regex!r}")

    return probe


def path_exists(path: Union[str, Callable[[RunContext], str]]) -> Probe:
    def probe(ctx: RunContext) -> CheckResult:
        target = Path(path(ctx) if callable(path) else path)
        try:
            if target.exists():
                return CheckResult.satisfied(f"{target} exists")
        except PermissionError as e:
            return CheckResult.check_failed(f"cannot stat {target}: {e}")
        return CheckResult.unsatisfied(f"{target} does not exist")

    return probe


def file_has_content(
    path: Union[str, Callable[[RunContext], str]],
    content: Callable[[RunContext], str],
) -> Probe:
    """Satisfied when the file exists with exactly the expected content."""

    def probe(ctx: RunContext) -> CheckResult:
        target = Path(path(ctx) if callable(path) else path)
        try:
            actual = target.read_text(encoding="utf-8")
        except FileNotFoundError:
            return CheckResult.unsatisfied(f"{target} does not exist")
        except OSError as e:
            return CheckResult.check_failed(f"cannot read {target}: {e}")
        if actual == content(ctx):
            return CheckResult.satisfied(f"{target} is up to date")
        return CheckResult.unsatisfied(f"{target} differs from rendered content")

    return probe


def packages_installed(packages: Sequence[str]) -> Probe:
    def probe(ctx: RunContext) -> CheckResult:
        missing = [
            package
            for package in packages
            if not check_package_installed(
                package, ctx.app_settings, current_logger=ctx.logger
            )
        ]
        if missing:
            return CheckResult.unsatisfied(
                f"packages not installed: {', '.join(missing)}"
            )
        return CheckResult.satisfied("all packages installed")

    return probe


def commands_exist(commands: Iterable[str]) -> Probe:
    names = list(commands)

    def probe(ctx: RunContext) -> CheckResult:
        missing = [name for name in names if not command_exists(name)]
        if missing:
            return CheckResult.unsatisfied(
                f"commands not found: {', '.join(missing)}"
            )
        return CheckResult.satisfied("all commands present")

    return probe


def all_of(*probes: Probe) -> Probe:
    """
    Satisfied only when every probe is. The first non-satisfied result is
    returned as-is, so CheckFailed propagates.
    """

    def probe(ctx: RunContext) -> CheckResult:
        for sub_probe in probes:
            result = sub_probe(ctx)
            if not result.is_satisfied:
                return result
        return CheckResult.satisfied()

    return probe


def http_contains(
    url: Union[str, Callable[[RunContext], str]],
    marker: str,
    timeout: float = 10.0,
    session: Optional[requests.Session] = None,
) -> Probe:
    """Satisfied when an HTTP GET against `url` returns a body containing `marker`."""

    def probe(ctx: RunContext) -> CheckResult:
        target = url(ctx) if callable(url) else url
        getter = session.get if session is not None else requests.get
        try:
            response = getter(target, timeout=timeout)
        except requests.RequestException as e:
            return CheckResult.unsatisfied(f"GET {target} failed: {e}")
        if marker in response.text:
            return CheckResult.satisfied(
                f"GET {target} returned {response.status_code} containing {marker!r}"
            )
        return CheckResult.unsatisfied(
            f"GET {target} returned {response.status_code} without {marker!r}"
        )

    return probe


def services_active(services: Sequence[str]) -> Probe:
    """Satisfied when every systemd unit reports active."""

    def probe(ctx: RunContext) -> CheckResult:
        inactive = [
            name
            for name in services
            if not service_is_active(name, ctx.app_settings, ctx.logger)
        ]
        if inactive:
            return CheckResult.unsatisfied(f"inactive: {', '.join(inactive)}")
        return CheckResult.satisfied(f"active: {', '.join(services)}")

    return probe
