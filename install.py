#!/usr/bin/env python3
# filename: install.py
# -*- coding: utf-8 -*-
"""
Entry point for the ERPNext provisioner.
"""

import argparse
import signal
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from common.command_utils import log_erp_server
from common.logging_config import (
    SecretRedactionFilter,
    build_log_file_path,
    setup_logging,
    shutdown_logging,
)
from installer.plan import build_plan, enabled_components
from modular.context import CancellationToken, RunContext
from modular.errors import (
    EnvironmentMismatchError,
    InputError,
    PreflightConflictError,
    ProvisioningError,
    RunCancelledError,
    StepFailure,
)
from modular.orchestrator import ProvisioningOrchestrator
from modular.step import CheckStatus
from setup.cli_handler import (
    ParameterCollector,
    cli_prompt_for_confirmation,
    view_configuration,
)
from setup.config_loader import (
    DEFAULT_CONFIG_FILE,
    load_app_settings,
    load_run_parameters,
)
from setup.preflight import run_preflight_checks

LOGGER_NAME = "erpnext_provisioner"
ADMIN_USER = "Administrator"


def _build_global_parser() -> argparse.ArgumentParser:
    global_parser = argparse.ArgumentParser(add_help=False)
    global_parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose output"
    )
    global_parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_FILE,
        help=f"Path to the YAML configuration file (default: {DEFAULT_CONFIG_FILE})",
    )
    global_parser.add_argument("--site-name", help="Site name, e.g. erp.example.com")
    global_parser.add_argument(
        "--system-user", help="System account that owns the bench"
    )
    global_parser.add_argument(
        "--no-create-user",
        action="store_true",
        help="Use the invoking account instead of creating one",
    )
    global_parser.add_argument("--log-dir", help="Directory for the run log")
    global_parser.add_argument(
        "--log-format", choices=["text", "json"], help="Log file format"
    )
    global_parser.add_argument(
        "--run-timeout",
        type=int,
        help="Abort the run after this many seconds",
    )
    global_parser.add_argument(
        "--clean",
        action="store_true",
        help="Remove a previous bench and site configuration first",
    )
    global_parser.add_argument(
        "--no-upgrade",
        action="store_true",
        help="Skip 'apt-get upgrade'",
    )
    global_parser.add_argument(
        "--non-interactive",
        action="store_true",
        help="Never prompt; fail if a run parameter is missing",
    )
    return global_parser


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments. Global flags may appear anywhere."""
    all_args = args if args is not None else sys.argv[1:]
    global_parser = _build_global_parser()
    global_args, remaining_args = global_parser.parse_known_args(all_args)

    parser = argparse.ArgumentParser(
        description="Declarative ERPNext provisioner",
        parents=[_build_global_parser()],
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")
    subparsers.add_parser(
        "install", help="Provision the full stack (default command)"
    )
    subparsers.add_parser("plan", help="List the steps of the plan")
    subparsers.add_parser(
        "status", help="Evaluate step preconditions without changing anything"
    )
    subparsers.add_parser(
        "view-config", help="Show the effective configuration"
    )

    parsed_args = parser.parse_args(remaining_args)
    for key, value in vars(global_args).items():
        setattr(parsed_args, key, value)
    if parsed_args.command is None:
        parsed_args.command = "install"
    return parsed_args


def _actionable_hint(error: ProvisioningError) -> str:
    if isinstance(error, InputError):
        return "Provide the value interactively or through the ERPNEXT_* environment variables."
    if isinstance(error, PreflightConflictError):
        return "Resolve the conflict above before starting again."
    if isinstance(error, EnvironmentMismatchError):
        return "Remove or replace the conflicting installation, then re-run."
    if isinstance(error, RunCancelledError):
        return "Re-run to resume; completed steps are skipped."
    return "Fix the cause shown in the log and re-run; completed steps are skipped."


def _report_failure(
    error: ProvisioningError,
    orchestrator: Optional[ProvisioningOrchestrator],
    log_path: Optional[Path],
    redaction_filter: SecretRedactionFilter,
    logger,
    app_settings,
) -> None:
    """Log the final failure report and print a one-line message."""
    symbols = app_settings.symbols
    if isinstance(error, StepFailure):
        log_erp_server(
            f"{symbols.get('critical', '🔥')} Step '{error.step_name}' failed after {error.attempts} attempt(s).",
            "critical",
            logger,
            app_settings,
        )
        if error.output:
            log_erp_server(
                f"Last output:\n{error.output}", "error", logger, app_settings
            )
    else:
        log_erp_server(
            f"{symbols.get('critical', '🔥')} {type(error).__name__}: {error}",
            "critical",
            logger,
            app_settings,
        )
    if orchestrator is not None:
        orchestrator.report.log_summary(logger, app_settings)

    location = f" Details: {log_path}" if log_path else ""
    message = redaction_filter.redact(f"{error}. {_actionable_hint(error)}")
    print(f"ERROR: {message}{location}", file=sys.stderr)


def _write_report(
    orchestrator: Optional[ProvisioningOrchestrator],
    log_path: Optional[Path],
    redaction_filter: SecretRedactionFilter,
    logger,
) -> None:
    if orchestrator is None or log_path is None:
        return
    report_path = Path(f"{log_path}.report.json")
    try:
        orchestrator.report.write_json(report_path, redact=redaction_filter.redact)
        logger.info(f"Run report written to {report_path}")
    except OSError as e:
        logger.warning(f"Could not write run report {report_path}: {e}")


def _print_plan(plan, components, logger, app_settings) -> None:
    """List the plan's steps grouped under each component's description."""
    log_erp_server(
        f"Plan ({len(plan)} steps):", "info", logger, app_settings
    )
    index = 0
    for component in components:
        heading = component.metadata.get("description") or type(component).__name__
        log_erp_server(f"  {heading}", "info", logger, app_settings)
        for component_step in component.steps():
            step = plan.get(component_step.name)
            index += 1
            flags = []
            if not step.critical:
                flags.append("non-critical")
            if step.fallback_action is not None:
                flags.append("fallback")
            suffix = f" [{', '.join(flags)}]" if flags else ""
            log_erp_server(
                f"    {index:>2}. {step.name:<30} {step.description}{suffix}",
                "info",
                logger,
                app_settings,
            )


def _print_status(statuses, logger, app_settings) -> None:
    symbols = app_settings.symbols
    for name, result in statuses.items():
        if result.status is CheckStatus.SATISFIED:
            label = f"{symbols.get('success', '✅')} satisfied"
        elif result.status is CheckStatus.CHECK_FAILED:
            label = f"{symbols.get('warning', '⚠️')} check failed"
        else:
            label = f"{symbols.get('step', '➡️')} would run"
        log_erp_server(
            f"  {name:<30} {label} ({result.reason})",
            "info",
            logger,
            app_settings,
        )


def _print_summary(ctx: RunContext, log_path: Optional[Path]) -> None:
    symbols = ctx.app_settings.symbols
    lines = [
        f"{symbols.get('sparkles', '✨')} ERPNext installation complete.",
        f"  URL:        http://{ctx.site_name}",
        f"  Admin user: {ADMIN_USER}",
        f"  Bench:      {ctx.bench_dir}",
    ]
    if log_path:
        lines.append(f"  Log:        {log_path}")
    for line in lines:
        log_erp_server(line, "info", ctx.logger, ctx.app_settings)


def main(args: Optional[List[str]] = None) -> int:
    """
    Main entry point for the provisioner.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    parsed_args = parse_args(args)
    started_at = datetime.now()

    try:
        app_settings = load_app_settings(parsed_args, parsed_args.config)
    except ValidationError as e:
        print(f"ERROR: Invalid configuration: {e}", file=sys.stderr)
        return 1
    try:
        params = load_run_parameters(parsed_args)
    except ValidationError as e:
        print(f"ERROR: Invalid run parameters: {e}", file=sys.stderr)
        return 1

    redaction_filter = SecretRedactionFilter()
    log_file = None
    if parsed_args.command == "install":
        log_file = build_log_file_path(
            app_settings.log_dir, app_settings.log_file_prefix, started_at
        )
    logger, log_path = setup_logging(
        LOGGER_NAME,
        log_file_path=log_file,
        redaction_filter=redaction_filter,
        log_level="DEBUG" if parsed_args.verbose else None,
        log_format=app_settings.log_format,
    )

    orchestrator: Optional[ProvisioningOrchestrator] = None
    previous_sigint = None
    try:
        if parsed_args.command == "view-config":
            view_configuration(app_settings, params, logger)
            return 0

        if parsed_args.command == "plan":
            _print_plan(
                build_plan(app_settings, params, logger),
                enabled_components(app_settings, params, logger),
                logger,
                app_settings,
            )
            return 0

        if parsed_args.command == "status":
            with RunContext(
                app_settings, params, logger, redaction_filter
            ) as ctx:
                statuses = ProvisioningOrchestrator(ctx).check_status(
                    build_plan(app_settings, params, logger)
                )
            _print_status(statuses, logger, app_settings)
            return 0

        log_erp_server(
            f"{app_settings.symbols.get('rocket', '🚀')} {app_settings.log_prefix} Starting ERPNext provisioning.",
            "info",
            logger,
            app_settings,
        )
        collector = ParameterCollector(
            app_settings,
            redaction_filter,
            logger,
            interactive=not parsed_args.non_interactive,
        )
        params = collector.collect_run_parameters(params)
        if (
            app_settings.clean_previous_install
            and not parsed_args.non_interactive
            and not cli_prompt_for_confirmation(
                "Remove the existing bench and site configuration before installing?",
                app_settings,
                logger,
            )
        ):
            raise InputError("Removal of the previous installation was not confirmed")
        run_preflight_checks(app_settings, params, logger)
        plan = build_plan(app_settings, params, logger)

        cancel_token = CancellationToken(app_settings.run_timeout_seconds)

        def _on_sigint(signum, frame):
            logger.warning("Interrupt received; cancelling after the current command.")
            cancel_token.cancel("Run cancelled by operator (SIGINT)")

        previous_sigint = signal.signal(signal.SIGINT, _on_sigint)
        with RunContext(
            app_settings,
            params,
            logger,
            redaction_filter,
            cancel_token,
            log_path,
        ) as ctx:
            orchestrator = ProvisioningOrchestrator(ctx)
            report = orchestrator.run(plan)
            report.log_summary(logger, app_settings)
            _print_summary(ctx, log_path)
        return report.exit_code

    except ProvisioningError as e:
        _report_failure(
            e, orchestrator, log_path, redaction_filter, logger, app_settings
        )
        return 1
    except KeyboardInterrupt:
        logger.error("Interrupted by operator.")
        print("ERROR: Interrupted. Re-run to resume.", file=sys.stderr)
        return 1
    finally:
        if previous_sigint is not None:
            signal.signal(signal.SIGINT, previous_sigint)
        _write_report(orchestrator, log_path, redaction_filter, logger)
        shutdown_logging()
        redaction_filter.clear()


if __name__ == "__main__":
    sys.exit(main())
