"""
Convergence engine for provisioning plans.

The orchestrator walks a Plan in order. For each step it evaluates the
precondition and skips the step when the system is already in the desired
state; otherwise it applies the action with linear backoff until the
postcondition holds, falls back to the alternate action when one is
declared, and finally either aborts the run (critical steps) or records a
degraded result and moves on.
"""

import logging
import time
from typing import Dict, Optional, Tuple

from common.command_utils import CommandResult, log_erp_server
from modular.context import RunContext
from modular.errors import (
    EnvironmentMismatchError,
    ProvisioningError,
    RunCancelledError,
    StepActionFailure,
    StepFailure,
    VerificationFailure,
)
from modular.report import RunReport, StepOutcome, StepResult
from modular.step import Action, CheckResult, CheckStatus, Plan, Probe, RetryPolicy, Step


class ProvisioningOrchestrator:
    """
    Drives the system toward the state declared by a Plan.

    Runs are strictly sequential. The report of the most recent run is kept
    on `self.report` so a top-level handler can emit it even when the run
    aborted with an exception.
    """

    def __init__(self, ctx: RunContext, logger: Optional[logging.Logger] = None):
        self.ctx = ctx
        self.app_settings = ctx.app_settings
        self.logger = logger or ctx.logger
        self.report = RunReport()

    def _log(self, message: str, level: str = "info") -> None:
        log_erp_server(message, level, self.logger, self.app_settings)

    def _symbol(self, name: str, default: str) -> str:
        return self.app_settings.symbols.get(name, default)

    def run(self, plan: Plan) -> RunReport:
        """
        Converge every step of the plan.

        Returns:
            The run report.

        Raises:
            StepFailure: A critical step could not be converged.
            EnvironmentMismatchError: A probe detected an incompatible installation.
            RunCancelledError: The run was cancelled or hit its deadline.
        """
        self.report = RunReport()
        total = len(plan)
        self._log(
            f"{self._symbol('rocket', '🚀')} Provisioning plan with {total} step(s): {', '.join(plan.names())}"
        )
        for index, step in enumerate(plan, start=1):
            self.ctx.advance()
            started = time.monotonic()
            try:
                self.ctx.cancel_token.raise_if_cancelled()
                result, failure = self._converge_step(step, index, total)
            except ProvisioningError as e:
                self.report.add(
                    StepResult(
                        name=step.name,
                        outcome=StepOutcome.FAILED,
                        attempts=getattr(e, "attempts", 0),
                        elapsed_ms=_elapsed_ms(started),
                        critical=True,
                        detail=str(e),
                    )
                )
                self.report.aborted_at = step.name
                self.report.error = str(e)
                raise
            result.elapsed_ms = _elapsed_ms(started)
            self.report.add(result)

            if failure is not None:
                if step.critical:
                    self.report.aborted_at = step.name
                    self.report.error = str(failure)
                    self._log(
                        f"{self._symbol('critical', '🔥')} Critical step '{step.name}' failed. Halting run.",
                        "critical",
                    )
                    raise failure
                self._log(
                    f"{self._symbol('warning', '⚠️')} Non-critical step '{step.name}' failed; continuing.",
                    "warning",
                )
        return self.report

    def check_status(self, plan: Plan) -> Dict[str, CheckResult]:
        """Evaluate every precondition without applying anything."""
        statuses: Dict[str, CheckResult] = {}
        for step in plan:
            if step.precondition is None:
                statuses[step.name] = CheckResult.unsatisfied(
                    "always applied"
                )
                continue
            statuses[step.name] = self._evaluate(step.precondition, step, "precondition")
        return statuses

    def _converge_step(
        self, step: Step, index: int, total: int
    ) -> Tuple[StepResult, Optional[StepFailure]]:
        self._log(
            f"--- {self._symbol('step', '➡️')} [{index}/{total}] {step.name}: {step.description or step.action.description} ---"
        )

        if step.precondition is not None:
            pre = self._evaluate(step.precondition, step, "precondition")
            if pre.is_satisfied:
                self._log(
                    f"{self._symbol('info', 'ℹ️')} '{step.name}' already satisfied ({pre.reason}). Skipping."
                )
                return StepResult(
                    name=step.name,
                    outcome=StepOutcome.SKIPPED,
                    attempts=0,
                    critical=step.critical,
                    detail=pre.reason,
                ), None
            if pre.status is CheckStatus.CHECK_FAILED:
                self._log(
                    f"{self._symbol('warning', '⚠️')} Precondition check for '{step.name}' failed ({pre.reason}); assuming work is needed.",
                    "warning",
                )

        converged, attempts, last = self._attempt(
            step, step.action, step.retry_policy, 0
        )
        if converged:
            self._log(
                f"{self._symbol('success', '✅')} '{step.name}' converged after {attempts} attempt(s)."
            )
            return StepResult(
                name=step.name,
                outcome=StepOutcome.SUCCEEDED,
                attempts=attempts,
                critical=step.critical,
            ), None

        if step.fallback_action is not None:
            self._log(
                f"{self._symbol('warning', '⚠️')} '{step.name}' primary action exhausted; trying fallback: {step.fallback_action.description}",
                "warning",
            )
            converged, attempts, last = self._attempt(
                step,
                step.fallback_action,
                step.effective_fallback_policy,
                attempts,
            )
            if converged:
                self._log(
                    f"{self._symbol('success', '✅')} '{step.name}' converged via fallback after {attempts} attempt(s)."
                )
                return StepResult(
                    name=step.name,
                    outcome=StepOutcome.SUCCEEDED_VIA_FALLBACK,
                    attempts=attempts,
                    critical=step.critical,
                ), None

        output = last.output if last is not None else ""
        if last is not None and not last.ok:
            failure: StepFailure = StepActionFailure(
                step.name,
                attempts,
                output,
                f"Step '{step.name}' failed after {attempts} attempt(s): `{last.command}` exited {last.exit_code}",
            )
        else:
            failure = VerificationFailure(
                step.name,
                attempts,
                output,
                f"Step '{step.name}' could not be verified after {attempts} attempt(s)",
            )
        self._log(f"{self._symbol('error', '❌')} {failure}", "error")
        if output:
            self._log(f"   last output: {output}", "error")
        return StepResult(
            name=step.name,
            outcome=StepOutcome.FAILED,
            attempts=attempts,
            critical=step.critical,
            detail=str(failure),
        ), failure

    def _attempt(
        self,
        step: Step,
        action: Action,
        policy: RetryPolicy,
        attempts_so_far: int,
    ) -> Tuple[bool, int, Optional[CommandResult]]:
        attempts = attempts_so_far
        last: Optional[CommandResult] = None
        token = self.ctx.cancel_token
        for attempt in range(1, policy.max_attempts + 1):
            token.raise_if_cancelled()
            if attempt > 1 and policy.backoff_seconds > 0:
                if token.wait(policy.backoff_seconds):
                    raise RunCancelledError(token.reason)
            attempts += 1
            self._log(
                f"{self._symbol('gear', '⚙️')} '{step.name}' attempt {attempt}/{policy.max_attempts}"
                + (f": {action.description}" if action.description else "")
            )
            try:
                last = action.execute(self.ctx)
            except ProvisioningError:
                raise
            except Exception as e:
                self.logger.error(
                    f"Action for '{step.name}' raised: {e}", exc_info=True
                )
                last = CommandResult(
                    command=action.description or step.name,
                    exit_code=1,
                    stderr=str(e),
                )

            if step.postcondition is None:
                post = (
                    CheckResult.satisfied("action succeeded")
                    if last.ok
                    else CheckResult.unsatisfied(
                        f"action exited {last.exit_code}"
                    )
                )
            else:
                post = self._evaluate(step.postcondition, step, "postcondition")

            if post.is_satisfied:
                return True, attempts, last
            self._log(
                f"{self._symbol('warning', '⚠️')} '{step.name}' attempt {attempt}/{policy.max_attempts} not converged: {post.reason}",
                "warning",
            )
        return False, attempts, last

    def _evaluate(self, probe: Probe, step: Step, label: str) -> CheckResult:
        try:
            return probe(self.ctx)
        except (EnvironmentMismatchError, RunCancelledError):
            raise
        except Exception as e:
            self.logger.debug(
                f"{label} for '{step.name}' raised: {e}", exc_info=True
            )
            return CheckResult.check_failed(f"{label} raised: {e}")


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
