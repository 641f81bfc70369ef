"""
Convergence engine for declarative provisioning.

This package provides the step model, the step registry and the
orchestrator that drives a host toward the state a plan declares.
"""

from modular.context import CancellationToken, RunContext
from modular.orchestrator import ProvisioningOrchestrator
from modular.registry import StepRegistry
from modular.report import RunReport, StepOutcome, StepResult
from modular.step import (
    CheckResult,
    CheckStatus,
    Command,
    CommandAction,
    FunctionAction,
    Plan,
    RetryPolicy,
    Step,
)

__all__ = [
    "CancellationToken",
    "CheckResult",
    "CheckStatus",
    "Command",
    "CommandAction",
    "FunctionAction",
    "Plan",
    "ProvisioningOrchestrator",
    "RetryPolicy",
    "RunContext",
    "RunReport",
    "StepOutcome",
    "StepRegistry",
    "StepResult",
    "Step",
]
