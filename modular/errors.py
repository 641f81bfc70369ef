"""
Exception hierarchy for the provisioning engine.

Every fatal condition raised during a run derives from ProvisioningError so
that the entry point can funnel them through a single handler.
"""

from typing import Optional


class ProvisioningError(Exception):
    """Base class for all provisioning failures."""


class InputError(ProvisioningError):
    """A run parameter could not be collected."""


class EmptyInputError(InputError):
    """No value was provided within the allowed number of attempts."""


class MismatchError(InputError):
    """A confirmed value did not match its confirmation entry."""


class InvalidInputError(InputError):
    """A value was provided but is not acceptable."""


class PreflightConflictError(ProvisioningError):
    """The host is in a state that forbids starting the run."""


class EnvironmentMismatchError(ProvisioningError):
    """An installed dependency does not match the required version."""


class DuplicateStepError(ProvisioningError, ValueError):
    """A step with the same name is already registered."""


class RunCancelledError(ProvisioningError):
    """The run was cancelled or its deadline expired."""


class StepFailure(ProvisioningError):
    """
    A step exhausted its action (and fallback) attempts.

    Attributes:
        step_name: Name of the step that failed.
        attempts: Total number of action attempts made.
        output: Last captured command output.
    """

    def __init__(
        self,
        step_name: str,
        attempts: int,
        output: Optional[str] = None,
        message: Optional[str] = None,
    ):
        self.step_name = step_name
        self.attempts = attempts
        self.output = output or ""
        super().__init__(
            message
            or f"Step '{step_name}' failed after {attempts} attempt(s)"
        )


class StepActionFailure(StepFailure):
    """The last action attempt exited non-zero."""


class VerificationFailure(StepFailure):
    """The action looked successful but the postcondition never held."""
