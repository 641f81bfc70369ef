"""
Declarative provisioning steps.

A Step describes one unit of work: a side-effect-free precondition probe,
an action, an optional fallback action, a postcondition probe and a retry
policy. Steps are immutable value objects; everything run-specific arrives
through the RunContext handed to probes and actions.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Callable,
    Dict,
    Iterator,
    List,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from pydantic import BaseModel, ConfigDict, Field

from common.command_utils import CommandResult
from modular.errors import DuplicateStepError

if TYPE_CHECKING:
    from modular.context import RunContext


class CheckStatus(str, Enum):
    SATISFIED = "Satisfied"
    UNSATISFIED = "Unsatisfied"
    CHECK_FAILED = "CheckFailed"


@dataclass(frozen=True)
class CheckResult:
    status: CheckStatus
    reason: str = ""

    @classmethod
    def satisfied(cls, reason: str = "") -> "CheckResult":
        return cls(CheckStatus.SATISFIED, reason)

    @classmethod
    def unsatisfied(cls, reason: str = "") -> "CheckResult":
        return cls(CheckStatus.UNSATISFIED, reason)

    @classmethod
    def check_failed(cls, reason: str) -> "CheckResult":
        return cls(CheckStatus.CHECK_FAILED, reason)

    @property
    def is_satisfied(self) -> bool:
        return self.status is CheckStatus.SATISFIED


Probe = Callable[["RunContext"], CheckResult]
ArgvSpec = Union[Sequence[str], str, Callable[["RunContext"], Union[Sequence[str], str]]]
InputSpec = Union[str, Callable[["RunContext"], str], None]
EnvSpec = Union[Dict[str, str], Callable[["RunContext"], Dict[str, str]], None]


class RetryPolicy(BaseModel):
    """Linear retry policy: up to max_attempts, sleeping backoff_seconds between them."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1)
    backoff_seconds: int = Field(default=5, ge=0)


@dataclass(frozen=True)
class Command:
    """
    One external command.

    `argv`, `input` and `env` may be callables taking the RunContext so that secret
    values are resolved at execution time instead of being stored in the plan.
    `run_as` switches to another account for this invocation only; `elevate`
    requests sudo for this invocation only.
    """

    argv: ArgvSpec
    shell: bool = False
    elevate: bool = False
    run_as: Optional[str] = None
    input: InputSpec = None
    timeout: Optional[float] = None
    cwd: Optional[str] = None
    env: EnvSpec = None

    def resolve_argv(self, ctx: "RunContext") -> Union[List[str], str]:
        argv = self.argv(ctx) if callable(self.argv) else self.argv
        return argv if isinstance(argv, str) else list(argv)

    def resolve_input(self, ctx: "RunContext") -> Optional[str]:
        return self.input(ctx) if callable(self.input) else self.input

    def resolve_env(self, ctx: "RunContext") -> Optional[Dict[str, str]]:
        return self.env(ctx) if callable(self.env) else self.env

    def execute(self, ctx: "RunContext") -> CommandResult:
        argv = self.resolve_argv(ctx)
        kwargs = dict(
            timeout=self.timeout,
            cmd_input=self.resolve_input(ctx),
            cwd=self.cwd,
            env=self.resolve_env(ctx),
        )
        if self.run_as:
            return ctx.run_as(self.run_as, argv, **kwargs)
        if self.elevate:
            return ctx.run_elevated(argv, shell=self.shell, **kwargs)
        return ctx.run(argv, shell=self.shell, **kwargs)


class Action:
    """Base class for step actions."""

    description: str = ""

    def execute(self, ctx: "RunContext") -> CommandResult:
        raise NotImplementedError


@dataclass(frozen=True, init=False)
class CommandAction(Action):
    """Runs commands in order, stopping at the first failure."""

    commands: Tuple[Command, ...]
    description: str = ""

    def __init__(self, *commands: Command, description: str = ""):
        object.__setattr__(self, "commands", tuple(commands))
        object.__setattr__(self, "description", description)

    def execute(self, ctx: "RunContext") -> CommandResult:
        result = CommandResult(command="", exit_code=0)
        for command in self.commands:
            result = command.execute(ctx)
            if not result.ok:
                return result
        return result


@dataclass(frozen=True)
class FunctionAction(Action):
    """A structured action implemented in Python rather than as a command list."""

    func: Callable[["RunContext"], CommandResult]
    description: str = ""

    def execute(self, ctx: "RunContext") -> CommandResult:
        return self.func(ctx)


@dataclass(frozen=True)
class Step:
    """
    A named unit of provisioning work.

    A missing precondition means the step always applies; a missing
    postcondition means success is judged by the action's exit status.
    """

    name: str
    action: Action
    description: str = ""
    precondition: Optional[Probe] = None
    postcondition: Optional[Probe] = None
    fallback_action: Optional[Action] = None
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    fallback_retry_policy: Optional[RetryPolicy] = None
    critical: bool = True

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValueError("Step name must not be empty")

    @property
    def effective_fallback_policy(self) -> RetryPolicy:
        return self.fallback_retry_policy or self.retry_policy

    @property
    def max_total_attempts(self) -> int:
        total = self.retry_policy.max_attempts
        if self.fallback_action is not None:
            total += self.effective_fallback_policy.max_attempts
        return total


class Plan:
    """An immutable, ordered sequence of uniquely named steps."""

    def __init__(self, steps: Sequence[Step]):
        seen = set()
        for step in steps:
            if step.name in seen:
                raise DuplicateStepError(
                    f"Step with name '{step.name}' already in plan"
                )
            seen.add(step.name)
        self._steps: Tuple[Step, ...] = tuple(steps)

    def __iter__(self) -> Iterator[Step]:
        return iter(self._steps)

    def __len__(self) -> int:
        return len(self._steps)

    def __getitem__(self, index: int) -> Step:
        return self._steps[index]

    def names(self) -> List[str]:
        return [step.name for step in self._steps]

    def get(self, name: str) -> Step:
        for step in self._steps:
            if step.name == name:
                return step
        raise KeyError(f"No step named '{name}' in plan")
