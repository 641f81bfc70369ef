import pytest
from pydantic import ValidationError

from common.command_utils import CommandResult
from modular.errors import DuplicateStepError
from modular.step import (
    CheckResult,
    Command,
    CommandAction,
    FunctionAction,
    Plan,
    RetryPolicy,
    Step,
)

OK = CommandResult(command="ok", exit_code=0)


def noop():
    return FunctionAction(lambda ctx: OK)


def test_retry_policy_defaults():
    policy = RetryPolicy()
    assert policy.max_attempts == 3
    assert policy.backoff_seconds == 5


def test_retry_policy_rejects_zero_attempts():
    with pytest.raises(ValidationError):
        RetryPolicy(max_attempts=0)


def test_step_requires_name():
    with pytest.raises(ValueError):
        Step(name="  ", action=noop())


def test_max_total_attempts_without_fallback():
    step = Step(name="s", action=noop(), retry_policy=RetryPolicy(max_attempts=4))
    assert step.max_total_attempts == 4


def test_fallback_reuses_primary_policy_by_default():
    step = Step(
        name="s",
        action=noop(),
        fallback_action=noop(),
        retry_policy=RetryPolicy(max_attempts=2),
    )
    assert step.effective_fallback_policy.max_attempts == 2
    assert step.max_total_attempts == 4


def test_check_result_helpers():
    assert CheckResult.satisfied().is_satisfied
    assert not CheckResult.unsatisfied().is_satisfied
    assert not CheckResult.check_failed("boom").is_satisfied


def test_plan_rejects_duplicate_names():
    with pytest.raises(DuplicateStepError):
        Plan([Step(name="a", action=noop()), Step(name="a", action=noop())])


def test_plan_lookup():
    plan = Plan([Step(name="a", action=noop()), Step(name="b", action=noop())])

    assert plan.names() == ["a", "b"]
    assert plan.get("b").name == "b"
    assert plan[0].name == "a"
    assert len(plan) == 2
    with pytest.raises(KeyError):
        plan.get("c")


def test_command_resolves_callables_at_execution(run_context, mocker):
    run = mocker.patch.object(run_context, "run", return_value=OK)
    command = Command(
        argv=lambda ctx: ["mysqladmin", "password", ctx.secret("db_root_password")],
        input=lambda ctx: ctx.site_name,
        env=lambda ctx: {"SITE": ctx.site_name},
    )

    command.execute(run_context)

    assert run.call_args.args[0] == ["mysqladmin", "password", "db-root-secret"]
    assert run.call_args.kwargs["cmd_input"] == "erp.example.com"
    assert run.call_args.kwargs["env"] == {"SITE": "erp.example.com"}


def test_command_dispatch_elevated(run_context, mocker):
    elevated = mocker.patch.object(run_context, "run_elevated", return_value=OK)

    Command(["systemctl", "restart", "nginx"], elevate=True).execute(run_context)

    assert elevated.call_args.args[0] == ["systemctl", "restart", "nginx"]


def test_command_dispatch_run_as(run_context, mocker):
    run_as = mocker.patch.object(run_context, "run_as", return_value=OK)

    Command(["bench", "--version"], run_as="frappe", cwd="/home/frappe").execute(
        run_context
    )

    assert run_as.call_args.args[:2] == ("frappe", ["bench", "--version"])
    assert run_as.call_args.kwargs["cwd"] == "/home/frappe"


def test_command_action_stops_at_first_failure(run_context, mocker):
    failed = CommandResult(command="second", exit_code=1)
    run = mocker.patch.object(run_context, "run", side_effect=[OK, failed, OK])

    result = CommandAction(
        Command(["first"]), Command(["second"]), Command(["third"])
    ).execute(run_context)

    assert result is failed
    assert run.call_count == 2


def test_function_action_receives_context(run_context):
    seen = []

    FunctionAction(lambda ctx: seen.append(ctx) or OK).execute(run_context)

    assert seen == [run_context]
