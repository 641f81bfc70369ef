import json

import pytest

import install
from common.command_utils import CommandResult
from modular.step import FunctionAction, Plan, RetryPolicy, Step

ONCE = RetryPolicy(max_attempts=1, backoff_seconds=0)


@pytest.fixture
def base_args(tmp_path):
    return [
        "--config",
        str(tmp_path / "absent.yaml"),
        "--log-dir",
        str(tmp_path / "logs"),
    ]


@pytest.fixture
def env_params(monkeypatch):
    monkeypatch.setenv("ERPNEXT_DB_ROOT_PASSWORD", "db-root-value")
    monkeypatch.setenv("ERPNEXT_ADMIN_PASSWORD", "admin-pw-value")


def single_step_plan(result):
    return Plan(
        [
            Step(
                name="only-step",
                action=FunctionAction(lambda ctx: result, description="do it"),
                retry_policy=ONCE,
            )
        ]
    )


def test_parse_args_defaults():
    args = install.parse_args([])

    assert args.command == "install"
    assert args.config == "config.yaml"
    assert args.non_interactive is False
    assert args.verbose is False


def test_global_flags_after_subcommand():
    args = install.parse_args(["plan", "--site-name", "erp.example.com", "-v"])

    assert args.command == "plan"
    assert args.site_name == "erp.example.com"
    assert args.verbose is True


def test_plan_command_lists_steps(base_args, capsys):
    exit_code = install.main(base_args + ["--site-name", "erp.example.com", "plan"])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "apt-update" in out
    assert "smoke-test" in out
    assert "Core system packages" in out
    assert "Frappe bench and ERPNext site" in out


def test_view_config_masks_secrets(base_args, env_params, capsys):
    exit_code = install.main(base_args + ["view-config"])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "admin-pw-value" not in out
    assert "[SET]" in out


def test_status_never_applies(base_args, mocker):
    check_status = mocker.patch(
        "install.ProvisioningOrchestrator.check_status", return_value={}
    )
    run = mocker.patch("install.ProvisioningOrchestrator.run")

    assert install.main(base_args + ["status"]) == 0
    check_status.assert_called_once()
    run.assert_not_called()


def test_invalid_configuration_exits_1(tmp_path, capsys):
    config = tmp_path / "config.yaml"
    config.write_text("log_format: xml\n", encoding="utf-8")

    assert install.main(["--config", str(config), "plan"]) == 1
    assert "Invalid configuration" in capsys.readouterr().err


def test_malformed_run_parameter_exits_1(base_args, monkeypatch, capsys):
    monkeypatch.setenv("ERPNEXT_CREATE_NEW_USER", "maybe")

    assert install.main(base_args + ["plan"]) == 1
    err = capsys.readouterr().err
    assert err.startswith("ERROR: Invalid run parameters")
    assert "Traceback" not in err


def test_missing_parameter_non_interactive_exits_1(base_args, capsys):
    exit_code = install.main(base_args + ["--non-interactive", "install"])

    assert exit_code == 1
    assert capsys.readouterr().err.startswith("ERROR:")


def test_successful_install(base_args, env_params, mocker, capsys, tmp_path):
    mocker.patch("install.run_preflight_checks")
    mocker.patch(
        "install.build_plan",
        return_value=single_step_plan(CommandResult(command="ok", exit_code=0)),
    )

    exit_code = install.main(
        base_args
        + ["--non-interactive", "--no-create-user", "--site-name", "erp.example.com"]
    )

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "http://erp.example.com" in out
    assert "Administrator" in out
    assert "admin-pw-value" not in out
    logs = list((tmp_path / "logs").glob("erpnext_install_*.log"))
    assert len(logs) == 1
    report = json.loads(
        (tmp_path / "logs" / f"{logs[0].name}.report.json").read_text(encoding="utf-8")
    )
    assert report["succeeded"] is True
    assert report["steps"][0]["outcome"] == "Succeeded"


def test_failed_step_exits_1_and_redacts(base_args, env_params, mocker, capsys, tmp_path):
    mocker.patch("install.run_preflight_checks")
    failing = CommandResult(
        command="bench new-site x --admin-password admin-pw-value",
        exit_code=1,
        stderr="boom",
    )
    mocker.patch("install.build_plan", return_value=single_step_plan(failing))

    exit_code = install.main(
        base_args
        + ["--non-interactive", "--no-create-user", "--site-name", "erp.example.com"]
    )

    captured = capsys.readouterr()
    assert exit_code == 1
    assert captured.err.startswith("ERROR:")
    assert "only-step" in captured.err
    assert "admin-pw-value" not in captured.err
    log_file = next((tmp_path / "logs").glob("erpnext_install_*.log"))
    assert "admin-pw-value" not in log_file.read_text(encoding="utf-8")
    report_text = (tmp_path / "logs" / f"{log_file.name}.report.json").read_text(
        encoding="utf-8"
    )
    assert "admin-pw-value" not in report_text
    assert json.loads(report_text)["aborted_at"] == "only-step"


def test_clean_requires_confirmation(base_args, env_params, mocker):
    mocker.patch("install.cli_prompt_for_confirmation", return_value=False)
    preflight = mocker.patch("install.run_preflight_checks")
    mocker.patch("install.ParameterCollector.collect_run_parameters", side_effect=lambda p: p)

    exit_code = install.main(base_args + ["--clean", "--site-name", "erp.example.com"])

    assert exit_code == 1
    preflight.assert_not_called()
