import pytest

from installer.plan import build_plan, enabled_components
from modular.step import CommandAction
from setup.config_models import AppSpec, RunParameters

DEFAULT_ORDER = [
    "apt-update",
    "apt-upgrade",
    "system-prerequisites",
    "nodejs-runtime",
    "yarn",
    "wkhtmltopdf",
    "mariadb-init",
    "mariadb-service",
    "mariadb-root-password",
    "mariadb-harden",
    "mariadb-charset",
    "system-account",
    "system-account-password",
    "system-account-sudo",
    "supervisor-sudoers",
    "bench-cli",
    "bench-init",
    "bench-frontend-deps",
    "bench-yarn-install",
    "bench-developer-mode",
    "site-create",
    "get-app-payments",
    "get-app-erpnext",
    "get-app-hrms",
    "get-app-chat",
    "install-app-erpnext",
    "install-app-hrms",
    "install-app-chat",
    "bench-production",
    "nginx-site",
    "services",
    "site-hosts-entry",
    "smoke-test",
]


def test_default_plan_order(app_settings, run_params, mock_logger):
    plan = build_plan(app_settings, run_params, mock_logger)

    assert plan.names() == DEFAULT_ORDER


def test_enabled_components_describe_the_plan(app_settings, run_params, mock_logger):
    components = enabled_components(app_settings, run_params, mock_logger)

    assert all(c.metadata["description"] for c in components)
    assert [s.name for c in components for s in c.steps()] == DEFAULT_ORDER
    assert "Removal of a previous installation" not in {
        c.metadata["description"] for c in components
    }


def test_plan_needs_no_secrets(app_settings, mock_logger):
    params = RunParameters(
        system_user="frappe", site_name="erp.example.com", create_new_user=True
    )

    plan = build_plan(app_settings, params, mock_logger)

    assert "site-create" in plan.names()


def test_clean_install_runs_cleanup_first(app_settings, run_params, mock_logger):
    app_settings.clean_previous_install = True

    plan = build_plan(app_settings, run_params, mock_logger)

    assert plan.names()[0] == "cleanup-previous-install"


def test_no_upgrade_drops_apt_upgrade(app_settings, run_params, mock_logger):
    app_settings.upgrade_packages = False

    assert "apt-upgrade" not in build_plan(app_settings, run_params, mock_logger).names()


def test_existing_account_keeps_sudoers_only(app_settings, run_params, mock_logger):
    run_params.create_new_user = False

    names = build_plan(app_settings, run_params, mock_logger).names()

    assert "system-account" not in names
    assert "system-account-password" not in names
    assert "system-account-sudo" not in names
    assert "supervisor-sudoers" in names


def test_optional_bench_steps(app_settings, run_params, mock_logger):
    app_settings.bench.developer_mode = False
    app_settings.bench.production_setup = False

    names = build_plan(app_settings, run_params, mock_logger).names()

    assert "bench-developer-mode" not in names
    assert "bench-production" not in names


def test_apps_come_from_configuration(app_settings, run_params, mock_logger):
    app_settings.bench.apps = [
        AppSpec(
            app_name="chat",
            fetch_argument="https://github.com/frappe/chat",
            branch="develop",
        )
    ]

    plan = build_plan(app_settings, run_params, mock_logger)

    assert [n for n in plan.names() if "-app-" in n] == [
        "get-app-chat",
        "install-app-chat",
    ]
    command = plan.get("get-app-chat").action.commands[0]
    assert command.argv == [
        "bench",
        "get-app",
        "--branch",
        "develop",
        "https://github.com/frappe/chat",
    ]
    assert command.run_as == "frappe"


@pytest.mark.parametrize(
    "name", ["bench-frontend-deps", "site-hosts-entry"]
)
def test_non_critical_steps(app_settings, run_params, mock_logger, name):
    plan = build_plan(app_settings, run_params, mock_logger)

    assert plan.get(name).critical is False


def test_every_other_step_is_critical(app_settings, run_params, mock_logger):
    plan = build_plan(app_settings, run_params, mock_logger)

    critical = {step.name for step in plan if step.critical}
    assert critical == set(DEFAULT_ORDER) - {"bench-frontend-deps", "site-hosts-entry"}


def test_fallbacks_declared(app_settings, run_params, mock_logger):
    plan = build_plan(app_settings, run_params, mock_logger)

    with_fallback = {step.name for step in plan if step.fallback_action is not None}
    assert {
        "apt-upgrade",
        "system-prerequisites",
        "nodejs-runtime",
        "yarn",
        "wkhtmltopdf",
        "mariadb-root-password",
        "bench-cli",
    } == with_fallback


def test_smoke_test_retry_policy(app_settings, run_params, mock_logger):
    step = build_plan(app_settings, run_params, mock_logger).get("smoke-test")

    assert step.retry_policy.max_attempts == 3
    assert step.retry_policy.backoff_seconds == 5
    assert step.precondition is None


def test_apt_update_policy(app_settings, run_params, mock_logger):
    step = build_plan(app_settings, run_params, mock_logger).get("apt-update")

    assert isinstance(step.action, CommandAction)
    assert step.retry_policy.max_attempts == 3
    assert step.retry_policy.backoff_seconds == 5
