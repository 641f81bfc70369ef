from collections import namedtuple

from common.command_utils import CommandResult
from common.system_utils import (
    get_dpkg_architecture,
    service_is_active,
    user_exists,
    user_in_group,
)

PwEntry = namedtuple("PwEntry", "pw_name pw_gid")
GrEntry = namedtuple("GrEntry", "gr_name gr_gid gr_mem")


def test_root_account_exists():
    assert user_exists("root") is True


def test_missing_account(mocker):
    mocker.patch("common.system_utils.pwd.getpwnam", side_effect=KeyError("x"))
    assert user_exists("nobody-here") is False


def test_user_in_group_supplementary(mocker):
    mocker.patch(
        "common.system_utils.grp.getgrnam",
        return_value=GrEntry("sudo", 27, ["frappe"]),
    )

    assert user_in_group("frappe", "sudo") is True


def test_user_in_group_primary(mocker):
    mocker.patch(
        "common.system_utils.grp.getgrnam",
        return_value=GrEntry("sudo", 27, []),
    )
    mocker.patch(
        "common.system_utils.pwd.getpwnam",
        return_value=PwEntry("frappe", 27),
    )

    assert user_in_group("frappe", "sudo") is True


def test_user_not_in_group(mocker):
    mocker.patch(
        "common.system_utils.grp.getgrnam",
        return_value=GrEntry("sudo", 27, ["alice"]),
    )
    mocker.patch(
        "common.system_utils.pwd.getpwnam",
        return_value=PwEntry("frappe", 1000),
    )

    assert user_in_group("frappe", "sudo") is False


def test_user_in_missing_group(mocker):
    mocker.patch("common.system_utils.grp.getgrnam", side_effect=KeyError("x"))

    assert user_in_group("frappe", "no-such-group") is False


def test_get_dpkg_architecture(mocker, app_settings, mock_logger):
    mocker.patch(
        "common.system_utils.run_command",
        return_value=CommandResult(command="dpkg", exit_code=0, stdout="arm64\n"),
    )

    assert get_dpkg_architecture(app_settings, mock_logger) == "arm64"


def test_get_dpkg_architecture_unavailable(mocker, app_settings, mock_logger):
    mocker.patch(
        "common.system_utils.run_command",
        return_value=CommandResult(command="dpkg", exit_code=127),
    )

    assert get_dpkg_architecture(app_settings, mock_logger) is None
    mock_logger.warning.assert_called_once()


def test_service_is_active(mocker, app_settings):
    run_mock = mocker.patch(
        "common.system_utils.run_elevated_command",
        return_value=CommandResult(command="systemctl", exit_code=0),
    )

    assert service_is_active("nginx", app_settings) is True
    assert run_mock.call_args.args[0] == [
        "systemctl",
        "is-active",
        "--quiet",
        "nginx",
    ]


def test_service_is_inactive(mocker, app_settings):
    mocker.patch(
        "common.system_utils.run_elevated_command",
        return_value=CommandResult(command="systemctl", exit_code=3),
    )

    assert service_is_active("mariadb", app_settings) is False
