import pytest

from common.command_utils import CommandResult
from common.network_utils import get_port_listener, is_valid_hostname


@pytest.mark.parametrize(
    "name",
    ["erp.example.com", "site1.local", "localhost", "a-b.c-d.io"],
)
def test_valid_hostnames(name):
    assert is_valid_hostname(name) is True


@pytest.mark.parametrize(
    "name",
    ["", "-bad.example.com", "bad-.example.com", "has space.com", "under_score.com", "a..b", None],
)
def test_invalid_hostnames(name):
    assert is_valid_hostname(name) is False


def test_hostname_label_too_long():
    assert is_valid_hostname("a" * 64 + ".com") is False


def test_port_listener_reported_by_ss(mocker, app_settings, mock_logger):
    line = 'LISTEN 0 511 0.0.0.0:80 0.0.0.0:* users:(("nginx",pid=812,fd=6))'
    mocker.patch(
        "common.network_utils.run_elevated_command",
        return_value=CommandResult(command="ss", exit_code=0, stdout=line + "\n"),
    )

    assert get_port_listener(80, app_settings, mock_logger) == line


def test_port_free_according_to_ss(mocker, app_settings, mock_logger):
    mocker.patch(
        "common.network_utils.run_elevated_command",
        return_value=CommandResult(command="ss", exit_code=0, stdout=""),
    )

    assert get_port_listener(80, app_settings, mock_logger) is None


def test_port_probe_falls_back_to_socket(mocker, app_settings, mock_logger):
    mocker.patch(
        "common.network_utils.run_elevated_command",
        return_value=CommandResult(command="ss", exit_code=127),
    )
    sock = mocker.patch("common.network_utils.socket.socket")
    sock.return_value.__enter__.return_value.connect_ex.return_value = 0

    assert get_port_listener(80, app_settings, mock_logger) == "unknown"


def test_port_probe_socket_refused(mocker, app_settings, mock_logger):
    mocker.patch(
        "common.network_utils.run_elevated_command",
        return_value=CommandResult(command="ss", exit_code=127),
    )
    sock = mocker.patch("common.network_utils.socket.socket")
    sock.return_value.__enter__.return_value.connect_ex.return_value = 111

    assert get_port_listener(80, app_settings, mock_logger) is None
