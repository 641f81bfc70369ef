from unittest.mock import call

import pytest

from common.command_utils import CommandResult
from common.file_utils import backup_file, remove_path_elevated, write_file_elevated

OK = CommandResult(command="ok", exit_code=0)


@pytest.fixture
def mock_elevated(mocker):
    return mocker.patch(
        "common.file_utils.run_elevated_command", return_value=OK
    )


def test_write_file_elevated_pipes_content_through_tee(
    app_settings, mock_logger, mock_elevated
):
    result = write_file_elevated(
        "/etc/nginx/sites-available/erp",
        "server {}",
        app_settings,
        mode="0644",
        current_logger=mock_logger,
    )

    assert result.ok
    first, second = mock_elevated.call_args_list
    assert first.args[0] == ["tee", "/etc/nginx/sites-available/erp"]
    assert first.kwargs["cmd_input"] == "server {}"
    assert second.args[0] == ["chmod", "0644", "/etc/nginx/sites-available/erp"]


def test_write_file_elevated_append(app_settings, mock_logger, mock_elevated):
    write_file_elevated(
        "/etc/hosts", "127.0.0.1 erp\n", app_settings, append=True,
        current_logger=mock_logger,
    )

    mock_elevated.assert_called_once()
    assert mock_elevated.call_args.args[0] == ["tee", "-a", "/etc/hosts"]


def test_write_file_elevated_failure_skips_chmod(
    app_settings, mock_logger, mock_elevated
):
    mock_elevated.return_value = CommandResult(
        command="tee", exit_code=1, stderr="Permission denied"
    )

    result = write_file_elevated(
        "/etc/x", "data", app_settings, mode="0440", current_logger=mock_logger
    )

    assert not result.ok
    mock_elevated.assert_called_once()
    mock_logger.error.assert_called()


def test_backup_missing_file_is_noop(tmp_path, app_settings, mock_logger, mock_elevated):
    assert backup_file(str(tmp_path / "absent"), app_settings, mock_logger) is True
    mock_elevated.assert_not_called()


def test_backup_existing_file(tmp_path, app_settings, mock_logger, mock_elevated):
    target = tmp_path / "site.conf"
    target.write_text("old", encoding="utf-8")

    assert backup_file(str(target), app_settings, mock_logger) is True

    argv = mock_elevated.call_args.args[0]
    assert argv[:3] == ["cp", "-a", str(target)]
    assert argv[3].startswith(f"{target}.bak.")


def test_backup_failure(tmp_path, app_settings, mock_logger, mock_elevated):
    target = tmp_path / "site.conf"
    target.write_text("old", encoding="utf-8")
    mock_elevated.return_value = CommandResult(command="cp", exit_code=1)

    assert backup_file(str(target), app_settings, mock_logger) is False


def test_remove_absent_path(tmp_path, app_settings, mock_logger, mock_elevated):
    result = remove_path_elevated(str(tmp_path / "gone"), app_settings, mock_logger)

    assert result.ok
    mock_elevated.assert_not_called()


def test_remove_existing_path(tmp_path, app_settings, mock_logger, mock_elevated):
    bench = tmp_path / "frappe-bench"
    bench.mkdir()

    remove_path_elevated(str(bench), app_settings, mock_logger)

    assert mock_elevated.call_args == call(
        ["rm", "-rf", str(bench)], app_settings, current_logger=mock_logger
    )


def test_remove_dangling_symlink(tmp_path, app_settings, mock_logger, mock_elevated):
    link = tmp_path / "enabled"
    link.symlink_to(tmp_path / "missing-target")

    remove_path_elevated(str(link), app_settings, mock_logger)

    mock_elevated.assert_called_once()
