"""
Unit tests for the command line entry point (host_backup/cli.py).
"""

import os
from unittest.mock import patch

import pytest

from host_backup import cli


@pytest.fixture(autouse=True)
def _reset_logging(restore_root_logger):
    yield


@pytest.fixture
def inventory(tmp_path):
    (tmp_path / "srv" / "web").mkdir(parents=True)
    path = tmp_path / "config.yaml"
    path.write_text(
        f"base_path: {tmp_path / 'srv'}\n"
        "services:\n"
        "  web:\n"
        "    paths: [www]\n"
        "  api:\n"
        "    paths: [src]\n"
    )
    return path


def test_list_services(inventory, capsys):
    exit_code = cli.main(["--config", str(inventory), "--list-services"])

    assert exit_code == 0
    assert capsys.readouterr().out.splitlines() == ["web", "api"]
    assert (inventory.parent / "logs" / "backup.log").exists()


def test_env_file_is_loaded(inventory):
    (inventory.parent / ".env").write_text("HOST_BACKUP_TEST_REPOSITORY=/tmp/repo\n")

    try:
        cli.main(["--config", str(inventory), "--list-services"])
        assert os.environ["HOST_BACKUP_TEST_REPOSITORY"] == "/tmp/repo"
    finally:
        os.environ.pop("HOST_BACKUP_TEST_REPOSITORY", None)


def test_missing_config_exits_with_failure(tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--config", str(tmp_path / "missing.yaml"), "--log-dir", str(tmp_path / "logs")])

    assert excinfo.value.code == 1


def test_run_returns_controller_exit_code(inventory):
    with patch.object(cli.RunController, "run", return_value=0) as run:
        exit_code = cli.main(["--config", str(inventory), "--service", "web"])

    assert exit_code == 0
    run.assert_called_once_with()


def test_unknown_service_is_a_failure(inventory):
    assert cli.main(["--config", str(inventory), "--service", "nope"]) == 1


def test_scheduler_block_starts_the_schedule(inventory):
    inventory.write_text(inventory.read_text() + "scheduler:\n  cron: '0 3 * * *'\n")

    with patch.object(cli.BackupSchedule, "install_signal_handlers") as install, patch.object(
        cli.BackupSchedule, "serve", return_value=0
    ) as serve:
        exit_code = cli.main(["--config", str(inventory)])

    assert exit_code == 0
    install.assert_called_once_with()
    assert serve.call_args.args[0].scheduler.cron == "0 3 * * *"
