"""
Shared pytest fixtures for host_backup tests.

Provides:
- A fake command runner standing in for restic, sqlite3 and docker
- A fake health notifier
- An inventory builder rooted in a temporary directory
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from host_backup import logger as backup_logger
from host_backup.config import CoreConfig
from host_backup.process import Command

SQLITE_BACKUP_PREFIX = ".backup '"


class FakeCommandRunner:
    """Records commands and plays the part of the external tools."""

    def __init__(self):
        self.commands: List[Command] = []
        self.exit_codes: Dict[str, int] = {}
        self.backup_exit_codes: Dict[str, int] = {}
        self.dump_outputs: List[bytes] = []
        self.default_dump_output = b"-- dump contents\n"

    def run(self, command: Command) -> int:
        self.commands.append(command)
        program = command.args[0]
        if program == "restic":
            subcommand = command.args[1]
            if subcommand == "backup":
                return self.backup_exit_codes.get(command.args[3], 0)
            return self.exit_codes.get(subcommand, 0)
        if program == "sqlite3":
            target = command.args[2][len(SQLITE_BACKUP_PREFIX):-1]
            Path(target).write_bytes(self._next_dump())
            return self.exit_codes.get("sqlite3", 0)
        if program == "docker":
            command.stdout_path.write_bytes(self._next_dump())
            return self.exit_codes.get(command.args[3], 0)
        raise AssertionError(f"Unexpected command {command.args}")

    def _next_dump(self) -> bytes:
        if self.dump_outputs:
            return self.dump_outputs.pop(0)
        return self.default_dump_output

    def calls(self, program: str, subcommand: Optional[str] = None) -> List[Command]:
        return [
            command
            for command in self.commands
            if command.args[0] == program and (subcommand is None or command.args[1] == subcommand)
        ]


class FakeNotifier:
    def __init__(self):
        self.sent = []

    def up(self, message="OK"):
        self.sent.append(("up", message))
        return True

    def down(self, message):
        self.sent.append(("down", message))
        return True


@pytest.fixture
def command_runner():
    return FakeCommandRunner()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def base_path(tmp_path):
    path = tmp_path / "srv"
    path.mkdir()
    return path


@pytest.fixture
def work_dir(tmp_path):
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def make_config(base_path, work_dir):
    """Build a validated inventory; service directories are created unless listed in ``missing``."""

    def _make(services=None, system_paths=None, missing=(), **extra):
        raw = {
            "base_path": str(base_path),
            "work_dir": str(work_dir),
            "system_files": {"paths": system_paths or []},
            "services": services or {},
            "dumps": {"max_attempts": 5, "backoff_seconds": 0},
            "notifications": {"push_url_env": None},
        }
        raw.update(extra)
        for name in raw["services"]:
            if name not in missing:
                (base_path / name).mkdir(exist_ok=True)
        return CoreConfig.model_validate(raw)

    return _make


@pytest.fixture
def restore_root_logger():
    """Drop the handlers configure_logging installs on the root logger."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if type(handler) in (logging.StreamHandler, logging.FileHandler):
            root.removeHandler(handler)
            handler.close()
    backup_logger._installed.clear()
    root.setLevel(level)
