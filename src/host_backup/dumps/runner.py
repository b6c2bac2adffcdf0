from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from host_backup.config import DumpConfig, ServiceSpec
from host_backup.errors import DumpExhausted
from host_backup.process import CommandRunner

from .change_detector import ChangeDetector
from .engines import Credentials, DumpEngine, engine_for

LOG = logging.getLogger(__name__)


@dataclass
class DumpResult:
    temp_path: Path
    final_path: Path
    size_bytes: int
    success: bool
    attempts: int


class DumpRunner:
    """Runs database dumps with bounded retries and hands results to the change detector."""

    def __init__(
        self,
        command_runner: CommandRunner,
        change_detector: ChangeDetector,
        max_attempts: int = 5,
        backoff_seconds: float = 10.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._commands = command_runner
        self._detector = change_detector
        self._max_attempts = max_attempts
        self._backoff_seconds = backoff_seconds
        self._sleep = sleep

    @classmethod
    def from_config(
        cls, config: DumpConfig, command_runner: CommandRunner, change_detector: ChangeDetector
    ) -> "DumpRunner":
        return cls(
            command_runner=command_runner,
            change_detector=change_detector,
            max_attempts=config.max_attempts,
            backoff_seconds=config.backoff_seconds,
        )

    def run(self, engine: DumpEngine, target: str, credentials: Credentials, output_path: Path) -> DumpResult:
        temp_path = output_path.with_name(output_path.name + ".tmp")
        command = engine.command(target, credentials, temp_path)

        for attempt in range(1, self._max_attempts + 1):
            exit_code = self._commands.run(command)
            if exit_code == 0:
                reason = engine.validate(temp_path)
                if reason is None:
                    size = temp_path.stat().st_size
                    LOG.info("Backup created at %s (%d bytes)", temp_path, size)
                    return DumpResult(temp_path, output_path, size, True, attempt)
                LOG.error("Invalid %s dump of %s: %s", engine.name, target, reason)
            else:
                LOG.warning(
                    "%s dump of %s exited with %s (attempt %d of %d)",
                    engine.name,
                    target,
                    exit_code,
                    attempt,
                    self._max_attempts,
                )

            temp_path.unlink(missing_ok=True)
            if attempt < self._max_attempts:
                self._sleep(self._backoff_seconds)

        LOG.error("Backup failed for %s database %s after %d attempts", engine.name, target, self._max_attempts)
        return DumpResult(temp_path, output_path, 0, False, self._max_attempts)

    def dump_database(self, service: ServiceSpec, db_name: str, service_dir: Path, backup_dir: Path) -> Path:
        engine = engine_for(service.db_type)
        target = engine.target_path(service_dir, db_name)
        final_path = engine.final_path(backup_dir, service.name, target)
        LOG.debug("Dumping %s database %s to %s", engine.name, target, final_path)

        result = self.run(engine, target, Credentials.for_service(service), final_path)
        if not result.success:
            raise DumpExhausted(service.name, result.attempts)

        self._detector.decide(result.final_path, result.temp_path)
        LOG.info("%s db backup completed", service.name)
        return result.final_path
