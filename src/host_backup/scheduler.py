from __future__ import annotations

import logging
import signal
import threading
from datetime import datetime, tzinfo
from pathlib import Path
from typing import Callable, List, Optional
from zoneinfo import ZoneInfo

from croniter import croniter

from .config import CoreConfig, SchedulerConfig, load_config
from .errors import ConfigurationError

LOG = logging.getLogger(__name__)

# Longest single sleep, so a stop request or clock change is noticed quickly.
MAX_WAIT_SECONDS = 60

BackupRun = Callable[[CoreConfig, Optional[List[str]]], int]


def next_fire_time(cron_expression: str, after: datetime) -> datetime:
    return croniter(cron_expression, after).get_next(datetime)


class BackupSchedule:
    """Repeats backup runs on the inventory's cron schedule until stopped.

    The inventory is re-read before every run, so edits to services or to
    the schedule itself take effect without a restart. Removing the
    ``scheduler`` block ends the loop. A run that fails does not stop the
    schedule; its exit code is kept in ``last_exit_code``.
    """

    def __init__(
        self,
        config_path: Path,
        run_backup: BackupRun,
        service_names: Optional[List[str]] = None,
        loader: Callable[[Path], CoreConfig] = load_config,
        clock: Callable[[tzinfo], datetime] = datetime.now,
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        self._config_path = config_path
        self._run_backup = run_backup
        self._service_names = service_names
        self._loader = loader
        self._clock = clock
        self._stop = stop_event or threading.Event()
        self.runs = 0
        self.last_exit_code: Optional[int] = None

    def install_signal_handlers(self) -> None:
        def _handle_signal(signum: int, _frame: Optional[object]) -> None:
            LOG.info("Received signal %s; stopping after the current run", signum)
            self.stop()

        signal.signal(signal.SIGTERM, _handle_signal)
        signal.signal(signal.SIGINT, _handle_signal)

    def stop(self) -> None:
        self._stop.set()

    def serve(self, config: CoreConfig) -> int:
        if config.scheduler is None:
            raise ConfigurationError("The inventory has no scheduler block")
        settings: SchedulerConfig = config.scheduler
        zone = ZoneInfo(settings.timezone)

        if settings.run_on_startup:
            next_run = self._clock(zone)
            LOG.info("Running the first backup immediately")
        else:
            next_run = next_fire_time(settings.cron, self._clock(zone))
            LOG.info("Next backup scheduled for %s", next_run.isoformat())

        while not self._stop.is_set():
            now = self._clock(zone)
            if now < next_run:
                self._stop.wait(min((next_run - now).total_seconds(), MAX_WAIT_SECONDS))
                continue

            try:
                config = self._loader(self._config_path)
            except ConfigurationError as exc:
                LOG.error("Reloading %s failed: %s; using the previous inventory", self._config_path, exc)
            else:
                if config.scheduler is None:
                    LOG.info("Scheduler block removed from %s; stopping", self._config_path)
                    break
                settings = config.scheduler
                zone = ZoneInfo(settings.timezone)

            self.last_exit_code = self._run_backup(config, self._service_names)
            self.runs += 1
            if self.last_exit_code != 0:
                LOG.warning("Scheduled backup finished with exit code %s", self.last_exit_code)

            next_run = next_fire_time(settings.cron, self._clock(zone))
            LOG.info("Next backup scheduled for %s", next_run.isoformat())

        LOG.info("Backup schedule stopped after %d run(s)", self.runs)
        return 0
