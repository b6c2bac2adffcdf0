from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from .config import CoreConfig, ServiceSpec
from .dumps import ChangeDetector, DumpRunner
from .errors import BackendInvocationFailed, BackupRunError, FilesystemError
from .notify import HealthNotifier
from .orchestrator import BackupOrchestrator
from .paths import PathResolver
from .plan import Notifier, RepositoryBackend, RunState
from .process import CommandRunner
from .repository import ResticRepository
from .retention import FilePruneStateStore, RetentionScheduler

LOG = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1

SYSTEM_FILES_FAILED = "system files backup FAILED"


class RunController:
    """Sequences one complete backup run and maps its result to an exit code.

    Order: pre-flight layout check, system files, services, ``forget``,
    ``prune`` when due, final status report. Every fatal error sends one down
    notification and yields exit code 1.
    """

    def __init__(
        self,
        orchestrator: BackupOrchestrator,
        repository: RepositoryBackend,
        scheduler: RetentionScheduler,
        notifier: Notifier,
        services: Sequence[ServiceSpec],
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._orchestrator = orchestrator
        self._repository = repository
        self._scheduler = scheduler
        self._notifier = notifier
        self._services: List[ServiceSpec] = list(services)
        self._clock = clock
        self.state: Optional[RunState] = None

    @classmethod
    def build(
        cls,
        config: CoreConfig,
        service_names: Optional[Sequence[str]] = None,
        command_runner: Optional[CommandRunner] = None,
        notifier: Optional[Notifier] = None,
    ) -> "RunController":
        services = config.select_services(service_names)
        commands = command_runner or CommandRunner()
        repository = ResticRepository.from_config(config, commands)
        dump_runner = DumpRunner.from_config(config.dumps, commands, ChangeDetector())
        orchestrator = BackupOrchestrator(
            config=config,
            repository=repository,
            dump_runner=dump_runner,
            path_resolver=PathResolver(),
        )
        scheduler = RetentionScheduler(
            FilePruneStateStore(config.prune_state_file),
            interval_days=config.retention.prune_interval_days,
        )
        return cls(
            orchestrator=orchestrator,
            repository=repository,
            scheduler=scheduler,
            notifier=notifier or HealthNotifier.from_config(config.notifications),
            services=services,
        )

    def run(self) -> int:
        state = RunState(started_at=datetime.utcnow(), last_prune_timestamp=self._scheduler.last_prune())
        self.state = state
        LOG.info("Backup started at: %s", state.started_at.strftime("%Y-%m-%d %H:%M:%S"))

        try:
            self._repository.open()
            system_files_ok = self._execute(state)
        except BackupRunError as exc:
            return self._abort(state, exc)
        except OSError as exc:
            return self._abort(state, FilesystemError(exc))
        finally:
            self._repository.close()

        if not system_files_ok:
            LOG.error("Run finished, but the system files backup failed")
            self._notifier.down(SYSTEM_FILES_FAILED)
            return state.finish(EXIT_FAILURE, SYSTEM_FILES_FAILED)

        self._notifier.up("OK")
        LOG.info("All operations completed successfully.")
        return state.finish(EXIT_OK)

    def _abort(self, state: RunState, exc: BackupRunError) -> int:
        LOG.error("%s", exc)
        LOG.error("%s, refer to logs", exc.notification)
        self._notifier.down(exc.notification)
        return state.finish(EXIT_FAILURE, exc.notification)

    def _execute(self, state: RunState) -> bool:
        self._orchestrator.verify_layout(self._services)

        system_files_ok = True
        try:
            self._orchestrator.backup_system_files(state)
        except BackendInvocationFailed as exc:
            # Not fatal: the services still get their snapshots.
            LOG.error("System files backup failed: %s", exc)
            self._notifier.down(exc.notification)
            system_files_ok = False

        self._orchestrator.run(self._services, state)

        LOG.info("Running forget step...")
        exit_code = self._repository.forget()
        if exit_code != 0:
            raise BackendInvocationFailed("forget", exit_code)
        LOG.info("restic forget completed successfully.")

        if self._scheduler.is_prune_due(int(self._clock())):
            LOG.info("Running prune operation...")
            exit_code = self._repository.prune()
            if exit_code != 0:
                raise BackendInvocationFailed("prune", exit_code)
            pruned_at = int(self._clock())
            self._scheduler.record_prune_completed(pruned_at)
            state.last_prune_timestamp = pruned_at

        return system_files_ok
