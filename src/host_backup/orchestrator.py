from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Sequence

from .config import SYSTEM_FILES_TAG, CoreConfig, ServiceSpec
from .dumps import DumpRunner
from .errors import BackendInvocationFailed, BackupRunError, ConfigurationError, FilesystemError
from .paths import PathResolver
from .plan import RepositoryBackend, RunState, ServiceOutcome, ServicePlan, ServiceState

LOG = logging.getLogger(__name__)

BACKUP_DIR_NAME = "backup"
SYSTEM_ROOT = Path("/")


class BackupOrchestrator:
    """Turns the service inventory into tagged repository snapshots, one service at a time.

    Any failure stops the remaining services: the error is recorded on the
    run state and raised to the caller.
    """

    def __init__(
        self,
        config: CoreConfig,
        repository: RepositoryBackend,
        dump_runner: DumpRunner,
        path_resolver: PathResolver,
    ) -> None:
        self._config = config
        self._repository = repository
        self._dumps = dump_runner
        self._resolver = path_resolver

    def verify_layout(self, services: Sequence[ServiceSpec]) -> None:
        base_path = self._config.base_path
        if not base_path.is_dir():
            raise ConfigurationError(f"Base path {base_path} does not exist")
        for service in services:
            service_dir = self._config.service_dir(service)
            if not service_dir.is_dir():
                raise ConfigurationError(f"Service directory {service_dir} does not exist")

    def backup_system_files(self, state: RunState) -> ServiceOutcome:
        LOG.info("Backing up system files...")
        plan = ServicePlan(name=SYSTEM_FILES_TAG, service_dir=SYSTEM_ROOT)
        if not self._config.system_files.paths:
            LOG.info("No system files specified.")
        plan.advance(ServiceState.RESOLVING)
        plan.resolved_paths = self._resolver.resolve_all(SYSTEM_ROOT, self._config.system_files.paths)
        return self._submit(plan, state)

    def run(self, services: Sequence[ServiceSpec], state: RunState) -> List[ServiceOutcome]:
        outcomes: List[ServiceOutcome] = []
        for service in services:
            outcomes.append(self.backup_service(service, state))
        return outcomes

    def backup_service(self, service: ServiceSpec, state: RunState) -> ServiceOutcome:
        service_dir = self._config.service_dir(service)
        plan = ServicePlan(name=service.name, service_dir=service_dir)
        LOG.debug("service_name=%s service_dir=%s", service.name, service_dir)

        try:
            if not service_dir.is_dir():
                raise ConfigurationError(f"Service directory {service_dir} does not exist")

            LOG.info("Starting backup for %s...", service.name)
            if service.has_database:
                plan.advance(ServiceState.DUMPING)
                backup_dir = service_dir / BACKUP_DIR_NAME
                backup_dir.mkdir(parents=True, exist_ok=True)
                for db_name in service.db_names:
                    plan.dump_paths.append(
                        self._dumps.dump_database(service, db_name, service_dir, backup_dir)
                    )

            plan.advance(ServiceState.RESOLVING)
            plan.resolved_paths = self._resolver.resolve_all(service_dir, service.paths)
        except BackupRunError as exc:
            self._fail(plan, state, exc)
            raise
        except OSError as exc:
            error = FilesystemError(exc)
            self._fail(plan, state, error)
            raise error from exc

        return self._submit(plan, state)

    def _submit(self, plan: ServicePlan, state: RunState) -> ServiceOutcome:
        invocation = plan.invocation()
        if invocation.empty:
            LOG.info("No paths specified for %s, skipping file backup.", plan.name)
            plan.advance(ServiceState.SKIPPED)
            outcome = ServiceOutcome(name=plan.name, state=plan.state)
            state.record(outcome)
            return outcome

        plan.advance(ServiceState.SUBMITTED)
        LOG.debug("Submitting %s with paths %s", invocation.tag, [str(p) for p in invocation.paths])
        exit_code = self._repository.backup(invocation.tag, invocation.paths)
        if exit_code != 0:
            LOG.error("Backup for %s failed.", plan.name)
            error = BackendInvocationFailed("backup", exit_code, tag=invocation.tag)
            self._fail(plan, state, error)
            raise error

        plan.advance(ServiceState.COMMITTED)
        LOG.info("Backup for %s completed successfully.", plan.name)
        outcome = ServiceOutcome(name=plan.name, state=plan.state, paths=invocation.paths)
        state.record(outcome)
        return outcome

    @staticmethod
    def _fail(plan: ServicePlan, state: RunState, exc: Exception) -> None:
        plan.advance(ServiceState.FAILED)
        state.record(ServiceOutcome(name=plan.name, state=plan.state, error=str(exc)))
