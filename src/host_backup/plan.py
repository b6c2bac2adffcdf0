from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Tuple


class ServiceState(enum.Enum):
    PENDING = "pending"
    DUMPING = "dumping"
    RESOLVING = "resolving"
    SKIPPED = "skipped"
    SUBMITTED = "submitted"
    COMMITTED = "committed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (ServiceState.SKIPPED, ServiceState.COMMITTED, ServiceState.FAILED)


class RepositoryBackend(Protocol):
    def open(self) -> None:
        ...

    def close(self) -> None:
        ...

    def backup(self, tag: str, paths: Sequence[Path]) -> int:
        ...

    def forget(self) -> int:
        ...

    def prune(self) -> int:
        ...


class Notifier(Protocol):
    def up(self, message: str = "OK") -> bool:
        ...

    def down(self, message: str) -> bool:
        ...


@dataclass(frozen=True)
class BackupInvocation:
    """One tagged ``restic backup`` submission."""

    tag: str
    paths: Tuple[Path, ...]

    @classmethod
    def build(cls, tag: str, *groups: Sequence[Path]) -> "BackupInvocation":
        seen = set()
        ordered: List[Path] = []
        for group in groups:
            for path in group:
                if path not in seen:
                    seen.add(path)
                    ordered.append(path)
        return cls(tag=tag, paths=tuple(ordered))

    @property
    def empty(self) -> bool:
        return not self.paths


@dataclass
class ServicePlan:
    """Working state for one service while it moves through the run."""

    name: str
    service_dir: Path
    state: ServiceState = ServiceState.PENDING
    dump_paths: List[Path] = field(default_factory=list)
    resolved_paths: List[Path] = field(default_factory=list)

    def invocation(self) -> BackupInvocation:
        return BackupInvocation.build(self.name, self.resolved_paths, self.dump_paths)

    def advance(self, state: ServiceState) -> None:
        if self.state.terminal:
            raise RuntimeError(f"Service {self.name} already finished as {self.state.value}")
        self.state = state


@dataclass
class ServiceOutcome:
    name: str
    state: ServiceState
    paths: Tuple[Path, ...] = ()
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.state is ServiceState.FAILED


@dataclass
class RunState:
    started_at: datetime
    outcomes: List[ServiceOutcome] = field(default_factory=list)
    last_prune_timestamp: Optional[int] = None
    exit_code: Optional[int] = None
    failure: Optional[str] = None
    completed_at: Optional[datetime] = None

    def record(self, outcome: ServiceOutcome) -> None:
        self.outcomes.append(outcome)

    @property
    def failed_services(self) -> List[str]:
        return [outcome.name for outcome in self.outcomes if outcome.failed]

    def finish(self, exit_code: int, failure: Optional[str] = None) -> int:
        self.exit_code = exit_code
        self.failure = failure
        self.completed_at = datetime.utcnow()
        return exit_code
