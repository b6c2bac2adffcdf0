from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Protocol

from host_backup.config import DbType, ServiceSpec
from host_backup.process import Command


# sqlite3 leaves a lone header page behind when the source database is empty
# or unreadable.
SQLITE_EMPTY_BACKUP_SIZE = 4096


@dataclass(frozen=True)
class Credentials:
    container: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None

    @classmethod
    def for_service(cls, service: ServiceSpec) -> "Credentials":
        return cls(container=service.container, user=service.db_user, password=service.db_password)


class DumpEngine(Protocol):
    name: str

    def target_path(self, service_dir: Path, db_name: str) -> str:
        ...

    def final_path(self, backup_dir: Path, service_name: str, target: str) -> Path:
        ...

    def command(self, target: str, credentials: Credentials, temp_path: Path) -> Command:
        ...

    def validate(self, temp_path: Path) -> Optional[str]:
        """Return a reason when the produced dump must be rejected."""
        ...


class SqliteEngine:
    name = "sqlite"
    binary = "sqlite3"

    def target_path(self, service_dir: Path, db_name: str) -> str:
        if db_name.startswith("/"):
            return db_name
        return str(service_dir / db_name)

    def final_path(self, backup_dir: Path, service_name: str, target: str) -> Path:
        db_path = Path(target)
        return backup_dir / f"{service_name}_{db_path.parent.name}_{db_path.stem}{db_path.suffix}"

    def command(self, target: str, credentials: Credentials, temp_path: Path) -> Command:  # noqa: ARG002
        return Command(args=(self.binary, target, f".backup '{temp_path}'"))

    def validate(self, temp_path: Path) -> Optional[str]:
        if not temp_path.exists():
            return "sqlite3 produced no output file"
        size = temp_path.stat().st_size
        if size == SQLITE_EMPTY_BACKUP_SIZE:
            return f"backup is {size} bytes, likely invalid"
        return None


class _ContainerEngine:
    name = ""

    def target_path(self, service_dir: Path, db_name: str) -> str:  # noqa: ARG002
        return db_name

    def final_path(self, backup_dir: Path, service_name: str, target: str) -> Path:
        return backup_dir / f"{service_name}_{Path(target).stem}.sql"

    def validate(self, temp_path: Path) -> Optional[str]:  # noqa: ARG002
        return None


class MariaDBEngine(_ContainerEngine):
    name = "mariadb"

    def command(self, target: str, credentials: Credentials, temp_path: Path) -> Command:
        return Command(
            args=(
                "docker",
                "exec",
                credentials.container or "",
                "mysqldump",
                "-u",
                credentials.user or "",
                f"--password={credentials.password or ''}",
                target,
                "--skip-comments",
            ),
            stdout_path=temp_path,
        )


class PostgresEngine(_ContainerEngine):
    name = "postgres"

    def command(self, target: str, credentials: Credentials, temp_path: Path) -> Command:
        return Command(
            args=(
                "docker",
                "exec",
                credentials.container or "",
                "pg_dump",
                "-U",
                credentials.user or "",
                target,
                "--no-comments",
            ),
            stdout_path=temp_path,
        )


_ENGINES: Dict[DbType, DumpEngine] = {
    DbType.SQLITE: SqliteEngine(),
    DbType.MARIADB: MariaDBEngine(),
    DbType.POSTGRES: PostgresEngine(),
}


def engine_for(db_type: DbType) -> DumpEngine:
    try:
        return _ENGINES[db_type]
    except KeyError:
        raise ValueError(f"No dump engine registered for '{db_type.value}'") from None
