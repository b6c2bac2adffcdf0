from __future__ import annotations

import logging
import shutil
import string
import tempfile
from pathlib import Path
from typing import List, Mapping, Optional, Sequence

from .config import CoreConfig, RetentionConfig
from .process import Command, CommandRunner

LOG = logging.getLogger(__name__)


def render_excludes(source: Path, destination: Path, variables: Mapping[str, str]) -> Path:
    """Copy an exclude list, substituting ``$NAME`` / ``${NAME}`` references."""
    template = string.Template(source.read_text(encoding="utf-8"))
    destination.write_text(template.safe_substitute(variables), encoding="utf-8")
    return destination


class ResticRepository:
    """Repository backend driven through the ``restic`` command line.

    Use it as a context manager so the rendered exclude list lives for the
    duration of a run and is removed afterwards.
    """

    def __init__(
        self,
        command_runner: CommandRunner,
        retention: RetentionConfig,
        binary: str = "restic",
        exclude_source: Optional[Path] = None,
        exclude_variables: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._commands = command_runner
        self._retention = retention
        self._binary = binary
        self._exclude_source = exclude_source
        self._exclude_variables = dict(exclude_variables or {})
        self._workspace: Optional[Path] = None
        self.exclude_file: Optional[Path] = None

    @classmethod
    def from_config(cls, config: CoreConfig, command_runner: CommandRunner) -> "ResticRepository":
        return cls(
            command_runner=command_runner,
            retention=config.retention,
            binary=config.restic.binary,
            exclude_source=config.exclude_file,
            exclude_variables={"DIR": str(config.work_dir), "BASE_PATH": str(config.base_path)},
        )

    def __enter__(self) -> "ResticRepository":
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def open(self) -> None:
        if self._exclude_source is None or not self._exclude_source.is_file():
            LOG.info("No exclude file at %s; backing up without excludes", self._exclude_source)
            return
        self._workspace = Path(tempfile.mkdtemp(prefix="host-backup-"))
        self.exclude_file = render_excludes(
            self._exclude_source, self._workspace / "excludes.txt", self._exclude_variables
        )
        LOG.debug("Rendered exclude list %s", self.exclude_file)

    def close(self) -> None:
        if self._workspace is not None:
            shutil.rmtree(self._workspace, ignore_errors=True)
        self._workspace = None
        self.exclude_file = None

    # Backend contract ------------------------------------------------------
    def backup(self, tag: str, paths: Sequence[Path]) -> int:
        args: List[str] = [self._binary, "backup", "--tag", tag]
        if self.exclude_file is not None:
            args.append(f"--exclude-file={self.exclude_file}")
        args.extend(str(path) for path in paths)
        return self._commands.run(Command(args=tuple(args)))

    def forget(self) -> int:
        policy = self._retention
        args = (
            self._binary,
            "forget",
            "--group-by",
            policy.group_by,
            "--keep-daily",
            str(policy.keep_daily),
            "--keep-weekly",
            str(policy.keep_weekly),
            "--keep-monthly",
            str(policy.keep_monthly),
            "--keep-yearly",
            str(policy.keep_yearly),
        )
        return self._commands.run(Command(args=args))

    def prune(self) -> int:
        return self._commands.run(Command(args=(self._binary, "prune")))
