from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Mapping, Optional, Tuple, Union

LOG = logging.getLogger(__name__)

# Exit status reported when the executable itself cannot be started.
COMMAND_NOT_FOUND = 127

_SECRET_PREFIXES = ("--password=",)


@dataclass(frozen=True)
class Command:
    """An external program invocation expressed as an argument list."""

    args: Tuple[str, ...]
    stdout_path: Optional[Path] = None

    def display(self) -> str:
        shown = []
        for arg in self.args:
            for prefix in _SECRET_PREFIXES:
                if arg.startswith(prefix):
                    arg = f"{prefix}****"
            shown.append(arg)
        line = " ".join(shown)
        if self.stdout_path is not None:
            line += f" > {self.stdout_path}"
        return line


class CommandRunner:
    """Runs commands synchronously and reports their exit status.

    Output of commands without a redirect is logged line by line while the
    command runs, stderr interleaved with stdout.
    """

    def __init__(self, env: Optional[Mapping[str, str]] = None) -> None:
        self._env = dict(env) if env is not None else None

    def run(self, command: Command) -> int:
        LOG.debug("Running %s", command.display())
        if command.stdout_path is not None:
            with command.stdout_path.open("wb") as out:
                return self._redirected(command, out)
        return self._streamed(command)

    def _start(self, command: Command, stdout: Union[int, IO[bytes]], stderr: int) -> Optional[subprocess.Popen]:
        try:
            return subprocess.Popen(list(command.args), env=self._env, stdout=stdout, stderr=stderr)
        except FileNotFoundError:
            LOG.error("Executable not found: %s", command.args[0])
            return None

    def _redirected(self, command: Command, out: IO[bytes]) -> int:
        process = self._start(command, out, subprocess.PIPE)
        if process is None:
            return COMMAND_NOT_FOUND
        _, stderr = process.communicate()
        message = stderr.decode("utf-8", "ignore").strip()
        if process.returncode != 0 and message:
            LOG.error("%s failed: %s", command.args[0], message)
        elif message:
            LOG.debug("%s stderr: %s", command.args[0], message)
        return process.returncode

    def _streamed(self, command: Command) -> int:
        process = self._start(command, subprocess.PIPE, subprocess.STDOUT)
        if process is None:
            return COMMAND_NOT_FOUND
        with process:
            for line in process.stdout:
                LOG.info("  %s", line.decode("utf-8", "ignore").rstrip())
        if process.returncode != 0:
            LOG.error("%s exited with status %d", command.args[0], process.returncode)
        return process.returncode
