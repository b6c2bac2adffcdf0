from __future__ import annotations

import glob
import logging
import os
from pathlib import Path
from typing import List, Sequence

LOG = logging.getLogger(__name__)

_WILDCARDS = ("*", "?", "[")


def has_wildcard(pattern: str) -> bool:
    return any(char in pattern for char in _WILDCARDS)


class PathResolver:
    """Turns declared path patterns into absolute filesystem paths."""

    def resolve(self, base_dir: Path, pattern: str) -> List[Path]:
        if pattern.startswith(os.sep):
            candidate = pattern
        else:
            candidate = os.path.join(str(base_dir), pattern)

        if not has_wildcard(pattern):
            return [Path(candidate)]

        matches = sorted(glob.glob(candidate))
        if not matches:
            LOG.info("Pattern %s matched nothing", candidate)
        return [Path(match) for match in matches]

    def resolve_all(self, base_dir: Path, patterns: Sequence[str]) -> List[Path]:
        resolved: List[Path] = []
        for pattern in patterns:
            resolved.extend(self.resolve(base_dir, pattern))
        LOG.debug("Resolved %s under %s to %s", list(patterns), base_dir, resolved)
        return resolved
