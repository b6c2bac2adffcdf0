from __future__ import annotations

import enum
import hashlib
import logging
import os
from pathlib import Path

LOG = logging.getLogger(__name__)

_CHUNK_SIZE = 1024 * 1024


class ChangeDecision(enum.Enum):
    KEEP_PREVIOUS = "keep_previous"
    REPLACE = "replace"


def file_digest(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as fh:
        for chunk in iter(lambda: fh.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


class ChangeDetector:
    """Keeps one finalised dump per slot, replacing it only when content changed.

    The losing file is always removed: an unchanged candidate is deleted, a
    changed candidate is renamed over the previous dump.
    """

    def decide(self, previous_path: Path, candidate_path: Path) -> ChangeDecision:
        if not previous_path.exists():
            LOG.info("No previous backup found at %s, saving new backup", previous_path)
            os.replace(candidate_path, previous_path)
            return ChangeDecision.REPLACE

        old_hash = file_digest(previous_path)
        new_hash = file_digest(candidate_path)
        LOG.debug("old_hash=%s new_hash=%s", old_hash, new_hash)

        if old_hash == new_hash:
            LOG.info("No changes detected in %s, discarding %s", previous_path.name, candidate_path)
            candidate_path.unlink()
            return ChangeDecision.KEEP_PREVIOUS

        LOG.info("Changes detected, saving new backup to %s", previous_path)
        os.replace(candidate_path, previous_path)
        return ChangeDecision.REPLACE
