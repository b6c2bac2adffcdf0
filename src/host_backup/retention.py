from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Protocol

LOG = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


class PruneStateStore(Protocol):
    def read(self) -> Optional[int]:
        if not self.path.exists():
            return None
        try:
            raw = self.path.read_text(encoding="utf-8").strip()
            return int(raw)
        except (OSError, UnicodeDecodeError, ValueError) as exc:
            LOG.warning("Ignoring unreadable prune timestamp in %s: %s", self.path, exc)
            return None

    def write(self, timestamp: int) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(f"{timestamp}\n", encoding="utf-8")
        tmp.replace(self.path)


def is_prune_due(last_prune_timestamp: Optional[int], now: int, interval_days: int = 30) -> bool:
    if last_prune_timestamp is None:
        return True
    return now - last_prune_timestamp >= interval_days * SECONDS_PER_DAY


class RetentionScheduler:
    def __init__(self, store: PruneStateStore, interval_days: int = 30) -> None:
        self._store = store
        self.interval_days = interval_days

    def last_prune(self) -> Optional[int]:
        return self._store.read()

    def is_prune_due(self, now: int) -> bool:
        last = self._store.read()
        if last is None:
            LOG.info("Prune has never been run. Proceeding with prune.")
            return True
        if is_prune_due(last, now, self.interval_days):
            LOG.info("Prune interval met. Proceeding with prune.")
            return True
        remaining = last + self.interval_days * SECONDS_PER_DAY - now
        LOG.info("%d days until the next prune.", remaining // SECONDS_PER_DAY)
        return False

    def record_prune_completed(self, now: int) -> None:
        self._store.write(now)
        LOG.debug("Updated last prune time to %s", now)
