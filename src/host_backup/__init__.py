"""Host backup orchestration package."""

from __future__ import annotations

from .config import load_config, CoreConfig  # noqa: F401
from .controller import RunController  # noqa: F401
from .orchestrator import BackupOrchestrator  # noqa: F401
