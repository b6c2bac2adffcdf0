from .change_detector import ChangeDecision, ChangeDetector
from .engines import Credentials, MariaDBEngine, PostgresEngine, SqliteEngine, engine_for
from .runner import DumpResult, DumpRunner

__all__ = [
    "ChangeDecision",
    "ChangeDetector",
    "Credentials",
    "DumpResult",
    "DumpRunner",
    "MariaDBEngine",
    "PostgresEngine",
    "SqliteEngine",
    "engine_for",
]
