from __future__ import annotations

import enum
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from croniter import CroniterBadCronError, croniter
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import ConfigurationError

SYSTEM_FILES_TAG = "system_files"


class DbType(str, enum.Enum):
    NONE = "none"
    SQLITE = "sqlite"
    MARIADB = "mariadb"
    POSTGRES = "postgres"


# --- Services ----------------------------------------------------------------


class ServiceSpec(BaseModel):
    """One entry of the ``services`` mapping of the inventory."""

    model_config = ConfigDict(frozen=True)

    name: str
    db_type: DbType = DbType.NONE
    db_names: Tuple[str, ...] = ()
    container: Optional[str] = None
    db_user: Optional[str] = None
    db_password: Optional[str] = None
    paths: Tuple[str, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _merge_db_name(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        values = dict(values)
        single = values.pop("db_name", None)
        if values.get("db_type") is None:
            values["db_type"] = DbType.NONE
        names = list(values.get("db_names") or [])
        if single and single not in names:
            names.append(single)
        values["db_names"] = tuple(names)
        values["paths"] = tuple(values.get("paths") or ())
        return values

    @field_validator("name")
    @classmethod
    def _require_name(cls, value: str) -> str:
        if not value or "/" in value:
            raise ValueError(f"Invalid service name '{value}'")
        return value

    @model_validator(mode="after")
    def _check_database(self) -> "ServiceSpec":
        if self.db_type is DbType.NONE:
            return self
        if not self.db_names:
            raise ValueError(f"Service '{self.name}' declares db_type {self.db_type.value} without a database")
        if self.db_type in (DbType.MARIADB, DbType.POSTGRES):
            if len(self.db_names) != 1:
                raise ValueError(f"Service '{self.name}' must declare exactly one {self.db_type.value} database")
            if not self.container:
                raise ValueError(f"Service '{self.name}' needs a container for {self.db_type.value} dumps")
        return self

    @property
    def has_database(self) -> bool:
        return self.db_type is not DbType.NONE


class SystemFilesConfig(BaseModel):
    paths: List[str] = Field(default_factory=list)

    @field_validator("paths", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return value or []


# --- Behaviour tuning --------------------------------------------------------


class RetentionConfig(BaseModel):
    keep_daily: int = 3
    keep_weekly: int = 2
    keep_monthly: int = 6
    keep_yearly: int = 1
    group_by: str = "host,tag"
    prune_interval_days: int = 30

    @field_validator("keep_daily", "keep_weekly", "keep_monthly", "keep_yearly")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("Retention keep counts cannot be negative")
        return value

    @field_validator("prune_interval_days")
    @classmethod
    def _positive_interval(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("prune_interval_days must be positive")
        return value


class DumpConfig(BaseModel):
    max_attempts: int = 5
    backoff_seconds: float = 10.0

    @field_validator("max_attempts")
    @classmethod
    def _at_least_one(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_attempts must be at least 1")
        return value


class NotificationsConfig(BaseModel):
    push_url_env: Optional[str] = "PUSH_URL"
    timeout_seconds: float = 30.0
    retries: int = 5

    def resolve_push_url(self) -> Optional[str]:
        if not self.push_url_env:
            return None
        return os.getenv(self.push_url_env) or None


class ResticConfig(BaseModel):
    binary: str = "restic"
    exclude_file: str = "excludes.txt"


class SchedulerConfig(BaseModel):
    cron: str
    timezone: str = "UTC"
    run_on_startup: bool = False

    @field_validator("cron")
    @classmethod
    def _validate_cron(cls, value: str) -> str:
        try:
            croniter(value, datetime.now(timezone.utc))
        except (CroniterBadCronError, ValueError) as exc:  # pragma: no cover - library errors
            raise ValueError(f"Invalid cron expression '{value}': {exc}") from exc
        return value

    @field_validator("timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:  # pragma: no cover - library errors
            raise ValueError(f"Unknown timezone '{value}'") from exc
        return value


# --- Inventory ---------------------------------------------------------------


class CoreConfig(BaseModel):
    base_path: Path
    work_dir: Path = Field(default_factory=Path.cwd, description="Holds excludes, prune state and logs.")
    system_files: SystemFilesConfig = Field(default_factory=SystemFilesConfig)
    services: List[ServiceSpec] = Field(default_factory=list)
    retention: RetentionConfig = Field(default_factory=RetentionConfig)
    dumps: DumpConfig = Field(default_factory=DumpConfig)
    notifications: NotificationsConfig = Field(default_factory=NotificationsConfig)
    restic: ResticConfig = Field(default_factory=ResticConfig)
    scheduler: Optional[SchedulerConfig] = None

    @field_validator("base_path", mode="before")
    @classmethod
    def _require_base_path(cls, value: Any) -> Any:
        if value is None or str(value).strip() == "":
            raise ValueError("base_path is not defined")
        return value

    @field_validator("base_path", "work_dir")
    @classmethod
    def _expand_path(cls, value: Path) -> Path:
        return value.expanduser()

    @field_validator("services", mode="before")
    @classmethod
    def _services_from_mapping(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, dict):
            services = []
            for name, body in value.items():
                entry = dict(body or {})
                entry["name"] = str(name)
                services.append(entry)
            return services
        return value

    @model_validator(mode="after")
    def _unique_service_names(self) -> "CoreConfig":
        seen = set()
        for service in self.services:
            if service.name == SYSTEM_FILES_TAG:
                raise ValueError(f"'{SYSTEM_FILES_TAG}' is reserved and cannot be used as a service name")
            if service.name in seen:
                raise ValueError(f"Duplicate service '{service.name}'")
            seen.add(service.name)
        return self

    def service_dir(self, service: ServiceSpec) -> Path:
        return self.base_path / service.name

    def select_services(self, names: Optional[Sequence[str]] = None) -> List[ServiceSpec]:
        if not names:
            return list(self.services)
        name_set = set(names)
        missing = name_set - {service.name for service in self.services}
        if missing:
            raise ConfigurationError(f"Unknown service(s) requested: {', '.join(sorted(missing))}")
        return [service for service in self.services if service.name in name_set]

    @property
    def exclude_file(self) -> Path:
        return self.work_dir / self.restic.exclude_file

    @property
    def prune_state_file(self) -> Path:
        return self.work_dir / ".last_prune"


def load_config(path: Path) -> CoreConfig:
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            raw: Dict[str, Any] = yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Cannot parse {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Configuration root in {path} must be a mapping")
    raw.setdefault("work_dir", str(path.resolve().parent))

    try:
        return CoreConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc
