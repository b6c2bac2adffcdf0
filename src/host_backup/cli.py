from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from dotenv import load_dotenv

from .config import CoreConfig, load_config
from .controller import EXIT_FAILURE, RunController
from .errors import ConfigurationError
from .logger import configure_logging, get_logger
from .scheduler import BackupSchedule

DEFAULT_CONFIG_PATH = "config.yaml"
DEFAULT_ENV_FILE = ".env"

LOG = get_logger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Back up host services to a restic repository.")
    parser.add_argument(
        "--config",
        default=os.getenv("CONFIG_PATH", DEFAULT_CONFIG_PATH),
        help="Path to the service inventory YAML file.",
    )
    parser.add_argument(
        "--env-file",
        help="Environment file with restic credentials and PUSH_URL (default: .env beside the inventory).",
    )
    parser.add_argument(
        "--service",
        action="append",
        help="Specific service to back up (can be specified multiple times). Backs up all services when omitted.",
    )
    parser.add_argument(
        "--list-services",
        action="store_true",
        help="List services defined in the inventory and exit.",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Log level (default INFO).",
    )
    parser.add_argument(
        "--log-dir",
        help="Directory for backup.log and its rotated copies (default: logs/ beside the inventory).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=os.getenv("DEBUG", "").lower() in ("1", "true", "yes"),
        help="Log commands, resolved paths and hashes.",
    )
    return parser.parse_args(argv)


def load_configuration(path: Path) -> CoreConfig:
    try:
        return load_config(path)
    except ConfigurationError as exc:
        LOG.error("Configuration error: %s", exc)
        raise SystemExit(EXIT_FAILURE) from exc


def list_services(config: CoreConfig) -> None:
    for service in config.services:
        print(service.name)


def run_backup(config: CoreConfig, service_names: Optional[List[str]]) -> int:
    try:
        controller = RunController.build(config, service_names)
    except ConfigurationError as exc:
        LOG.error("Configuration error: %s", exc)
        return EXIT_FAILURE
    exit_code = controller.run()
    if controller.state and controller.state.failure:
        LOG.error("Backup run failed: %s", controller.state.failure)
    return exit_code


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    config_path = Path(args.config).expanduser()

    log_dir = Path(args.log_dir).expanduser() if args.log_dir else config_path.resolve().parent / "logs"
    configure_logging("DEBUG" if args.debug else args.log_level, log_dir)

    env_file = Path(args.env_file).expanduser() if args.env_file else config_path.resolve().parent / DEFAULT_ENV_FILE
    if env_file.is_file():
        load_dotenv(env_file, override=False)
        LOG.debug("Loaded environment from %s", env_file)
    else:
        LOG.warning("Environment file %s not found; relying on the process environment", env_file)

    config = load_configuration(config_path)

    if args.list_services:
        list_services(config)
        return 0

    service_names = args.service if args.service else None
    if config.scheduler:
        schedule = BackupSchedule(config_path, run_backup, service_names)
        schedule.install_signal_handlers()
        return schedule.serve(config)
    return run_backup(config, service_names)


if __name__ == "__main__":
    sys.exit(main())
