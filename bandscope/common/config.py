"""
Runtime configuration.

Values come from an optional YAML file and are overridden by environment
variables, so a deployment can point the data root at a persistent volume
without editing files.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from bandscope.common.errors import StorageUnavailable


DEFAULT_DATA_ROOT = "/app/data"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_RUN_START_DELAY = 0.2
DEFAULT_RUN_STEP_DELAY = 0.42

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


@dataclass(frozen=True)
class Settings:
    """Resolved settings shared by the stores, the run broadcaster, and the API."""

    data_root: Path
    log_level: str = DEFAULT_LOG_LEVEL
    run_start_delay: float = DEFAULT_RUN_START_DELAY
    run_step_delay: float = DEFAULT_RUN_STEP_DELAY


def load_config_file(config_file: Optional[str]) -> Dict[str, Any]:
    """Loads the YAML configuration file; a missing path yields an empty mapping."""
    if not config_file:
        return {}
    path = Path(config_file)
    if not path.exists():
        return {}
    with open(path, "r") as fh:
        config = yaml.safe_load(fh)
    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ValueError(f"Configuration file {config_file} must contain a mapping.")
    return config


def _as_float(label: str, raw: Any) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid value '{raw}' for {label}.")
    if value < 0:
        raise ValueError(f"{label} must be >= 0.")
    return value


def load_settings(config_file: Optional[str] = None) -> Settings:
    config = load_config_file(config_file or os.getenv("BANDSCOPE_CONFIG"))

    data_root = os.getenv("BANDSCOPE_DATA_ROOT", str(config.get("data_root", DEFAULT_DATA_ROOT)))
    if not data_root or not data_root.strip():
        raise StorageUnavailable("Storage root is not configured (BANDSCOPE_DATA_ROOT is empty).")

    log_level = os.getenv("BANDSCOPE_LOG_LEVEL", str(config.get("log_level", DEFAULT_LOG_LEVEL)))
    start_delay = os.getenv("BANDSCOPE_RUN_START_DELAY", config.get("run_start_delay", DEFAULT_RUN_START_DELAY))
    step_delay = os.getenv("BANDSCOPE_RUN_STEP_DELAY", config.get("run_step_delay", DEFAULT_RUN_STEP_DELAY))

    return Settings(
        data_root=Path(data_root).expanduser(),
        log_level=log_level.upper(),
        run_start_delay=_as_float("run_start_delay", start_delay),
        run_step_delay=_as_float("run_step_delay", step_delay),
    )


def configure_logging(level: str = DEFAULT_LOG_LEVEL) -> None:
    """Install a basic root handler once; later calls only adjust the level."""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    root.setLevel(level)
