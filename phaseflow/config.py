"""
Configuration

Environment-driven settings, read once at import.

    PHASEFLOW_ROOT                repository root holding the state directory (default: cwd)
    PHASEFLOW_STATE_DIR           name of the state directory (default: .phaseflow)
    PHASEFLOW_SUPPRESS_GUIDANCE   "1"/"true"/"yes" disables guidance output
    PHASEFLOW_LOG_LEVEL           logging level name (default: INFO)
    PHASEFLOW_HOST / PHASEFLOW_PORT  bind address for the HTTP API (default: 127.0.0.1:8000)
"""

import logging
import os
from pathlib import Path
from typing import Optional

# -----------------------------------------------------------------------------
# Constants
# -----------------------------------------------------------------------------
STATE_DIR_NAME = os.getenv("PHASEFLOW_STATE_DIR", ".phaseflow")
PROJECT_DIR_NAME = "project"
STATE_FILE_NAME = "state.yaml"

# Relative path of the state file inside an injected filesystem rooted at the state dir
STATE_FILE_RELATIVE = f"{PROJECT_DIR_NAME}/{STATE_FILE_NAME}"

API_HOST = os.getenv("PHASEFLOW_HOST", "127.0.0.1")
API_PORT = int(os.getenv("PHASEFLOW_PORT", "8000"))

LOG_LEVEL = os.getenv("PHASEFLOW_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_TRUTHY = ("1", "true", "yes", "on")


def env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUTHY


SUPPRESS_GUIDANCE = env_flag("PHASEFLOW_SUPPRESS_GUIDANCE")


def project_root(base_dir: Optional[Path] = None) -> Path:
    """Directory that holds the state directory."""
    if base_dir is not None:
        return Path(base_dir)
    return Path(os.getenv("PHASEFLOW_ROOT", os.getcwd()))


def state_dir(base_dir: Optional[Path] = None) -> Path:
    return project_root(base_dir) / STATE_DIR_NAME


def state_file_path(base_dir: Optional[Path] = None) -> Path:
    return state_dir(base_dir) / PROJECT_DIR_NAME / STATE_FILE_NAME


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO),
        format=LOG_FORMAT,
    )
