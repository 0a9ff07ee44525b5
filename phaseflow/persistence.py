"""
State Persistence

Reads and writes the project state file.

Locations:
- Real disk: <root>/.phaseflow/project/state.yaml
- Injected filesystem (rooted at the state directory): project/state.yaml

Writes are atomic: the document goes to state.yaml.tmp first and is renamed
over the real file. Optional fields that are unset are omitted from the file
rather than written as null.
"""

import logging
from pathlib import Path, PurePosixPath
from typing import Any, Optional, Tuple

import yaml
from pydantic import ValidationError

from . import config
from .errors import PersistenceError, StateFileError
from .filesystem import FileSystem, RootedFileSystem
from .models import ProjectState
from .states import label

logger = logging.getLogger("persistence")

TEMP_SUFFIX = ".tmp"


def _target(fs: Optional[FileSystem], base_dir: Optional[Path]) -> Tuple[FileSystem, str, str]:
    """Resolve (filesystem, relative path, path for messages)."""
    if fs is not None:
        return fs, config.STATE_FILE_RELATIVE, config.STATE_FILE_RELATIVE
    root = config.state_dir(base_dir)
    return RootedFileSystem(root), config.STATE_FILE_RELATIVE, str(root / config.STATE_FILE_RELATIVE)


def strip_nulls(value: Any) -> Any:
    """Recursively drop None-valued mapping keys and None list items."""
    if isinstance(value, dict):
        return {k: strip_nulls(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [strip_nulls(v) for v in value if v is not None]
    return value


# -----------------------------------------------------------------------------
# Read
# -----------------------------------------------------------------------------

def read_state(fs: Optional[FileSystem] = None, base_dir: Optional[Path] = None) -> Optional[ProjectState]:
    """
    Load project data from the state file.

    Returns None when there is no state file. Unreadable, malformed or
    invalid files raise StateFileError.
    """
    fs, path, display = _target(fs, base_dir)
    try:
        raw = fs.read_file(path)
    except FileNotFoundError:
        logger.debug(f"No state file at {display}")
        return None
    except OSError as e:
        raise StateFileError(display, str(e)) from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise StateFileError(display, f"invalid YAML: {e}") from e

    if not isinstance(data, dict):
        raise StateFileError(display, "expected a mapping at the top level")

    try:
        return ProjectState.model_validate(data)
    except ValidationError as e:
        raise StateFileError(display, f"invalid project data: {e}") from e


def state_exists(fs: Optional[FileSystem] = None, base_dir: Optional[Path] = None) -> bool:
    fs, path, display = _target(fs, base_dir)
    try:
        fs.read_file(path)
    except FileNotFoundError:
        return False
    except OSError as e:
        raise StateFileError(display, str(e)) from e
    return True


# -----------------------------------------------------------------------------
# Write
# -----------------------------------------------------------------------------

def dump_state(project: ProjectState) -> str:
    data = strip_nulls(project.model_dump(mode="json", exclude_none=True))
    return yaml.safe_dump(data, sort_keys=False, default_flow_style=False, allow_unicode=True)


def _remove_temp(fs: FileSystem, tmp_path: str) -> None:
    try:
        fs.remove(tmp_path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Failed to remove temp file {tmp_path}: {e}")


def write_state(
    project: Optional[ProjectState],
    state: Any,
    fs: Optional[FileSystem] = None,
    base_dir: Optional[Path] = None,
) -> None:
    """
    Atomically persist project data together with the engine state.

    A missing project is a no-op. Any mkdir, write or rename failure raises
    PersistenceError; the temp file is cleaned up on a best-effort basis.
    """
    if project is None:
        logger.debug("No project data, skipping save")
        return

    project.statechart.current_state = label(state)
    project.touch()
    text = dump_state(project)

    fs, path, display = _target(fs, base_dir)
    tmp_path = path + TEMP_SUFFIX

    try:
        fs.mkdir_all(str(PurePosixPath(path).parent))
    except OSError as e:
        raise PersistenceError("create directory for", display, str(e)) from e

    try:
        fs.write_file(tmp_path, text.encode("utf-8"))
        fs.rename(tmp_path, path)
    except OSError as e:
        _remove_temp(fs, tmp_path)
        raise PersistenceError("write", display, str(e)) from e

    logger.info(f"State saved: {project.statechart.current_state} ({display})")


def delete_state(fs: Optional[FileSystem] = None, base_dir: Optional[Path] = None) -> bool:
    """Remove the state file. Returns False if there was nothing to remove."""
    fs, path, display = _target(fs, base_dir)
    try:
        fs.remove(path)
    except FileNotFoundError:
        return False
    except OSError as e:
        raise PersistenceError("delete", display, str(e)) from e
    logger.info(f"State file deleted: {display}")
    return True
