"""
Filesystem Abstraction

The minimal set of file operations persistence needs, so state can be read
and written against the real disk or an in-memory double.

Implementations:
- RootedFileSystem: real disk, every path resolved under a fixed root
- MemoryFileSystem: dict-backed, for tests
"""

import logging
import os
from pathlib import Path, PurePosixPath
from typing import Dict, Protocol, Set, Union

logger = logging.getLogger("filesystem")

PathLike = Union[str, os.PathLike]


class FileSystem(Protocol):
    """Paths are relative to the filesystem's root and use forward slashes."""

    def read_file(self, path: str) -> bytes:
        """Return file contents. Raises FileNotFoundError if absent."""
        ...

    def write_file(self, path: str, data: bytes) -> None:
        ...

    def mkdir_all(self, path: str) -> None:
        ...

    def rename(self, old: str, new: str) -> None:
        """Replace new with old, overwriting new if it exists."""
        ...

    def remove(self, path: str) -> None:
        """Raises FileNotFoundError if absent."""
        ...


# -----------------------------------------------------------------------------
# Real Disk
# -----------------------------------------------------------------------------

class RootedFileSystem:
    """
    Filesystem confined to a root directory.

    Absolute paths and paths that climb out of the root are rejected with
    PermissionError.
    """

    def __init__(self, root: PathLike):
        self.root = Path(root).resolve()

    def __repr__(self) -> str:
        return f"RootedFileSystem({str(self.root)!r})"

    def _resolve(self, path: str) -> Path:
        if os.path.isabs(path):
            raise PermissionError(f"Absolute path not allowed: {path}")
        full = (self.root / path).resolve()
        if full != self.root and self.root not in full.parents:
            logger.warning(f"Rejected path outside {self.root}: {path}")
            raise PermissionError(f"Path escapes filesystem root: {path}")
        return full

    def read_file(self, path: str) -> bytes:
        return self._resolve(path).read_bytes()

    def write_file(self, path: str, data: bytes) -> None:
        self._resolve(path).write_bytes(data)

    def mkdir_all(self, path: str) -> None:
        self._resolve(path).mkdir(parents=True, exist_ok=True)

    def rename(self, old: str, new: str) -> None:
        os.replace(self._resolve(old), self._resolve(new))

    def remove(self, path: str) -> None:
        self._resolve(path).unlink()


# -----------------------------------------------------------------------------
# In Memory
# -----------------------------------------------------------------------------

def _normalize(path: str) -> str:
    parts = []
    for part in PurePosixPath(path).parts:
        if part in ("", "."):
            continue
        if part == "..":
            if not parts:
                raise PermissionError(f"Path escapes filesystem root: {path}")
            parts.pop()
            continue
        parts.append(part)
    return "/".join(parts)


class MemoryFileSystem:
    """
    In-memory filesystem.

    Writing a file requires its parent directory to exist, like the real
    thing, so callers that forget mkdir_all fail in tests too.
    """

    def __init__(self):
        self.files: Dict[str, bytes] = {}
        self.dirs: Set[str] = {""}

    def _check_parent(self, path: str) -> None:
        parent = str(PurePosixPath(path).parent)
        parent = "" if parent == "." else parent
        if parent not in self.dirs:
            raise FileNotFoundError(f"No such directory: {parent}")

    def read_file(self, path: str) -> bytes:
        key = _normalize(path)
        if key not in self.files:
            raise FileNotFoundError(f"No such file: {path}")
        return self.files[key]

    def write_file(self, path: str, data: bytes) -> None:
        key = _normalize(path)
        self._check_parent(key)
        self.files[key] = bytes(data)

    def mkdir_all(self, path: str) -> None:
        key = _normalize(path)
        parts = key.split("/") if key else []
        for i in range(1, len(parts) + 1):
            self.dirs.add("/".join(parts[:i]))

    def rename(self, old: str, new: str) -> None:
        src, dst = _normalize(old), _normalize(new)
        if src not in self.files:
            raise FileNotFoundError(f"No such file: {old}")
        self._check_parent(dst)
        self.files[dst] = self.files.pop(src)

    def remove(self, path: str) -> None:
        key = _normalize(path)
        if key not in self.files:
            raise FileNotFoundError(f"No such file: {path}")
        del self.files[key]

    def exists(self, path: str) -> bool:
        return _normalize(path) in self.files
