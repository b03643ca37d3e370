"""Byte storage behind the cache: an async, path-addressed store interface.

Paths are POSIX-style and absolute (``/repos/owner/name/README.md``).
Failures surface as the builtin ``OSError`` subclasses so callers can
tell a missing path (``FileNotFoundError``) from everything else.

Two implementations:

* `LocalFileSystem` maps the virtual tree onto a directory on disk.  It is
  the only one the git transport can work with, via `real_path`.
* `MemoryFileSystem` keeps everything in dicts; tests substitute it for
  the persistent store.
"""

from __future__ import annotations

import asyncio
import errno
import os
import shutil
import stat as _stat
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from .exceptions import FilesystemError


@dataclass(frozen=True)
class FileStat:
    """The subset of ``stat`` the cache needs."""
    is_dir: bool
    size: int
    is_symlink: bool = False


@runtime_checkable
class FileSystem(Protocol):
    """Hierarchical read/write/stat/readdir/unlink/rmdir over stored bytes."""

    async def stat(self, path: str) -> FileStat: ...

    async def readdir(self, path: str) -> list[str]: ...

    async def mkdir(self, path: str) -> None: ...

    async def read_file(self, path: str) -> bytes: ...

    async def write_file(self, path: str, data: bytes) -> None: ...

    async def unlink(self, path: str) -> None: ...

    async def rmdir(self, path: str) -> None: ...

    def real_path(self, path: str) -> str: ...

    def wipe(self) -> None: ...


def _check_path(path: str) -> str:
    if not path.startswith("/"):
        raise ValueError(f"Path must be absolute: {path!r}")
    parts = [p for p in path.split("/") if p]
    if any(p in (".", "..") for p in parts):
        raise ValueError(f"Path must not contain '.' or '..': {path!r}")
    return "/" + "/".join(parts)


# ---------------------------------------------------------------------------
# On-disk store
# ---------------------------------------------------------------------------

class LocalFileSystem:
    """Virtual tree rooted at a directory on disk.

    Blocking calls run in a worker thread so coroutines suspend at every
    filesystem boundary.
    """

    def __init__(self, root: str | Path):
        self._root = Path(root)

    def __repr__(self) -> str:
        return f"LocalFileSystem({str(self._root)!r})"

    @property
    def root(self) -> Path:
        return self._root

    def real_path(self, path: str) -> str:
        path = _check_path(path)
        return str(self._root.joinpath(*path.split("/")[1:]))

    async def stat(self, path: str) -> FileStat:
        st = await asyncio.to_thread(os.lstat, self.real_path(path))
        return FileStat(
            is_dir=_stat.S_ISDIR(st.st_mode),
            size=st.st_size,
            is_symlink=_stat.S_ISLNK(st.st_mode),
        )

    async def readdir(self, path: str) -> list[str]:
        return sorted(await asyncio.to_thread(os.listdir, self.real_path(path)))

    def _mkdir(self, real: str) -> None:
        self._root.mkdir(parents=True, exist_ok=True)
        os.mkdir(real)

    async def mkdir(self, path: str) -> None:
        await asyncio.to_thread(self._mkdir, self.real_path(path))

    async def read_file(self, path: str) -> bytes:
        return await asyncio.to_thread(Path(self.real_path(path)).read_bytes)

    async def write_file(self, path: str, data: bytes) -> None:
        await asyncio.to_thread(Path(self.real_path(path)).write_bytes, data)

    async def unlink(self, path: str) -> None:
        await asyncio.to_thread(os.unlink, self.real_path(path))

    async def rmdir(self, path: str) -> None:
        await asyncio.to_thread(os.rmdir, self.real_path(path))

    def wipe(self) -> None:
        """Delete the whole store; the root is recreated on next use."""
        shutil.rmtree(self._root, ignore_errors=True)


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------

class MemoryFileSystem:
    """Dict-backed store with the same error behaviour as the disk one."""

    def __init__(self):
        self._dirs: set[str] = {"/"}
        self._files: dict[str, bytes] = {}

    def __repr__(self) -> str:
        return f"MemoryFileSystem(dirs={len(self._dirs)}, files={len(self._files)})"

    def real_path(self, path: str) -> str:
        raise FilesystemError("MemoryFileSystem has no on-disk paths")

    @staticmethod
    def _parent(path: str) -> str:
        return path.rsplit("/", 1)[0] or "/"

    def _require_dir(self, path: str) -> None:
        if path in self._files:
            raise NotADirectoryError(errno.ENOTDIR, "Not a directory", path)
        if path not in self._dirs:
            raise FileNotFoundError(errno.ENOENT, "No such file or directory", path)

    async def stat(self, path: str) -> FileStat:
        path = _check_path(path)
        if path in self._dirs:
            return FileStat(is_dir=True, size=0)
        if path in self._files:
            return FileStat(is_dir=False, size=len(self._files[path]))
        raise FileNotFoundError(errno.ENOENT, "No such file or directory", path)

    async def readdir(self, path: str) -> list[str]:
        path = _check_path(path)
        self._require_dir(path)
        prefix = path.rstrip("/") + "/"
        names = {
            p[len(prefix):]
            for p in (*self._dirs, *self._files)
            if p != path and p.startswith(prefix) and "/" not in p[len(prefix):]
        }
        return sorted(names)

    async def mkdir(self, path: str) -> None:
        path = _check_path(path)
        if path in self._dirs or path in self._files:
            raise FileExistsError(errno.EEXIST, "File exists", path)
        self._require_dir(self._parent(path))
        self._dirs.add(path)

    async def read_file(self, path: str) -> bytes:
        path = _check_path(path)
        if path in self._dirs:
            raise IsADirectoryError(errno.EISDIR, "Is a directory", path)
        try:
            return self._files[path]
        except KeyError:
            raise FileNotFoundError(errno.ENOENT, "No such file or directory", path) from None

    async def write_file(self, path: str, data: bytes) -> None:
        path = _check_path(path)
        if path in self._dirs:
            raise IsADirectoryError(errno.EISDIR, "Is a directory", path)
        self._require_dir(self._parent(path))
        self._files[path] = bytes(data)

    async def unlink(self, path: str) -> None:
        path = _check_path(path)
        if path in self._dirs:
            raise IsADirectoryError(errno.EISDIR, "Is a directory", path)
        try:
            del self._files[path]
        except KeyError:
            raise FileNotFoundError(errno.ENOENT, "No such file or directory", path) from None

    async def rmdir(self, path: str) -> None:
        path = _check_path(path)
        self._require_dir(path)
        if path == "/":
            raise OSError(errno.EBUSY, "Device or resource busy", path)
        if await self.readdir(path):
            raise OSError(errno.ENOTEMPTY, "Directory not empty", path)
        self._dirs.discard(path)

    def wipe(self) -> None:
        self._dirs = {"/"}
        self._files.clear()
