"""Cached repository directories: create, enumerate, measure, delete.

Layout::

    <cache-root>/<sanitized-owner>/<sanitized-name>/
        .git/          <- presence of this directory means "cached"
        ...            <- working tree

The read-only queries (`RepoCache.is_cached`, `RepoCache.list_cached`,
`RepoCache.size`) never raise: they feed settings screens and degrade to
``False`` / partial lists / ``0``.  `RepoCache.remove` reports failure as
``False`` because a half-deleted tree is simply retried.
"""

from __future__ import annotations

from ._paths import DEFAULT_CACHE_ROOT, RepositoryIdentity, cache_path, join
from .exceptions import FilesystemError
from .fs import FileSystem

GIT_DIR = ".git"

# Recursion guard for walks; cache trees are never this deep.
_MAX_DEPTH = 256


class RepoCache:
    """Repository cache rooted at *root* inside a `FileSystem`."""

    def __init__(self, fs: FileSystem, root: str = DEFAULT_CACHE_ROOT):
        self.fs = fs
        self.root = "/" + root.strip("/")

    def __repr__(self) -> str:
        return f"RepoCache({self.fs!r}, root={self.root!r})"

    def repo_dir(self, repo: RepositoryIdentity) -> str:
        """Virtual path of *repo*'s cache entry."""
        return cache_path(repo, self.root)

    def path_in(self, repo: RepositoryIdentity, rel: str) -> str:
        """Virtual path of *rel* inside *repo*'s working tree."""
        return join(self.repo_dir(repo), rel)

    # -- creation -------------------------------------------------------------

    async def ensure_directory(self, path: str) -> None:
        """Create every missing segment of *path*, root first.

        Existing directories are left alone.  Raises `FilesystemError` when
        a segment exists as a file or cannot be created.
        """
        current = ""
        for segment in (s for s in path.split("/") if s):
            current = f"{current}/{segment}"
            try:
                st = await self.fs.stat(current)
            except FileNotFoundError:
                try:
                    await self.fs.mkdir(current)
                except FileExistsError:
                    continue
                except OSError as exc:
                    raise FilesystemError(f"Cannot create {current}: {exc}") from exc
                continue
            except OSError as exc:
                raise FilesystemError(f"Cannot stat {current}: {exc}") from exc
            if not st.is_dir:
                raise FilesystemError(f"Not a directory: {current}")

    # -- queries --------------------------------------------------------------

    async def _has_git_dir(self, repo_dir: str) -> bool:
        try:
            st = await self.fs.stat(join(repo_dir, GIT_DIR))
        except (OSError, ValueError):
            return False
        return st.is_dir

    async def is_cached(self, repo: RepositoryIdentity) -> bool:
        """True iff ``<repo_dir>/.git`` exists and is a directory."""
        return await self._has_git_dir(self.repo_dir(repo))

    async def list_cached(self) -> list[RepositoryIdentity]:
        """Every cached repository two levels below the root.

        Identities carry the sanitized owner and name.  Directories that
        vanish or fail to list are skipped.
        """
        repos: list[RepositoryIdentity] = []
        try:
            owners = await self.fs.readdir(self.root)
        except OSError:
            return repos
        for owner in owners:
            try:
                names = await self.fs.readdir(join(self.root, owner))
            except OSError:
                continue
            for name in names:
                if await self._has_git_dir(join(self.root, owner, name)):
                    repos.append(RepositoryIdentity(owner, name))
        return repos

    async def size(self, repo: RepositoryIdentity) -> int:
        """Total bytes of regular files under *repo*'s cache entry.

        Recomputed on every call; ``0`` for a missing directory.
        """
        return await self._dir_size(self.repo_dir(repo), 0)

    async def _dir_size(self, path: str, depth: int) -> int:
        if depth > _MAX_DEPTH:
            return 0
        total = 0
        try:
            entries = await self.fs.readdir(path)
        except OSError:
            return 0
        for entry in entries:
            child = join(path, entry)
            try:
                st = await self.fs.stat(child)
            except OSError:
                continue
            if st.is_symlink:
                continue
            if st.is_dir:
                total += await self._dir_size(child, depth + 1)
            else:
                total += st.size
        return total

    async def total_size(self) -> int:
        """Sum of `size` over every cached repository."""
        total = 0
        for repo in await self.list_cached():
            total += await self.size(repo)
        return total

    # -- removal --------------------------------------------------------------

    async def remove(self, repo: RepositoryIdentity) -> bool:
        """Delete *repo*'s cache entry, children before parents.

        Returns False if any step fails; the tree may then be partially
        deleted and `remove` can be called again.
        """
        repo_dir = self.repo_dir(repo)
        try:
            for entry in await self.fs.readdir(repo_dir):
                await self._remove_tree(join(repo_dir, entry), 0)
            await self.fs.rmdir(repo_dir)
        except (OSError, FilesystemError):
            return False
        return True

    async def _remove_tree(self, path: str, depth: int) -> None:
        if depth > _MAX_DEPTH:
            raise FilesystemError(f"Directory tree too deep: {path}")
        st = await self.fs.stat(path)
        if st.is_dir and not st.is_symlink:
            for entry in await self.fs.readdir(path):
                await self._remove_tree(join(path, entry), depth + 1)
            await self.fs.rmdir(path)
        else:
            await self.fs.unlink(path)
