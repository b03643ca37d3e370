"""Clone, pull, push, stage and commit against a repository's remote.

The git protocol work is done by dulwich; this module decides which
refs move and maps every failure onto the gitcache error taxonomy:

* `CloneError` for clone,
* `SyncError` for pull and push,
* `LocalVcsError` for stage, unstage, commit and ref lookups.

One branch is tracked per repository (``main`` by default).  Its
remote-tracking ref ``refs/remotes/origin/<branch>`` is kept current on
every successful fetch and push, so `SyncEngine.is_synced` is a pure
local comparison.  Pull merges diverged histories but refuses to run
over uncommitted changes to tracked files.

No locking: two overlapping operations on the same repository race, and
callers are expected not to issue them.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import os
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass

from dulwich import porcelain
from dulwich.client import get_transport_and_path
from dulwich.errors import NotGitRepository
from dulwich.graph import find_merge_base
from dulwich.merge import three_way_merge
from dulwich.protocol import ZERO_SHA
from dulwich.repo import Repo

from ._paths import RepositoryIdentity
from ._timer import timed
from .cache import RepoCache
from .config import Settings, _validate_branch
from .credentials import Credentials
from .exceptions import CloneError, GitCacheError, LocalVcsError, SyncError

logger = logging.getLogger("gitcache.sync")

REMOTE_NAME = "origin"


# ---------------------------------------------------------------------------
# Options and states
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CloneOptions:
    """Options for `SyncEngine.clone`.

    Attributes:
        branch: The single branch to check out and track.
        depth: History depth to fetch; None for full history.
    """
    branch: str = "main"
    depth: int | None = 1

    def __post_init__(self):
        _validate_branch(self.branch)
        if self.depth is not None and self.depth < 1:
            raise ValueError(f"depth must be positive or None, got {self.depth}")


@dataclass(frozen=True)
class PullOptions:
    """Options for `SyncEngine.pull`.

    Attributes:
        branch: Remote branch to fetch and merge into the local branch.
    """
    branch: str = "main"

    def __post_init__(self):
        _validate_branch(self.branch)


@dataclass(frozen=True)
class PushOptions:
    """Options for `SyncEngine.push`.

    Attributes:
        branch: Local branch whose commits are sent to the remote branch of
            the same name.
    """
    branch: str = "main"

    def __post_init__(self):
        _validate_branch(self.branch)


class RepoState(enum.Enum):
    UNCACHED = "uncached"
    CLONING = "cloning"
    CLONED = "cloned"
    SYNCING = "syncing"


class SyncState(enum.Enum):
    UNCACHED = "uncached"
    SYNCED = "synced"
    UNSYNCED = "unsynced"


class PullOutcome(enum.Enum):
    UP_TO_DATE = "up-to-date"
    FAST_FORWARD = "fast-forward"
    AHEAD = "ahead"
    MERGED = "merged"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class _ProgressLog:
    """File-like sink that forwards transport progress to the debug log."""

    def __init__(self, label: str):
        self._label = label

    def write(self, data: bytes | str) -> int:
        text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data
        text = text.strip()
        if text:
            logger.debug("%s: %s", self._label, text)
        return len(data)

    def __call__(self, data: bytes | str) -> None:
        self.write(data)

    def flush(self) -> None:
        pass


def _transport_kwargs(url: str, credentials: Credentials | None) -> dict:
    """Credentials for http(s) transports; other transports take none."""
    if credentials is None or not url.startswith(("http://", "https://")):
        return {}
    return {"username": credentials.login, "password": credentials.token}


def _branch_ref(branch: str) -> bytes:
    return f"refs/heads/{branch}".encode()


def _tracking_ref(branch: str) -> bytes:
    return f"refs/remotes/{REMOTE_NAME}/{branch}".encode()


def _merge_bases(repo: Repo, a: bytes, b: bytes) -> list[bytes]:
    """Lowest common ancestors of *a* and *b*; empty when history is missing."""
    if a not in repo.object_store or b not in repo.object_store:
        return []
    try:
        return find_merge_base(repo, [a, b])
    except KeyError:
        return []


def _local_changes(repo: Repo) -> list[str]:
    """Tracked paths whose index or working-tree content differs from HEAD."""
    status = porcelain.status(repo, untracked_files="no")
    paths = {os.fsdecode(p) for group in status.staged.values() for p in group}
    paths.update(os.fsdecode(p) for p in status.unstaged)
    return sorted(paths)


def _tree_path(rel: str) -> str:
    rel = rel.replace(os.sep, "/").strip("/")
    if not rel or any(part in ("", ".", "..") for part in rel.split("/")):
        raise LocalVcsError(f"Invalid repository path: {rel!r}")
    return rel


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class SyncEngine:
    """Synchronizes cached repositories with their remotes.

    *cache* must sit on a filesystem with real on-disk paths
    (`~gitcache.fs.LocalFileSystem`).
    """

    def __init__(self, cache: RepoCache, settings: Settings | None = None):
        self.cache = cache
        self.settings = settings or Settings(cache_root=cache.root)
        self._states: dict[tuple[str, str], RepoState] = {}

    def __repr__(self) -> str:
        return f"SyncEngine({self.cache!r})"

    def _repo_path(self, repo: RepositoryIdentity) -> str:
        return self.cache.fs.real_path(self.cache.repo_dir(repo))

    def remote_location(self, repo: RepositoryIdentity) -> str:
        """Canonical remote URL for *repo* (what ``remote.origin.url`` holds)."""
        return self.settings.remote_url(repo.owner, repo.name)

    def _transport_url(self, repo: RepositoryIdentity) -> str:
        return self.settings.transport_url(self.remote_location(repo))

    @contextmanager
    def _transient(self, repo: RepositoryIdentity, state: RepoState) -> Iterator[None]:
        key = repo.cache_key()
        self._states[key] = state
        try:
            yield
        finally:
            self._states.pop(key, None)

    async def state(self, repo: RepositoryIdentity) -> RepoState:
        """Current lifecycle state of *repo* as seen by this engine."""
        transient = self._states.get(repo.cache_key())
        if transient is not None:
            return transient
        if await self.cache.is_cached(repo):
            return RepoState.CLONED
        return RepoState.UNCACHED

    # -- network operations ---------------------------------------------------

    async def clone(
        self,
        repo: RepositoryIdentity,
        credentials: Credentials,
        options: CloneOptions | None = None,
    ) -> None:
        """Shallow-clone *repo*'s tracked branch into the cache.

        On success the local ``user.name`` / ``user.email`` come from
        *credentials*.  On failure the partial cache entry is removed so
        the clone can simply be retried.
        """
        if options is None:
            options = CloneOptions(branch=self.settings.branch, depth=self.settings.clone_depth)
        if await self.cache.is_cached(repo):
            raise CloneError(f"{repo} is already cached")

        repo_dir = self.cache.repo_dir(repo)
        url = self.remote_location(repo)
        try:
            await self.cache.ensure_directory(repo_dir)
        except GitCacheError as exc:
            raise CloneError(f"Cannot prepare {repo_dir}: {exc}") from exc

        target = self._repo_path(repo)
        with self._transient(repo, RepoState.CLONING):
            try:
                with timed(f"git clone {url} {repo_dir}"):
                    await asyncio.to_thread(
                        self._clone, self._transport_url(repo), target, url, options, credentials,
                    )
            except Exception as exc:
                if not await self.cache.remove(repo):
                    logger.warning("Could not clean up partial clone at %s", repo_dir)
                if isinstance(exc, CloneError):
                    raise
                raise CloneError(f"Clone of {repo} failed: {exc}") from exc

    def _clone(self, source: str, target: str, url: str,
               options: CloneOptions, credentials: Credentials) -> None:
        r = porcelain.clone(
            source,
            target,
            checkout=True,
            depth=options.depth,
            branch=options.branch.encode(),
            errstream=_ProgressLog("clone"),
            **_transport_kwargs(source, credentials),
        )
        try:
            if _branch_ref(options.branch) not in r.refs:
                raise CloneError(f"Remote has no branch {options.branch!r}")
            config = r.get_config()
            with timed(f'git config user.name "{credentials.name}"'):
                config.set((b"user",), b"name", credentials.name.encode())
            with timed(f'git config user.email "{credentials.email}"'):
                config.set((b"user",), b"email", credentials.email.encode())
            config.set((b"remote", REMOTE_NAME.encode()), b"url", url.encode())
            config.write_to_path()
        finally:
            r.close()

    async def pull(
        self,
        repo: RepositoryIdentity,
        credentials: Credentials,
        options: PullOptions | None = None,
    ) -> PullOutcome:
        """Fetch the tracked branch and merge it into the local branch.

        Fast-forwards when possible, otherwise records a merge commit. Raises
        `SyncError` without touching the checkout when tracked files have
        uncommitted changes or when the merge would conflict.
        """
        options = options or PullOptions(branch=self.settings.branch)
        location = self._transport_url(repo)
        path = self._repo_path(repo)
        with self._transient(repo, RepoState.SYNCING):
            try:
                with timed("git pull"):
                    outcome = await asyncio.to_thread(
                        self._pull, path, location, options.branch, credentials,
                    )
            except SyncError:
                raise
            except Exception as exc:
                raise SyncError(f"Pull of {repo} failed: {exc}") from exc
        logger.info("Pulled %s: %s", repo, outcome.value)
        return outcome

    def _pull(self, path: str, location: str, branch: str,
              credentials: Credentials) -> PullOutcome:
        ref = _branch_ref(branch)
        with Repo(path) as r:
            client, remote_path = get_transport_and_path(
                location, **_transport_kwargs(location, credentials),
            )

            def determine_wants(refs, depth=None):
                if ref not in refs:
                    raise SyncError(f"Remote has no branch {branch!r}")
                sha = refs[ref]
                return [] if sha in r.object_store else [sha]

            result = client.fetch(
                remote_path, r,
                determine_wants=determine_wants,
                progress=_ProgressLog("fetch"),
            )
            remote_sha = result.refs[ref]
            r.refs[_tracking_ref(branch)] = remote_sha
            local_sha = r.refs[ref] if ref in r.refs else None

            if local_sha == remote_sha:
                return PullOutcome.UP_TO_DATE
            if local_sha is None:
                r.refs[ref] = remote_sha
                porcelain.reset(r, "hard", remote_sha)
                return PullOutcome.FAST_FORWARD

            bases = _merge_bases(r, local_sha, remote_sha)
            if remote_sha in bases:
                return PullOutcome.AHEAD
            if not bases:
                raise SyncError(
                    f"Local and remote {branch!r} share no history; cannot merge them"
                )
            dirty = _local_changes(r)
            if dirty:
                raise SyncError(
                    "Local changes would be overwritten by pull; commit them first: "
                    + ", ".join(dirty)
                )
            if local_sha in bases:
                r.refs[ref] = remote_sha
                porcelain.reset(r, "hard", remote_sha)
                return PullOutcome.FAST_FORWARD

            # Dry run in the object store so a conflict leaves the checkout untouched.
            _, conflicts = three_way_merge(
                r.object_store, r[bases[0]], r[local_sha], r[remote_sha],
                r.get_gitattributes(), r.get_config(),
            )
            if not conflicts:
                merged, conflicts = porcelain.merge(
                    r, remote_sha,
                    message=f"Merge remote-tracking branch '{REMOTE_NAME}/{branch}'\n",
                )
                if merged is not None and not conflicts:
                    return PullOutcome.MERGED
            raise SyncError(
                f"Merging remote {branch!r} conflicts in: "
                + ", ".join(os.fsdecode(p) for p in conflicts)
            )

    async def push(
        self,
        repo: RepositoryIdentity,
        credentials: Credentials,
        options: PushOptions | None = None,
    ) -> None:
        """Send local commits on the tracked branch to the remote.

        A remote head the local branch does not contain is rejected as
        non-fast-forward (`SyncError`); nothing is rebased or retried.
        """
        options = options or PushOptions(branch=self.settings.branch)
        location = self._transport_url(repo)
        path = self._repo_path(repo)
        with self._transient(repo, RepoState.SYNCING):
            try:
                with timed("git push"):
                    await asyncio.to_thread(
                        self._push, path, location, options.branch, credentials,
                    )
            except (SyncError, LocalVcsError):
                raise
            except Exception as exc:
                raise SyncError(f"Push of {repo} failed: {exc}") from exc

    def _push(self, path: str, location: str, branch: str,
              credentials: Credentials) -> None:
        ref = _branch_ref(branch)
        with Repo(path) as r:
            if ref not in r.refs:
                raise LocalVcsError(f"No local branch {branch!r} to push")
            local_sha = r.refs[ref]
            client, remote_path = get_transport_and_path(
                location, **_transport_kwargs(location, credentials),
            )

            def update_refs(remote_refs):
                remote_sha = remote_refs.get(ref, ZERO_SHA)
                if remote_sha not in (ZERO_SHA, local_sha) and (
                    remote_sha not in _merge_bases(r, remote_sha, local_sha)
                ):
                    raise SyncError(
                        f"Push of {branch!r} rejected: remote has commits not present "
                        "locally (non-fast-forward); pull first"
                    )
                new_refs = dict(remote_refs)
                new_refs[ref] = local_sha
                return new_refs

            # Repo-level generation honours the shallow boundary of depth-limited clones.
            def gen_pack(have, want, *, ofs_delta=False, progress=None):
                return r.generate_pack_data(
                    have, want, ofs_delta=ofs_delta, progress=progress,
                )

            result = client.send_pack(
                remote_path, update_refs, gen_pack, progress=_ProgressLog("push"),
            )
            ref_status = getattr(result, "ref_status", None) or {}
            error = ref_status.get(ref)
            if error:
                raise SyncError(f"Push of {branch!r} rejected: {error}")
            r.refs[_tracking_ref(branch)] = local_sha

    # -- local operations -----------------------------------------------------

    async def stage(self, repo: RepositoryIdentity, paths: Sequence[str]) -> None:
        """Add working-tree *paths* (relative to the repository root) to the index."""
        rels = [_tree_path(p) for p in paths]
        path = self._repo_path(repo)
        with timed(f"git add {' '.join(rels)}"):
            try:
                await asyncio.to_thread(self._stage, path, rels)
            except LocalVcsError:
                raise
            except Exception as exc:
                raise LocalVcsError(f"Cannot stage {', '.join(rels)}: {exc}") from exc

    def _stage(self, path: str, rels: list[str]) -> None:
        full = [os.path.join(path, *rel.split("/")) for rel in rels]
        missing = [rel for rel, f in zip(rels, full) if not os.path.lexists(f)]
        if missing:
            raise LocalVcsError(f"pathspec did not match any files: {', '.join(missing)}")
        porcelain.add(path, paths=full)

    async def remove(self, repo: RepositoryIdentity, path: str) -> None:
        """Drop *path* from the index; the working-tree file is kept."""
        rel = _tree_path(path)
        repo_path = self._repo_path(repo)
        with timed(f"git remove {rel}"):
            try:
                await asyncio.to_thread(
                    porcelain.remove, repo_path,
                    paths=[os.path.join(repo_path, *rel.split("/"))], cached=True,
                )
            except Exception as exc:
                raise LocalVcsError(f"Cannot remove {rel}: {exc}") from exc

    async def commit(self, repo: RepositoryIdentity, message: str) -> str:
        """Commit the index; returns the new commit id.

        Raises `LocalVcsError` when nothing is staged.
        """
        if not message.strip():
            raise LocalVcsError("Commit message must not be empty")
        path = self._repo_path(repo)
        with timed(f'git commit -m "{message}"'):
            try:
                sha = await asyncio.to_thread(self._commit, path, message)
            except LocalVcsError:
                raise
            except Exception as exc:
                raise LocalVcsError(f"Cannot commit in {repo}: {exc}") from exc
        return sha.decode("ascii")

    def _commit(self, path: str, message: str) -> bytes:
        with Repo(path) as r:
            tree = r.open_index().commit(r.object_store)
            try:
                head = r[r.head()]
            except KeyError:
                head = None
            if head is not None and head.tree == tree:
                raise LocalVcsError("Nothing to commit")
        return porcelain.commit(path, message=message.encode("utf-8"))

    # -- queries --------------------------------------------------------------

    def _open(self, repo: RepositoryIdentity) -> Repo:
        try:
            return Repo(self._repo_path(repo))
        except (NotGitRepository, OSError) as exc:
            raise LocalVcsError(f"{repo} is not cloned") from exc

    async def is_synced(self, repo: RepositoryIdentity, branch: str | None = None) -> bool:
        """True iff the local branch and its remote-tracking ref are the same commit.

        Both refs must exist (the repository was cloned); otherwise
        `LocalVcsError`.
        """
        branch = branch or self.settings.branch
        return await asyncio.to_thread(self._is_synced, repo, branch)

    def _is_synced(self, repo: RepositoryIdentity, branch: str) -> bool:
        with self._open(repo) as r:
            try:
                local = r.refs[_branch_ref(branch)]
                remote = r.refs[_tracking_ref(branch)]
            except KeyError as exc:
                raise LocalVcsError(f"Ref not found in {repo}: {exc.args[0]!r}") from exc
        return local == remote

    async def sync_state(self, repo: RepositoryIdentity) -> SyncState:
        """`SyncState` for status displays; never raises."""
        if not await self.cache.is_cached(repo):
            return SyncState.UNCACHED
        try:
            synced = await self.is_synced(repo)
        except GitCacheError:
            return SyncState.UNSYNCED
        return SyncState.SYNCED if synced else SyncState.UNSYNCED

    async def remote_url(self, repo: RepositoryIdentity) -> str | None:
        """``remote.origin.url`` of *repo*, or None when unset."""
        return await asyncio.to_thread(self._remote_url, repo)

    def _remote_url(self, repo: RepositoryIdentity) -> str | None:
        with self._open(repo) as r:
            try:
                value = r.get_config().get((b"remote", REMOTE_NAME.encode()), b"url")
            except KeyError:
                return None
        return value.decode("utf-8")
