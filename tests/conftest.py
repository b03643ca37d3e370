"""Shared fixtures for gitcache tests."""

import pytest
from click.testing import CliRunner
from dulwich import porcelain
from dulwich.repo import Repo as DulwichRepo

from gitcache import (
    Credentials, LocalFileSystem, MemoryFileSystem, RepoCache, RepositoryIdentity,
    Settings, SyncEngine,
)

SEED_AUTHOR = b"Seed <seed@example.com>"


@pytest.fixture
def memfs():
    return MemoryFileSystem()


@pytest.fixture
def mem_cache(memfs):
    """A RepoCache on an in-memory store rooted at /repos."""
    return RepoCache(memfs, "/repos")


@pytest.fixture
def repo():
    return RepositoryIdentity("Octo", "Notes")


@pytest.fixture
def creds():
    return Credentials(login="alice", token="s3cret", name="Alice", email="alice@example.com")


@pytest.fixture
def runner():
    return CliRunner()


# ---------------------------------------------------------------------------
# Remote fixtures
# ---------------------------------------------------------------------------

def make_remote(base, owner, name, files):
    """Create a bare repo at ``base/owner/name`` with one commit on main."""
    seed_path = base.parent / f"seed-{owner}-{name}"
    seed = porcelain.init(str(seed_path))
    paths = []
    for rel, data in files.items():
        p = seed_path / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)
        paths.append(str(p))
    porcelain.add(str(seed_path), paths=paths)
    sha = porcelain.commit(
        str(seed_path), message=b"initial", author=SEED_AUTHOR, committer=SEED_AUTHOR,
    )

    bare_path = base / owner / name
    bare_path.mkdir(parents=True)
    bare = DulwichRepo.init_bare(str(bare_path))
    for obj_id in seed.object_store:
        bare.object_store.add_object(seed.object_store[obj_id])
    bare.refs[b"refs/heads/main"] = sha
    bare.refs.set_symbolic_ref(b"HEAD", b"refs/heads/main")
    bare.close()
    seed.close()
    return str(bare_path)


@pytest.fixture
def remote_base(tmp_path):
    return tmp_path / "remote"


@pytest.fixture
def remote(remote_base, repo):
    """Bare remote for ``Octo/Notes`` with a README and LFS rules."""
    return make_remote(remote_base, repo.owner, repo.name, {
        "README.md": b"# Notes\n",
        ".gitattributes": b"*.mp4 filter=lfs diff=lfs merge=lfs -text\n",
    })


@pytest.fixture
def settings(tmp_path, remote_base):
    return Settings(
        cache_dir=tmp_path / "cache",
        remote_base=str(remote_base),
        clone_depth=None,
    )


@pytest.fixture
def engine(settings):
    """SyncEngine over a LocalFileSystem cache."""
    return SyncEngine(RepoCache(LocalFileSystem(settings.cache_dir), settings.cache_root), settings)


@pytest.fixture
def other_engine(tmp_path, settings):
    """A second, independent cache talking to the same remotes."""
    local = Settings(
        cache_dir=tmp_path / "cache2",
        remote_base=settings.remote_base,
        clone_depth=None,
    )
    return SyncEngine(RepoCache(LocalFileSystem(local.cache_dir), local.cache_root), local)


@pytest.fixture
def add_remote(remote_base):
    """Factory: ``add_remote(owner, name, files)`` creates another bare remote."""
    def _add(owner, name, files):
        return make_remote(remote_base, owner, name, files)
    return _add
