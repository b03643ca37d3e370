"""Tests for the gitcache CLI."""

import asyncio
import logging

import pytest

from gitcache.cli import main
from gitcache.cli._helpers import _format_bytes


def run(coro):
    return asyncio.run(coro)


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    logger = logging.getLogger("gitcache")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def cli(runner, tmp_path, remote_base, remote):
    """Invoke the CLI against a temp cache and the local remotes."""
    cache_dir = tmp_path / "cli-cache"
    env = {
        "GITCACHE_REMOTE_BASE": str(remote_base),
        "GITCACHE_CLONE_DEPTH": "0",
        "GITCACHE_USER": "alice",
        "GITCACHE_TOKEN": "s3cret",
        "GITCACHE_LFS_URL": None,
        "GITCACHE_CORS_PROXY": None,
        "GITCACHE_BRANCH": None,
    }

    def invoke(*args, **kwargs):
        return runner.invoke(main, ["--cache-dir", str(cache_dir), *args], env=env, **kwargs)

    invoke.cache_dir = cache_dir
    return invoke


def _repo_dir(cli):
    return cli.cache_dir / "repos" / "octo" / "notes"


class TestFormatBytes:
    @pytest.mark.parametrize("size,expected", [
        (0, "0 B"),
        (512, "512 B"),
        (1024, "1 KB"),
        (1536, "1.5 KB"),
        (5 * 1024 * 1024, "5 MB"),
        (3 * 1024 ** 3, "3 GB"),
        (2 * 1024 ** 4, "2048 GB"),
    ])
    def test_format(self, size, expected):
        assert _format_bytes(size) == expected


# ---------------------------------------------------------------------------
# clone / status / ls / rm
# ---------------------------------------------------------------------------

class TestCacheCommands:
    def test_clone_and_ls(self, cli):
        r = cli("clone", "Octo/Notes")
        assert r.exit_code == 0, r.output
        r = cli("ls")
        assert r.exit_code == 0, r.output
        assert r.output.splitlines()[0].startswith("octo/notes\t")
        assert "Total:" in r.output
        assert "in 1 repository" in r.output

    def test_ls_empty(self, cli):
        r = cli("ls")
        assert r.exit_code == 0
        assert r.output == "No cached repositories.\n"

    def test_status(self, cli, remote):
        cli("clone", "Octo/Notes")
        r = cli("status", "Octo/Notes")
        assert r.exit_code == 0, r.output
        assert r.output == f"Octo/Notes: in sync\norigin: {remote}\n"

    def test_status_uncached(self, cli):
        r = cli("status", "Octo/Notes")
        assert r.output == "Octo/Notes: not cached\n"

    def test_rm(self, cli):
        cli("clone", "Octo/Notes")
        r = cli("rm", "Octo/Notes", "--yes")
        assert r.exit_code == 0, r.output
        assert not _repo_dir(cli).exists()
        assert cli("ls").output == "No cached repositories.\n"

    def test_rm_asks_first(self, cli):
        cli("clone", "Octo/Notes")
        r = cli("rm", "Octo/Notes", input="n\n")
        assert r.exit_code == 1
        assert "not affect the remote repository" in r.output
        assert _repo_dir(cli).is_dir()

    def test_rm_uncached(self, cli):
        r = cli("rm", "Octo/Notes", "--yes")
        assert r.exit_code == 1
        assert "not cached" in r.output

    def test_clone_missing_remote(self, cli):
        r = cli("clone", "nobody/nothing")
        assert r.exit_code == 1
        assert "Error:" in r.output

    def test_bad_identity(self, cli):
        r = cli("status", "just-a-name")
        assert r.exit_code == 2
        assert "OWNER/NAME" in r.output


# ---------------------------------------------------------------------------
# commit / push / pull
# ---------------------------------------------------------------------------

class TestSyncCommands:
    def test_commit_push_cycle(self, cli):
        cli("clone", "Octo/Notes")
        (_repo_dir(cli) / "todo.md").write_text("- write tests\n")

        r = cli("commit", "Octo/Notes", "-m", "Add todo", "todo.md")
        assert r.exit_code == 0, r.output
        assert len(r.output.strip()) == 7
        assert "not in sync" in cli("status", "Octo/Notes").output

        r = cli("push", "Octo/Notes")
        assert r.exit_code == 0, r.output
        assert "Octo/Notes: in sync" in cli("status", "Octo/Notes").output

    def test_commit_nothing(self, cli):
        cli("clone", "Octo/Notes")
        (_repo_dir(cli) / "todo.md").write_text("x")
        cli("commit", "Octo/Notes", "-m", "first", "todo.md")
        r = cli("commit", "Octo/Notes", "-m", "again", "todo.md")
        assert r.exit_code == 1
        assert "Nothing to commit" in r.output

    def test_unstage(self, cli):
        cli("clone", "Octo/Notes")
        r = cli("unstage", "Octo/Notes", "README.md")
        assert r.exit_code == 0, r.output

    def test_pull_up_to_date(self, cli):
        cli("clone", "Octo/Notes")
        r = cli("pull", "Octo/Notes")
        assert r.exit_code == 0, r.output
        assert r.output == "Already up to date.\n"

    def test_pull_merges(self, cli, other_engine, repo, creds):
        cli("clone", "Octo/Notes")
        run(other_engine.clone(repo, creds))
        path = other_engine.cache.path_in(repo, "remote.md")
        run(other_engine.cache.fs.write_file(path, b"from elsewhere\n"))
        run(other_engine.stage(repo, ["remote.md"]))
        run(other_engine.commit(repo, "Remote change"))
        run(other_engine.push(repo, creds))

        (_repo_dir(cli) / "local.md").write_text("mine\n")
        cli("commit", "Octo/Notes", "-m", "Local change", "local.md")
        r = cli("pull", "Octo/Notes")
        assert r.exit_code == 0, r.output
        assert r.output == "Merged the remote branch into the local branch.\n"
        assert (_repo_dir(cli) / "remote.md").read_text() == "from elsewhere\n"

    def test_pull_help(self, cli):
        assert "merge it into the local branch" in cli("pull", "--help").output


# ---------------------------------------------------------------------------
# cat / attach
# ---------------------------------------------------------------------------

class TestFileCommands:
    def test_cat(self, cli):
        cli("clone", "Octo/Notes")
        r = cli("cat", "Octo/Notes", "README.md")
        assert r.exit_code == 0, r.output
        assert r.output == "# Notes\n"

    def test_attach(self, cli, tmp_path):
        cli("clone", "Octo/Notes")
        src = tmp_path / "notes.txt"
        src.write_bytes(b"0123456789")
        doc = tmp_path / "doc.md"
        doc.write_text("Hello")

        r = cli("attach", "Octo/Notes", str(src), "--doc", str(doc))
        assert r.exit_code == 0, r.output
        markdown = r.output.strip()
        assert markdown.startswith("[notes.txt](/uploads/")
        assert markdown.endswith(".txt)")
        assert doc.read_text() == f"Hello{markdown}"

        rel = markdown[len("[notes.txt]("):-1]
        assert (_repo_dir(cli) / rel.lstrip("/")).read_bytes() == b"0123456789"
        assert "not in sync" in cli("status", "Octo/Notes").output

    def test_attach_bad_selection(self, cli, tmp_path):
        cli("clone", "Octo/Notes")
        src = tmp_path / "a.txt"
        src.write_bytes(b"a")
        doc = tmp_path / "doc.md"
        doc.write_text("Hi")
        r = cli("attach", "Octo/Notes", str(src), "--doc", str(doc), "--at", "10")
        assert r.exit_code == 1
        assert "outside the document" in r.output

    def test_attach_uncached(self, cli, tmp_path):
        src = tmp_path / "a.txt"
        src.write_bytes(b"a")
        r = cli("attach", "Octo/Notes", str(src))
        assert r.exit_code == 1
        assert "run clone first" in r.output
