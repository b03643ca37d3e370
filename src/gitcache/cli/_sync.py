"""clone, pull, push, status, commit and unstage commands."""

from __future__ import annotations

import click

from ..sync import PullOutcome, SyncState
from ._helpers import (
    main,
    _credentials_options,
    _engine,
    _make_credentials,
    _repo_argument,
    _run,
    _status,
)


# ---------------------------------------------------------------------------
# Network commands
# ---------------------------------------------------------------------------

@main.command("clone")
@_repo_argument
@_credentials_options
@click.pass_context
def clone_cmd(ctx, repo, login, token, author_name, email):
    """Clone OWNER/NAME into the cache."""
    engine = _engine(ctx)
    creds = _make_credentials(login, token, author_name, email)
    _run(engine.clone(repo, creds))
    _status(ctx, f"Cloned {repo} into {engine.cache.repo_dir(repo)}")


_PULL_MESSAGES = {
    PullOutcome.UP_TO_DATE: "Already up to date.",
    PullOutcome.FAST_FORWARD: "Fast-forwarded to the remote branch.",
    PullOutcome.AHEAD: "Local branch is ahead of the remote; nothing to pull.",
    PullOutcome.MERGED: "Merged the remote branch into the local branch.",
}


@main.command("pull")
@_repo_argument
@_credentials_options
@click.pass_context
def pull_cmd(ctx, repo, login, token, author_name, email):
    """Fetch the tracked branch and merge it into the local branch."""
    engine = _engine(ctx)
    creds = _make_credentials(login, token, author_name, email)
    outcome = _run(engine.pull(repo, creds))
    click.echo(_PULL_MESSAGES[outcome])


@main.command("push")
@_repo_argument
@_credentials_options
@click.pass_context
def push_cmd(ctx, repo, login, token, author_name, email):
    """Push local commits on the tracked branch."""
    engine = _engine(ctx)
    creds = _make_credentials(login, token, author_name, email)
    _run(engine.push(repo, creds))
    _status(ctx, f"Pushed {repo}")


# ---------------------------------------------------------------------------
# Local commands
# ---------------------------------------------------------------------------

@main.command("status")
@_repo_argument
@click.pass_context
def status_cmd(ctx, repo):
    """Show whether OWNER/NAME is cached and in sync with its remote."""
    engine = _engine(ctx)

    async def _query():
        state = await engine.sync_state(repo)
        url = await engine.remote_url(repo) if state is not SyncState.UNCACHED else None
        return state, url

    state, url = _run(_query())
    if state is SyncState.UNCACHED:
        click.echo(f"{repo}: not cached")
        return
    label = "in sync" if state is SyncState.SYNCED else "not in sync"
    click.echo(f"{repo}: {label}")
    if url:
        click.echo(f"origin: {url}")


@main.command("commit")
@_repo_argument
@click.argument("paths", nargs=-1, required=True)
@click.option("-m", "--message", required=True, help="Commit message.")
@click.pass_context
def commit_cmd(ctx, repo, paths, message):
    """Stage PATHS (relative to the repository root) and commit them."""
    engine = _engine(ctx)

    async def _commit():
        await engine.stage(repo, list(paths))
        return await engine.commit(repo, message)

    sha = _run(_commit())
    click.echo(sha[:7])


@main.command("unstage")
@_repo_argument
@click.argument("path")
@click.pass_context
def unstage_cmd(ctx, repo, path):
    """Remove PATH from the index, keeping the working-tree file."""
    _run(_engine(ctx).remove(repo, path))
    _status(ctx, f"Unstaged {path}")
