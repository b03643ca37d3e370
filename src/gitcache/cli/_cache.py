"""Cache maintenance: ls and rm."""

from __future__ import annotations

import click

from ._helpers import main, _cache, _format_bytes, _repo_argument, _run


@main.command("ls")
@click.pass_context
def ls_cmd(ctx):
    """List cached repositories with their sizes."""
    cache = _cache(ctx)

    async def _sizes():
        return [(repo, await cache.size(repo)) for repo in await cache.list_cached()]

    rows = _run(_sizes())
    if not rows:
        click.echo("No cached repositories.")
        return
    for repo, size in rows:
        click.echo(f"{repo}\t{_format_bytes(size)}")
    total = sum(size for _repo, size in rows)
    click.echo(f"Total: {_format_bytes(total)} in {len(rows)} repositor{'y' if len(rows) == 1 else 'ies'}")


@main.command("rm")
@_repo_argument
@click.option("--yes", "-y", is_flag=True, default=False, help="Do not ask for confirmation.")
@click.pass_context
def rm_cmd(ctx, repo, yes):
    """Remove the cached copy of OWNER/NAME.

    The remote repository is not affected.
    """
    cache = _cache(ctx)
    if not _run(cache.is_cached(repo)):
        raise click.ClickException(f"{repo} is not cached")
    if not yes:
        click.confirm(
            f"Remove cached copy of {repo}? This will delete the local copy "
            "but not affect the remote repository.",
            abort=True,
        )
    if not _run(cache.remove(repo)):
        raise click.ClickException(f"Could not fully remove {repo}; run rm again to retry")
    click.echo(f"Removed {repo}")
