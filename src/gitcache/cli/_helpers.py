"""Shared helpers, option decorators, and the main CLI group."""

from __future__ import annotations

import asyncio
import logging

import click

from .._paths import RepositoryIdentity, parse_identity
from ..cache import RepoCache
from ..config import Settings
from ..credentials import Credentials
from ..exceptions import GitCacheError
from ..fs import LocalFileSystem
from ..log import configure_logging
from ..sync import SyncEngine


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _status(ctx, msg):
    """Emit a status message to stderr when verbose mode (-v) is on."""
    if ctx.obj.get("verbose"):
        click.echo(msg, err=True)


def _format_bytes(size: int) -> str:
    """Human-readable size: ``0 B``, ``512 B``, ``1.5 KB``, ``2 MB``."""
    if size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB"]
    value = float(size)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{round(value, 1):g} {units[i]}"


def _run(coro):
    """Run *coro* to completion, turning library errors into ClickExceptions."""
    try:
        return asyncio.run(coro)
    except (GitCacheError, ValueError) as exc:
        raise click.ClickException(str(exc))


def _repo_arg(ctx, param, value) -> RepositoryIdentity:
    """Click callback: parse an OWNER/NAME argument."""
    try:
        return parse_identity(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc))


def _repo_argument(f):
    return click.argument("repo", metavar="OWNER/NAME", callback=_repo_arg)(f)


def _credentials_options(f):
    """Shared --user/--token/--name/--email options."""
    f = click.option("--email", envvar="GITCACHE_EMAIL", default=None,
                     help="Commit author email (or set GITCACHE_EMAIL).")(f)
    f = click.option("--name", "author_name", envvar="GITCACHE_NAME", default=None,
                     help="Commit author name (or set GITCACHE_NAME).")(f)
    f = click.option("--token", envvar="GITCACHE_TOKEN", default="",
                     help="Access token (or set GITCACHE_TOKEN).")(f)
    f = click.option("--user", "login", envvar="GITCACHE_USER", default="gitcache",
                     help="Login for the remote (or set GITCACHE_USER).")(f)
    return f


def _make_credentials(login: str, token: str, author_name: str | None,
                      email: str | None) -> Credentials:
    return Credentials(
        login=login,
        token=token,
        name=author_name or login,
        email=email or f"{login}@localhost",
    )


def _settings(ctx) -> Settings:
    return ctx.obj["settings"]


def _cache(ctx) -> RepoCache:
    settings = _settings(ctx)
    return RepoCache(LocalFileSystem(settings.cache_dir), settings.cache_root)


def _engine(ctx) -> SyncEngine:
    return SyncEngine(_cache(ctx), _settings(ctx))


# ---------------------------------------------------------------------------
# Main group
# ---------------------------------------------------------------------------

@click.group()
@click.option("--cache-dir", type=click.Path(file_okay=False), envvar="GITCACHE_DIR",
              help="Directory holding cached repositories (or set GITCACHE_DIR).")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output on stderr.")
@click.pass_context
def main(ctx, cache_dir, verbose):
    """gitcache: offline-capable mirrors of remote git repositories.

    Repositories are cloned into a local cache, changed locally, and
    pulled or pushed when online.  Files matched by ``filter=lfs`` in
    .gitattributes are stored as Git LFS pointers.

    \b
    Quick start:
      gitcache clone octocat/notes
      gitcache attach octocat/notes photo.png --doc notes.md
      gitcache push octocat/notes
      gitcache ls
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    try:
        settings = Settings.from_env(cache_dir=cache_dir)
    except ValueError as exc:
        raise click.ClickException(f"Configuration error: {exc}")
    ctx.obj["settings"] = settings
    configure_logging(logging.DEBUG if verbose else settings.log_level)
