"""cat and attach: file access through the Git LFS layer."""

from __future__ import annotations

from pathlib import Path

import click

from ..attach import Attacher, TextEditor
from ..lfs import LargeFiles, LfsClient
from ._helpers import (
    main,
    _credentials_options,
    _engine,
    _make_credentials,
    _repo_argument,
    _run,
    _settings,
    _status,
)


def _lfs_client(ctx) -> LfsClient | None:
    url = _settings(ctx).lfs_url
    return LfsClient(url) if url else None


async def _closing(client: LfsClient | None, coro):
    try:
        return await coro
    finally:
        if client is not None:
            await client.close()


@main.command("cat")
@_repo_argument
@click.argument("path")
@_credentials_options
@click.pass_context
def cat_cmd(ctx, repo, path, login, token, author_name, email):
    """Write the content of PATH to stdout, resolving Git LFS pointers."""
    engine = _engine(ctx)
    client = _lfs_client(ctx)
    files = LargeFiles(engine.cache, client)
    creds = _make_credentials(login, token, author_name, email)
    data = _run(_closing(client, files.read_file(repo, path, creds)))
    click.echo(data, nl=False)


@main.command("attach")
@_repo_argument
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--doc", type=click.Path(dir_okay=False),
              help="Markdown document to insert the reference into.")
@click.option("--at", "start", type=int, default=None,
              help="Insertion offset in --doc (default: end of document).")
@click.option("--to", "end", type=int, default=None,
              help="End of the selection to replace (default: --at).")
@click.option("--type", "mime_type", default=None, help="MIME type (default: guessed).")
@_credentials_options
@click.pass_context
def attach_cmd(ctx, repo, file, doc, start, end, mime_type,
               login, token, author_name, email):
    """Store FILE under uploads/, commit it, and print a markdown reference."""
    engine = _engine(ctx)
    creds = _make_credentials(login, token, author_name, email)

    source = Path(file)
    text = Path(doc).read_text(encoding="utf-8") if doc and Path(doc).exists() else ""
    if start is None:
        start = len(text)
    if end is None:
        end = start
    if not 0 <= start <= end <= len(text):
        raise click.ClickException(f"Selection {start}..{end} is outside the document")
    editor = TextEditor(text, start, end)

    async def _attach():
        result = await attacher.attach(
            source.read_bytes(), source.name,
            repo=repo, credentials=creds, editor=editor, mime_type=mime_type,
        )
        await attacher.drain()
        return result

    if not _run(engine.cache.is_cached(repo)):
        raise click.ClickException(f"{repo} is not cached; run clone first")
    client = _lfs_client(ctx)
    attacher = Attacher(engine.cache, LargeFiles(engine.cache, client), engine)
    result = _run(_closing(client, _attach()))
    if doc:
        Path(doc).write_text(editor.doc, encoding="utf-8")
        _status(ctx, f"Inserted reference into {doc}")
    if result.pointer is not None:
        _status(ctx, f"Stored {result.path} as Git LFS object {result.pointer.oid}")
    click.echo(result.markdown)
