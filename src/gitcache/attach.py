"""Attach a file to a document: store it, commit it, insert a markdown link.

The write goes through `~gitcache.lfs.LargeFiles` (so LFS-tracked uploads
become pointers) and is awaited.  Staging and committing run as a detached
task: its failure is only logged and never undoes the write, so a file can
sit uncommitted until the next successful commit.
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import time
from collections.abc import Callable, MutableMapping
from dataclasses import dataclass
from typing import Protocol

from ._paths import RepositoryIdentity
from .cache import RepoCache
from .credentials import Credentials
from .lfs import LargeFiles, Pointer

logger = logging.getLogger("gitcache.attach")

UPLOADS_DIR = "uploads"

_EMBEDDED_TYPES = ("image", "video", "audio")


# ---------------------------------------------------------------------------
# Editor collaborator
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EditorEdit:
    """Replace ``[start, end)`` with *insert*, then select ``anchor..head``.

    ``head`` None means a collapsed cursor at ``anchor``.
    """
    start: int
    end: int
    insert: str
    anchor: int
    head: int | None = None


class Editor(Protocol):
    def selection(self) -> tuple[int, int]: ...

    def slice(self, start: int, end: int) -> str: ...

    def dispatch(self, edit: EditorEdit) -> None: ...

    def focus(self) -> None: ...


class TextEditor:
    """Plain-text buffer with a single selection range."""

    def __init__(self, doc: str = "", anchor: int = 0, head: int | None = None):
        self.doc = doc
        self.anchor = anchor
        self.head = anchor if head is None else head
        self.focused = False

    def __repr__(self) -> str:
        return f"TextEditor(len={len(self.doc)}, anchor={self.anchor}, head={self.head})"

    def selection(self) -> tuple[int, int]:
        return min(self.anchor, self.head), max(self.anchor, self.head)

    def slice(self, start: int, end: int) -> str:
        return self.doc[start:end]

    @property
    def selected_text(self) -> str:
        return self.slice(*self.selection())

    def dispatch(self, edit: EditorEdit) -> None:
        self.doc = self.doc[:edit.start] + edit.insert + self.doc[edit.end:]
        self.anchor = edit.anchor
        self.head = edit.anchor if edit.head is None else edit.head

    def focus(self) -> None:
        self.focused = True


# ---------------------------------------------------------------------------
# Markdown
# ---------------------------------------------------------------------------

def build_markdown(label: str, target: str, mime_type: str | None) -> str:
    """``[label](target)``, prefixed with ``!`` for image/video/audio."""
    markdown = f"[{label}]({target})"
    if mime_type and mime_type.split("/", 1)[0] in _EMBEDDED_TYPES:
        markdown = f"!{markdown}"
    return markdown


def selection_after_insert(start: int, markdown: str, replaced_text: bool) -> tuple[int, int | None]:
    """Where the selection goes once *markdown* is inserted at *start*.

    Replacing a selection leaves the cursor after the insertion.  Otherwise
    the label is selected so it can be renamed straight away.
    """
    if replaced_text:
        return start + len(markdown), None
    return start + markdown.index("]"), start + markdown.index("[") + 1


def split_extension(filename: str) -> tuple[str, str]:
    """``("notes", "txt")`` for ``notes.txt``; ``("Makefile", "")`` without a dot."""
    stem, dot, ext = filename.rpartition(".")
    if not dot or not stem:
        return filename, ""
    return stem, ext


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PreviewFile:
    """Attached bytes kept around so the editor can render them right away."""
    data: bytes
    mime_type: str


@dataclass(frozen=True)
class AttachResult:
    path: str
    markdown: str
    edit: EditorEdit
    pointer: Pointer | None = None


class Attacher:
    """Runs the attach workflow for one process.

    *vcs* needs ``stage(repo, paths)`` and ``commit(repo, message)``
    coroutines (a `~gitcache.sync.SyncEngine`).  *preview_cache* maps the
    root-relative upload path to a `PreviewFile`.
    """

    def __init__(
        self,
        cache: RepoCache,
        large_files: LargeFiles,
        vcs,
        *,
        is_online: Callable[[], bool] = lambda: True,
        preview_cache: MutableMapping[str, PreviewFile] | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.cache = cache
        self.large_files = large_files
        self.vcs = vcs
        self.is_online = is_online
        self.preview_cache = {} if preview_cache is None else preview_cache
        self._clock = clock
        self._pending: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of background commits still running."""
        return len(self._pending)

    async def attach(
        self,
        data: bytes,
        filename: str,
        *,
        repo: RepositoryIdentity | None,
        credentials: Credentials | None,
        editor: Editor | None,
        mime_type: str | None = None,
    ) -> AttachResult | None:
        """Store *data* under ``uploads/`` and link it from *editor*.

        Returns None, doing nothing at all, when offline or when the user,
        repository or editor is missing.
        """
        if not self.is_online():
            return None
        if credentials is None or repo is None or editor is None:
            return None

        if mime_type is None:
            mime_type = mimetypes.guess_type(filename)[0] or ""
        file_id = str(int(self._clock() * 1000))
        _stem, ext = split_extension(filename)
        rel_path = f"{UPLOADS_DIR}/{file_id}.{ext}" if ext else f"{UPLOADS_DIR}/{file_id}"
        target = f"/{rel_path}"

        await self.cache.ensure_directory(self.cache.path_in(repo, UPLOADS_DIR))
        pointer = await self.large_files.write_file(repo, rel_path, data, credentials)
        self._spawn(self._stage_and_commit(repo, rel_path))

        self.preview_cache[target] = PreviewFile(data, mime_type)

        start, end = editor.selection()
        selected = editor.slice(start, end)
        markdown = build_markdown(selected or filename, target, mime_type)
        anchor, head = selection_after_insert(start, markdown, bool(selected))
        edit = EditorEdit(start, end, markdown, anchor, head)
        editor.dispatch(edit)
        editor.focus()
        return AttachResult(rel_path, markdown, edit, pointer)

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _stage_and_commit(self, repo: RepositoryIdentity, rel_path: str) -> None:
        try:
            await self.vcs.stage(repo, [rel_path])
            await self.vcs.commit(repo, f"Update {rel_path}")
        except Exception:
            logger.exception("Could not commit attachment %s in %s", rel_path, repo)

    async def drain(self) -> None:
        """Wait for every background commit started so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending))
