"""Git LFS pointers: hashing, pointer documents, and the remote object store.

A tracked path stores a three-line pointer in the working tree::

    version https://git-lfs.github.com/spec/v1
    oid sha256:<64 lowercase hex chars>
    size <decimal byte count>

``oid`` and ``size`` always describe the original content, never the
pointer itself.  Writes upload the content first and only then replace
it with the pointer, so a committed pointer always has its bytes in the
store.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import re
from dataclasses import dataclass
from typing import Any

import httpx

from ._attributes import AttributeMatcher
from ._paths import RepositoryIdentity
from ._timer import timed
from .cache import RepoCache
from .credentials import Credentials
from .exceptions import FilesystemError, LfsError, LfsResolutionError, LfsUploadError

logger = logging.getLogger("gitcache.lfs")

POINTER_VERSION = "https://git-lfs.github.com/spec/v1"
LFS_FILE_ENDPOINT = "/git-lfs-file"

_OID_RE = re.compile(r"[0-9a-f]{64}")
_SIZE_RE = re.compile(r"[0-9]+")

# Pointers are tiny; anything larger is content.
_MAX_POINTER_SIZE = 1024


# ---------------------------------------------------------------------------
# Pointer documents
# ---------------------------------------------------------------------------

def digest(data: bytes) -> str:
    """SHA-256 of *data* as 64 lowercase hex characters."""
    return hashlib.sha256(data).hexdigest()


@dataclass(frozen=True)
class Pointer:
    """Identity of a large file: content digest and byte length."""
    oid: str
    size: int

    @classmethod
    def for_content(cls, data: bytes) -> Pointer:
        return cls(digest(data), len(data))

    @property
    def text(self) -> str:
        return f"version {POINTER_VERSION}\noid sha256:{self.oid}\nsize {self.size}\n"

    def __str__(self) -> str:
        return self.text

    def matches(self, data: bytes) -> bool:
        """True iff *data* is the content this pointer describes."""
        return len(data) == self.size and digest(data) == self.oid


def build_pointer(data: bytes) -> str:
    """Pointer document for *data*, newline-terminated."""
    return Pointer.for_content(data).text


def parse_pointer(text: str | bytes) -> Pointer:
    """Parse a pointer document; raises ValueError if *text* is not one."""
    if isinstance(text, bytes):
        if len(text) > _MAX_POINTER_SIZE:
            raise ValueError("Too large to be a pointer")
        try:
            text = text.decode("utf-8")
        except UnicodeDecodeError:
            raise ValueError("Pointer is not UTF-8") from None
    if not text.endswith("\n"):
        raise ValueError("Pointer must be newline-terminated")
    lines = text[:-1].split("\n")
    if len(lines) != 3:
        raise ValueError(f"Pointer must have 3 lines, got {len(lines)}")
    version, oid_line, size_line = lines
    if version != f"version {POINTER_VERSION}":
        raise ValueError(f"Unknown pointer version line: {version!r}")
    if not oid_line.startswith("oid sha256:"):
        raise ValueError(f"Bad oid line: {oid_line!r}")
    oid = oid_line[len("oid sha256:"):]
    if not _OID_RE.fullmatch(oid):
        raise ValueError(f"Bad oid: {oid!r}")
    if not size_line.startswith("size "):
        raise ValueError(f"Bad size line: {size_line!r}")
    size = size_line[len("size "):]
    if not _SIZE_RE.fullmatch(size):
        raise ValueError(f"Bad size: {size!r}")
    return Pointer(oid, int(size))


# ---------------------------------------------------------------------------
# Remote store client
# ---------------------------------------------------------------------------

class LfsClient:
    """Client for the ``/git-lfs-file`` resolve and upload endpoints.

    Every call carries its own credentials; nothing is pooled per user.
    No timeout is imposed unless *timeout* is given.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

    def __repr__(self) -> str:
        return f"LfsClient({self.base_url!r})"

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> LfsClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def resolve_pointer(
        self,
        pointer: str | bytes,
        repo: RepositoryIdentity,
        credentials: Credentials,
    ) -> str:
        """Exchange *pointer* for a (possibly short-lived) fetch URL."""
        if isinstance(pointer, bytes):
            pointer = pointer.decode("utf-8", errors="replace")
        with timed(f"lfs resolve {repo.slug}"):
            try:
                response = await self._client.get(
                    LFS_FILE_ENDPOINT,
                    params={"repo": repo.slug, "pointer": pointer},
                    headers={"Authorization": credentials.authorization},
                )
            except httpx.HTTPError as exc:
                raise LfsResolutionError(f"Unable to resolve Git LFS pointer: {exc}") from exc
        if not response.is_success:
            raise LfsResolutionError(
                f"Unable to resolve Git LFS pointer: HTTP {response.status_code}"
            )
        url = response.text.strip()
        if not url:
            raise LfsResolutionError("Unable to resolve Git LFS pointer: empty response")
        return url

    async def upload(
        self,
        data: bytes,
        repo: RepositoryIdentity,
        credentials: Credentials,
    ) -> Pointer:
        """Upload *data* to the store; returns the pointer describing it."""
        pointer = Pointer.for_content(data)
        body = {
            "repo": repo.slug,
            "content": base64.b64encode(data).decode("ascii"),
            "oid": pointer.oid,
            "size": pointer.size,
        }
        with timed(f"lfs upload {repo.slug} {pointer.oid[:12]} ({pointer.size} bytes)"):
            try:
                response = await self._client.post(
                    LFS_FILE_ENDPOINT,
                    json=body,
                    headers={"Authorization": credentials.authorization},
                )
            except httpx.HTTPError as exc:
                raise LfsUploadError(f"Unable to upload file to Git LFS server: {exc}") from exc
        if not response.is_success:
            raise LfsUploadError(
                f"Unable to upload file to Git LFS server: HTTP {response.status_code}"
            )
        return pointer

    async def download(self, url: str) -> bytes:
        """Fetch the bytes behind a resolved URL."""
        with timed("lfs download"):
            try:
                response = await self._client.get(url)
            except httpx.HTTPError as exc:
                raise LfsResolutionError(f"Unable to download Git LFS object: {exc}") from exc
        if not response.is_success:
            raise LfsResolutionError(
                f"Unable to download Git LFS object: HTTP {response.status_code}"
            )
        return response.content


# ---------------------------------------------------------------------------
# Working-tree reads and writes
# ---------------------------------------------------------------------------

class LargeFiles:
    """Reads and writes working-tree files, handling LFS transparently."""

    def __init__(
        self,
        cache: RepoCache,
        client: LfsClient | None = None,
        matcher: AttributeMatcher | None = None,
    ):
        self.cache = cache
        self._client = client
        self.matcher = matcher or AttributeMatcher(cache)

    @property
    def client(self) -> LfsClient:
        if self._client is None:
            raise LfsError("No Git LFS endpoint configured")
        return self._client

    def _full_path(self, repo: RepositoryIdentity, path: str) -> str:
        repo_dir = self.cache.repo_dir(repo)
        if path == repo_dir or path.startswith(repo_dir + "/"):
            return path
        return self.cache.path_in(repo, path)

    async def _read_raw(self, path: str) -> bytes:
        try:
            return await self.cache.fs.read_file(path)
        except OSError as exc:
            raise FilesystemError(f"Cannot read {path}: {exc}") from exc

    async def _pointer_at(self, repo: RepositoryIdentity, path: str) -> tuple[bytes, Pointer | None]:
        raw = await self._read_raw(path)
        if not await self.matcher.is_tracked(repo, path):
            return raw, None
        try:
            return raw, parse_pointer(raw)
        except ValueError:
            # Tracked pattern, but the bytes were committed before the rule.
            return raw, None

    async def resolve_url(
        self, repo: RepositoryIdentity, path: str, credentials: Credentials,
    ) -> str | None:
        """Fetch URL for a tracked pointer at *path*, or None for plain files."""
        path = self._full_path(repo, path)
        raw, pointer = await self._pointer_at(repo, path)
        if pointer is None:
            return None
        return await self.client.resolve_pointer(raw, repo, credentials)

    async def read_file(
        self, repo: RepositoryIdentity, path: str, credentials: Credentials,
    ) -> bytes:
        """Content of *path*: pointers are resolved, downloaded and verified."""
        path = self._full_path(repo, path)
        raw, pointer = await self._pointer_at(repo, path)
        if pointer is None:
            return raw
        url = await self.client.resolve_pointer(raw, repo, credentials)
        data = await self.client.download(url)
        if not pointer.matches(data):
            raise LfsResolutionError(
                f"Downloaded content for {path} does not match oid {pointer.oid}"
            )
        return data

    async def write_file(
        self,
        repo: RepositoryIdentity,
        path: str,
        data: bytes,
        credentials: Credentials,
    ) -> Pointer | None:
        """Write *data* to *path*; tracked paths get a pointer after upload.

        Returns the pointer written, or None when the raw bytes were written.
        """
        path = self._full_path(repo, path)
        pointer = None
        if await self.matcher.is_tracked(repo, path):
            pointer = await self.client.upload(data, repo, credentials)
            payload = pointer.text.encode("utf-8")
            logger.debug("%s is LFS-tracked; writing pointer %s", path, pointer.oid)
        else:
            payload = data
        try:
            await self.cache.fs.write_file(path, payload)
        except OSError as exc:
            raise FilesystemError(f"Cannot write {path}: {exc}") from exc
        return pointer
