"""Repository identities and their canonical cache paths."""

from __future__ import annotations

import re
from dataclasses import dataclass

DEFAULT_CACHE_ROOT = "/repos"

_UNSAFE = re.compile(r"[^a-z0-9_-]")


@dataclass(frozen=True)
class RepositoryIdentity:
    """An ``owner/name`` pair as the remote host spells it."""
    owner: str
    name: str

    def __str__(self) -> str:
        return f"{self.owner}/{self.name}"

    @property
    def slug(self) -> str:
        """``owner/name`` used on the wire (LFS endpoints)."""
        return f"{self.owner}/{self.name}"

    def cache_key(self) -> tuple[str, str]:
        """Sanitized (owner, name); equal keys share one cache entry."""
        return sanitize_segment(self.owner), sanitize_segment(self.name)


def sanitize_segment(value: str) -> str:
    """Trim, lower-case and replace anything outside ``[a-z0-9_-]`` with ``-``.

    Distinct inputs can collapse to the same segment (``a.b`` and ``a-b``).
    That collision is accepted.
    """
    return _UNSAFE.sub("-", value.strip().lower())


def cache_path(identity: RepositoryIdentity, root: str = DEFAULT_CACHE_ROOT) -> str:
    """Return the cache directory for *identity* under *root*.

    Pure and total: no I/O, never raises for string inputs.
    """
    owner, name = identity.cache_key()
    return f"{root.rstrip('/')}/{owner}/{name}"


def parse_identity(value: str) -> RepositoryIdentity:
    """Parse ``owner/name`` into a RepositoryIdentity."""
    owner, sep, name = value.strip().strip("/").partition("/")
    if not sep or not owner or not name or "/" in name:
        raise ValueError(f"Expected OWNER/NAME, got {value!r}")
    return RepositoryIdentity(owner, name)


def join(base: str, *parts: str) -> str:
    """Join virtual path segments with single slashes."""
    path = base.rstrip("/")
    for part in parts:
        part = part.strip("/")
        if part:
            path = f"{path}/{part}"
    return path or "/"


def relative_to(root: str, path: str) -> str:
    """Strip the *root* prefix and any leading slashes from *path*."""
    root = root.rstrip("/")
    if root and (path == root or path.startswith(root + "/")):
        path = path[len(root):]
    return path.lstrip("/")
