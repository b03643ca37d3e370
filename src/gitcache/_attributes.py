"""``.gitattributes`` parsing and Git LFS tracking checks.

Only the pattern and its flag tokens matter here; the question answered
is "does some rule matching this path carry ``filter=lfs``?".  Any
matching flagged rule is enough: later lines do not override earlier
ones.

Pattern syntax follows gitignore rules (implemented by
``dulwich.ignore.IgnoreFilter``), so ``*.mp4`` matches at any depth and
``**``, ``?`` and bracket classes behave as git's.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from dulwich.ignore import IgnoreFilter

from ._paths import RepositoryIdentity, relative_to

if TYPE_CHECKING:
    from .cache import RepoCache

ATTRIBUTES_FILE = ".gitattributes"
LFS_FILTER = "filter=lfs"


@dataclass
class AttributeRule:
    """One pattern line: ``<pattern> <flag> [<flag> ...]``."""
    pattern: str
    flags: frozenset[str] = frozenset()
    _filter: IgnoreFilter | None = field(default=None, repr=False, compare=False)

    @property
    def is_lfs(self) -> bool:
        return LFS_FILTER in self.flags

    def matches(self, rel_path: str) -> bool:
        """Glob-match *rel_path* (relative to the repository root)."""
        if self._filter is None:
            pattern = self.pattern
            if not pattern or pattern.startswith("!"):
                return False
            self._filter = IgnoreFilter([pattern.encode("utf-8")])
        return self._filter.is_ignored(rel_path.lstrip("/")) is True


def parse_attributes(text: str) -> list[AttributeRule]:
    """Parse attributes text, dropping ``#`` comments and blank lines."""
    rules = []
    for line in text.splitlines():
        if line.startswith("#") or not line.strip():
            continue
        pattern, *flags = line.split()
        rules.append(AttributeRule(pattern, frozenset(flags)))
    return rules


class AttributeMatcher:
    """Answers LFS tracking questions for repositories in a `RepoCache`.

    The attributes file is re-read on every call, so edits made by a pull
    are picked up immediately.
    """

    def __init__(self, cache: RepoCache):
        self._cache = cache

    async def rules(self, repo: RepositoryIdentity) -> list[AttributeRule]:
        """Rules from *repo*'s attributes file; empty when it cannot be read."""
        try:
            data = await self._cache.fs.read_file(
                self._cache.path_in(repo, ATTRIBUTES_FILE)
            )
        except OSError:
            return []
        return parse_attributes(data.decode("utf-8", errors="replace"))

    async def is_tracked(self, repo: RepositoryIdentity, path: str) -> bool:
        """True iff some rule matches *path* and carries ``filter=lfs``.

        *path* may be a full cache path or relative to the repository root.
        """
        rel = relative_to(self._cache.repo_dir(repo), path)
        return any(
            rule.is_lfs and rule.matches(rel)
            for rule in await self.rules(repo)
        )
