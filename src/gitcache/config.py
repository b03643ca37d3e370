"""Configuration for gitcache."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from ._paths import DEFAULT_CACHE_ROOT

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _validate_branch(branch: str) -> None:
    if not branch:
        raise ValueError("branch must not be empty")
    for ch, label in ((":", "colon"), (" ", "space"), ("\t", "tab"), ("\n", "newline")):
        if ch in branch:
            raise ValueError(f"Invalid branch name {branch!r}: contains {label}")


@dataclass
class Settings:
    """Where the cache lives and which remotes it talks to."""

    cache_dir: Path = field(default_factory=lambda: Path.home() / ".gitcache")
    cache_root: str = DEFAULT_CACHE_ROOT
    remote_base: str = "https://github.com"
    cors_proxy: str | None = None
    lfs_url: str | None = None
    branch: str = "main"
    clone_depth: int | None = 1
    log_level: str = "WARNING"

    def __post_init__(self):
        self.cache_dir = Path(self.cache_dir).expanduser()
        if not self.cache_root.startswith("/"):
            raise ValueError(f"cache_root must be absolute: {self.cache_root!r}")
        if not self.remote_base:
            raise ValueError("remote_base must not be empty")
        self.remote_base = self.remote_base.rstrip("/")
        if self.cors_proxy is not None:
            self.cors_proxy = self.cors_proxy.rstrip("/") or None
        _validate_branch(self.branch)
        if self.clone_depth is not None and self.clone_depth < 1:
            raise ValueError("clone_depth must be positive (or None for full history)")
        self.log_level = self.log_level.upper()
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(f"Invalid log level: {self.log_level}. Must be one of {list(_LOG_LEVELS)}")

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None, **overrides) -> Settings:
        """Build settings from ``GITCACHE_*`` variables; *overrides* win."""
        env = os.environ if environ is None else environ
        values: dict = {}
        if env.get("GITCACHE_DIR"):
            values["cache_dir"] = Path(env["GITCACHE_DIR"])
        if env.get("GITCACHE_REMOTE_BASE"):
            values["remote_base"] = env["GITCACHE_REMOTE_BASE"]
        if env.get("GITCACHE_CORS_PROXY"):
            values["cors_proxy"] = env["GITCACHE_CORS_PROXY"]
        if env.get("GITCACHE_LFS_URL"):
            values["lfs_url"] = env["GITCACHE_LFS_URL"]
        if env.get("GITCACHE_BRANCH"):
            values["branch"] = env["GITCACHE_BRANCH"]
        if env.get("GITCACHE_CLONE_DEPTH"):
            try:
                depth = int(env["GITCACHE_CLONE_DEPTH"])
            except ValueError:
                raise ValueError(
                    f"GITCACHE_CLONE_DEPTH must be an integer, got {env['GITCACHE_CLONE_DEPTH']!r}"
                ) from None
            values["clone_depth"] = depth or None
        if env.get("GITCACHE_LOG_LEVEL"):
            values["log_level"] = env["GITCACHE_LOG_LEVEL"]
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def remote_url(self, owner: str, name: str) -> str:
        """Canonical remote URL for ``owner/name``."""
        return f"{self.remote_base}/{owner}/{name}"

    def transport_url(self, url: str) -> str:
        """*url* as the transport should dial it (through the CORS relay if set)."""
        if self.cors_proxy is None:
            return url
        scheme, sep, rest = url.partition("://")
        if not sep or scheme not in ("http", "https"):
            return url
        return f"{self.cors_proxy}/{rest}"
