"""Exceptions for gitcache."""


class GitCacheError(Exception):
    """Base class for every error raised by gitcache."""


class FilesystemError(GitCacheError):
    """Directory or file I/O against the cache failed."""


class CloneError(GitCacheError):
    """Cloning a repository failed (network, auth, or remote not found).

    The cache directory may be left behind; call ``clone`` again to retry.
    """


class SyncError(GitCacheError):
    """Pull or push failed.

    Raised for network and auth failures, non-fast-forward rejections,
    merge conflicts and pulls over uncommitted changes. Nothing is retried
    automatically.
    """


class LocalVcsError(GitCacheError):
    """A local-only operation (stage, unstage, commit, ref lookup) failed."""


class LfsError(GitCacheError):
    """Base class for large-file store errors."""


class LfsResolutionError(LfsError):
    """A pointer could not be resolved to a fetchable URL or its content."""


class LfsUploadError(LfsError):
    """Raw content could not be uploaded to the large-file store."""
