from ._paths import RepositoryIdentity, cache_path, parse_identity, sanitize_segment
from ._attributes import AttributeMatcher, AttributeRule, parse_attributes
from .attach import Attacher, AttachResult, Editor, EditorEdit, TextEditor, build_markdown
from .cache import RepoCache
from .config import Settings
from .credentials import Credentials
from .exceptions import (
    CloneError, FilesystemError, GitCacheError, LfsError, LfsResolutionError,
    LfsUploadError, LocalVcsError, SyncError,
)
from .fs import FileStat, FileSystem, LocalFileSystem, MemoryFileSystem
from .lfs import LargeFiles, LfsClient, Pointer, build_pointer, digest, parse_pointer
from .log import configure_logging
from .sync import (
    CloneOptions, PullOptions, PullOutcome, PushOptions, RepoState, SyncEngine, SyncState,
)

__all__ = [
    "RepositoryIdentity", "cache_path", "parse_identity", "sanitize_segment",
    "AttributeMatcher", "AttributeRule", "parse_attributes",
    "Attacher", "AttachResult", "Editor", "EditorEdit", "TextEditor", "build_markdown",
    "RepoCache", "Settings", "Credentials",
    "GitCacheError", "FilesystemError", "CloneError", "SyncError", "LocalVcsError",
    "LfsError", "LfsResolutionError", "LfsUploadError",
    "FileStat", "FileSystem", "LocalFileSystem", "MemoryFileSystem",
    "LargeFiles", "LfsClient", "Pointer", "build_pointer", "digest", "parse_pointer",
    "configure_logging",
    "CloneOptions", "PullOptions", "PushOptions", "PullOutcome", "RepoState",
    "SyncEngine", "SyncState",
]
