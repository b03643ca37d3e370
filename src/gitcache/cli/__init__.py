"""Command-line interface for the repository cache."""

from ._helpers import main  # noqa: F401

# Command modules register themselves on the main group when imported.
from . import _cache, _files, _sync  # noqa: F401
