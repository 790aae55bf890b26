"""Content caches with modification-time based invalidation."""
from __future__ import annotations

from .directory import DirectoryCache, DirEntry
from .file import FileCache, FileEntry
from .mtime import probe_mtime_trust, reset_probe_cache

__all__ = [
    "DirectoryCache",
    "DirEntry",
    "FileCache",
    "FileEntry",
    "probe_mtime_trust",
    "reset_probe_cache",
]
