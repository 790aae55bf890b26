"""Directory listing cache.

Maps a canonical directory path to its immediate children. An entry is
reused while the directory's mtime is unchanged; creating, removing or
renaming a child bumps the directory mtime and forces a re-enumeration.
"""
from __future__ import annotations

import logging
import os
import stat as stat_mod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import aiofiles.os
from aiofiles.os import wrap

from projconf.core.utils.paths import PathLike, canonical_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DirEntry:
    """One immediate child of a cached directory."""

    name: str
    kind: str  # "file" | "directory" | "symlink" | "other"

    @property
    def is_file(self) -> bool:
        return self.kind == "file"

    @property
    def is_dir(self) -> bool:
        return self.kind == "directory"


@dataclass
class _Listing:
    entries: List[DirEntry]
    mtime: int


def _entry_kind(entry: "os.DirEntry[str]") -> str:
    # Follow symlinks so a linked config file still counts as a file.
    try:
        if entry.is_dir():
            return "directory"
        if entry.is_file():
            return "file"
        if entry.is_symlink():
            return "symlink"
    except OSError:
        pass
    return "other"


def _enumerate(path: str) -> List[DirEntry]:
    with os.scandir(path) as it:
        entries = [DirEntry(name=e.name, kind=_entry_kind(e)) for e in it]
    entries.sort(key=lambda e: e.name)
    return entries


_enumerate_async = wrap(_enumerate)


class DirectoryCache:
    """mtime-validated cache of directory listings."""

    def __init__(self, *, trust_mtime: bool = True) -> None:
        self.trust_mtime = trust_mtime
        self._cache: Dict[Path, _Listing] = {}

    async def get(self, path: PathLike) -> Optional[List[DirEntry]]:
        """Return the children of ``path`` sorted by name.

        Returns None when ``path`` is not a directory or cannot be stat'ed.

        Raises:
            OSError: enumeration failed; nothing is cached and any stale entry
                for ``path`` is dropped
        """
        key = canonical_path(path)
        try:
            st = await aiofiles.os.stat(key)
        except OSError:
            self._cache.pop(key, None)
            return None
        if not stat_mod.S_ISDIR(st.st_mode):
            self._cache.pop(key, None)
            return None

        cached = self._cache.get(key)
        if cached is not None and self.trust_mtime and cached.mtime == st.st_mtime_ns:
            return cached.entries

        try:
            entries = await _enumerate_async(str(key))
        except OSError:
            self._cache.pop(key, None)
            raise

        self._cache[key] = _Listing(entries=entries, mtime=st.st_mtime_ns)
        logger.debug("listed %s (%d entries)", key, len(entries))
        return entries

    async def contains(self, path: PathLike, name: str) -> bool:
        """Return True when ``path`` has an immediate child called ``name``."""
        try:
            entries = await self.get(path)
        except OSError:
            return False
        if not entries:
            return False
        return any(entry.name == name for entry in entries)

    def invalidate(self, path: PathLike) -> None:
        self._cache.pop(canonical_path(path), None)

    def clear_all(self) -> None:
        self._cache.clear()

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, Path)):
            return False
        return canonical_path(path) in self._cache

    def __len__(self) -> int:
        return len(self._cache)


__all__ = ["DirEntry", "DirectoryCache"]
