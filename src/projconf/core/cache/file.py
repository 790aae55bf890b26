"""File content cache.

Entries carry the raw bytes, the mtime observed when they were read or
written, and an optional handler-specific ``parsed`` value (the decoded JSON
for JSON artifacts). Any mtime mismatch replaces the entry, which drops
``parsed``. Writes are write-through: the bytes hit the disk first, then the
entry is refreshed from a post-write stat.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import aiofiles
import aiofiles.os
from aiofiles.os import wrap

from projconf.core.utils.io import atomic_write_bytes
from projconf.core.utils.paths import PathLike, canonical_path
from projconf.exceptions import CacheWriteError

logger = logging.getLogger(__name__)

_atomic_write_async = wrap(atomic_write_bytes)


@dataclass
class FileEntry:
    path: Path
    content: bytes
    mtime: int
    parsed: Optional[Any] = None


class FileCache:
    """mtime-validated, write-through cache of file contents."""

    def __init__(self, *, trust_mtime: bool = True) -> None:
        self.trust_mtime = trust_mtime
        self._cache: Dict[Path, FileEntry] = {}

    def lookup(self, path: PathLike) -> Optional[FileEntry]:
        """Return the cached entry for ``path`` without touching the disk."""
        return self._cache.get(canonical_path(path))

    async def read(self, path: PathLike) -> FileEntry:
        """Return a current entry for ``path``.

        Raises:
            OSError: the file cannot be stat'ed or read; the entry is evicted
        """
        key = canonical_path(path)
        try:
            st = await aiofiles.os.stat(key)
            cached = self._cache.get(key)
            if cached is not None and self.trust_mtime and cached.mtime == st.st_mtime_ns:
                return cached

            async with aiofiles.open(key, "rb") as f:
                content = await f.read()
        except OSError:
            self._cache.pop(key, None)
            raise

        entry = FileEntry(path=key, content=content, mtime=st.st_mtime_ns)
        self._cache[key] = entry
        logger.debug("read %s (%d bytes)", key, len(content))
        return entry

    async def write(self, path: PathLike, content: bytes, parsed: Optional[Any] = None) -> FileEntry:
        """Write ``content`` to ``path`` and cache it with ``parsed``.

        The caller supplies ``parsed`` when it should stay coherent with
        ``content``; omitting it stores None.
        """
        key = canonical_path(path)
        try:
            await _atomic_write_async(key, content)
        except OSError:
            self._cache.pop(key, None)
            raise
        try:
            st = await aiofiles.os.stat(key)
        except OSError as exc:
            self._cache.pop(key, None)
            raise CacheWriteError(f"stat after write failed: {key}", context={"path": str(key)}) from exc
        return self._store(key, content, st.st_mtime_ns, parsed)

    def write_sync(self, path: PathLike, content: bytes, parsed: Optional[Any] = None) -> FileEntry:
        """Blocking variant of :meth:`write` for callers outside the event loop."""
        key = canonical_path(path)
        try:
            atomic_write_bytes(key, content)
        except OSError:
            self._cache.pop(key, None)
            raise
        try:
            st = os.stat(key)
        except OSError as exc:
            self._cache.pop(key, None)
            raise CacheWriteError(f"stat after write failed: {key}", context={"path": str(key)}) from exc
        return self._store(key, content, st.st_mtime_ns, parsed)

    def _store(self, key: Path, content: bytes, mtime: int, parsed: Optional[Any]) -> FileEntry:
        entry = FileEntry(path=key, content=content, mtime=mtime, parsed=parsed)
        self._cache[key] = entry
        logger.debug("wrote %s (%d bytes)", key, len(content))
        return entry

    def invalidate(self, path: PathLike) -> None:
        self._cache.pop(canonical_path(path), None)

    def clear_all(self) -> None:
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)


__all__ = ["FileEntry", "FileCache"]
