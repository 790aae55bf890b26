"""Detect whether a filesystem's modification times can be trusted.

Coarse or frozen timestamps (FAT, some network mounts, containers with a
fixed clock) make a rewrite invisible to an mtime comparison. The probe
writes a throwaway file, rewrites it and checks that the mtime moved.
"""
from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)

# Probe results keyed by the directory that was probed.
_PROBE_CACHE: Dict[str, bool] = {}


def _probe(directory: Path) -> bool:
    fd, name = tempfile.mkstemp(prefix=".projconf-mtime-", dir=str(directory))
    probe = Path(name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(b"0")
        first = probe.stat().st_mtime_ns
        probe.write_bytes(b"01")
        second = probe.stat().st_mtime_ns
        return second > first
    finally:
        try:
            probe.unlink()
        except OSError:
            pass


def probe_mtime_trust(directory: Optional[Path] = None) -> bool:
    """Return True when rewrites in ``directory`` advance the mtime.

    Probes ``directory`` when it exists and is writable, otherwise the system
    temp directory. Results are cached per probed directory. Any probe failure
    answers False so the caches fall back to always re-reading.
    """
    target = Path(directory) if directory is not None else None
    if target is None or not target.is_dir() or not os.access(target, os.W_OK):
        target = Path(tempfile.gettempdir())

    key = str(target)
    if key in _PROBE_CACHE:
        return _PROBE_CACHE[key]

    try:
        trusted = _probe(target)
    except OSError as exc:
        logger.warning("mtime probe failed in %s: %s; treating mtime as untrusted", target, exc)
        trusted = False

    if not trusted:
        logger.info("mtime does not advance reliably in %s; caches will always re-read", target)
    _PROBE_CACHE[key] = trusted
    return trusted


def reset_probe_cache() -> None:
    """Forget previous probe results."""
    _PROBE_CACHE.clear()


__all__ = ["probe_mtime_trust", "reset_probe_cache"]
