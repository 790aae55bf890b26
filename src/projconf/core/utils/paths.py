"""Path helpers shared by the caches and stages."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator, List, Union

PathLike = Union[str, "os.PathLike[str]"]


def canonical_path(path: PathLike) -> Path:
    """Return the absolute, canonical form used as cache and dedup key."""
    return Path(path).expanduser().resolve()


def ancestors(start: Path) -> Iterator[Path]:
    """Yield ``start`` and each parent up to the filesystem root inclusive."""
    current = start
    while True:
        yield current
        parent = current.parent
        if parent == current:
            return
        current = parent


def split_project_name(project_name: str) -> List[str]:
    """Return the cumulative segments of a nested name: ``a/b`` -> ``[a, a/b]``."""
    parts = [p for p in project_name.split("/") if p and p not in (".", "..")]
    return ["/".join(parts[: i + 1]) for i in range(len(parts))]


def user_config_home() -> Path:
    """Return ``$XDG_CONFIG_HOME`` or ``~/.config``."""
    xdg = os.environ.get("XDG_CONFIG_HOME", "").strip()
    if xdg:
        return Path(xdg).expanduser()
    return Path.home() / ".config"


__all__ = ["PathLike", "canonical_path", "ancestors", "split_project_name", "user_config_home"]
