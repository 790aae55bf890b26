"""Reactive merged JSON document.

``ReactiveDocument`` is a mutable mapping whose writes, at any depth, fire a
single change notification to its observer. Plain mappings assigned into it
are wrapped in :class:`ReactiveTable` so nested writes are observed too.

The document keeps its persistence target (``persist_to``) as a plain path
value; it never references the context that owns it.
"""
from __future__ import annotations

import copy
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Mapping, MutableMapping, Optional, Sequence, Tuple

from projconf.core.utils.merge import deep_merge_into

logger = logging.getLogger(__name__)

KeyPath = Tuple[str, ...]
Observer = Callable[["ReactiveDocument"], None]


class ReactiveTable(MutableMapping[str, Any]):
    """Observable mapping node of a :class:`ReactiveDocument`."""

    def __init__(self, root: "ReactiveDocument", path: KeyPath = ()) -> None:
        self._root = root
        self._path = path
        self._data: Dict[str, Any] = {}

    @property
    def path(self) -> KeyPath:
        """Key path of this node from the document root."""
        return self._path

    def _wrap(self, key: str, value: Any) -> Any:
        if isinstance(value, Mapping):
            child = ReactiveTable(self._root, self._path + (key,))
            for k, v in value.items():
                child._data[k] = child._wrap(k, v)
            return child
        if isinstance(value, list):
            return copy.deepcopy(value)
        return value

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._data[key] = self._wrap(key, value)
        self._root._notify(self._path + (key,))

    def __delitem__(self, key: str) -> None:
        del self._data[key]
        self._root._notify(self._path + (key,))

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.to_dict()!r})"

    def to_dict(self) -> Dict[str, Any]:
        """Return a plain, deep-copied ``dict`` view of this node."""
        out: Dict[str, Any] = {}
        for key, value in self._data.items():
            if isinstance(value, ReactiveTable):
                out[key] = value.to_dict()
            else:
                out[key] = copy.deepcopy(value)
        return out

    def iter_items(self) -> Iterator[Tuple[KeyPath, Any]]:
        """Enumerate ``(key_path, value)`` for every leaf below this node.

        Empty nested tables are reported as leaves with an empty dict value.
        """
        for key, value in self._data.items():
            if isinstance(value, ReactiveTable) and len(value):
                yield from value.iter_items()
            elif isinstance(value, ReactiveTable):
                yield value.path, {}
            else:
                yield self._path + (key,), value


class ReactiveDocument(ReactiveTable):
    """Root of the merged document.

    Args:
        observer: called with the document after every user-visible write
        persist_to: file the observer should write the document to
    """

    def __init__(self, observer: Optional[Observer] = None, persist_to: Optional[Path] = None) -> None:
        super().__init__(self, ())
        self.observer = observer
        self.persist_to = persist_to
        self._muted = 0

    def _notify(self, key_path: KeyPath) -> None:
        if self._muted or self.observer is None:
            return
        logger.debug("document changed at %s", ".".join(key_path))
        self.observer(self)

    @contextmanager
    def muted(self) -> Iterator["ReactiveDocument"]:
        """Suppress change notifications inside the block."""
        self._muted += 1
        try:
            yield self
        finally:
            self._muted -= 1

    def merge(self, source: Mapping[str, Any], *, notify: bool = False) -> None:
        """Deep-merge ``source`` into the document ("later wins").

        Object/object overlaps recurse, everything else (arrays included) is
        replaced. With ``notify`` the observer fires once after the merge.
        """
        with self.muted():
            deep_merge_into(self, source)
        if notify:
            self._notify(())

    def get_path(self, keys: Sequence[str], default: Any = None) -> Any:
        node: Any = self
        for key in keys:
            if not isinstance(node, Mapping) or key not in node:
                return default
            node = node[key]
        return node

    def set_path(self, keys: Sequence[str], value: Any) -> None:
        """Assign ``value`` at ``keys``, creating intermediate tables.

        Fires a single notification however many tables were created.
        """
        if not keys:
            raise KeyError("set_path requires at least one key")
        with self.muted():
            node: MutableMapping[str, Any] = self
            for key in keys[:-1]:
                child = node.get(key)
                if not isinstance(child, ReactiveTable):
                    node[key] = {}
                    child = node[key]
                node = child
            node[keys[-1]] = value
        self._notify(tuple(keys))


__all__ = ["ReactiveDocument", "ReactiveTable", "KeyPath", "Observer"]
