"""Extension handlers.

A handler is ``handler(ctx, path)``; it may be a plain function or a
coroutine function. ``json`` and ``py`` are built in. Script kinds that only
the host can evaluate (``lua``, ``vim``) are supplied by the host through the
``handlers`` option.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Mapping, Optional

from .json import json_executor, matches_project_name, persist_document
from .python import python_executor

if TYPE_CHECKING:
    from projconf.core.context import Handler


def builtin_handlers() -> Dict[str, "Handler"]:
    return {"json": json_executor, "py": python_executor}


def build_router(host_handlers: Optional[Mapping[str, "Handler"]] = None) -> Dict[str, "Handler"]:
    """Return the built-in handlers overlaid with the host's, keyed by extension."""
    router = builtin_handlers()
    for kind, handler in (host_handlers or {}).items():
        router[kind.lstrip(".")] = handler
    return router


__all__ = [
    "builtin_handlers",
    "build_router",
    "json_executor",
    "python_executor",
    "persist_document",
    "matches_project_name",
]
