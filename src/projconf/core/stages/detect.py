"""Detect stage: find the project root among the walked directories."""
from __future__ import annotations

import inspect
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Optional

from projconf.core.matchers import normalize
from projconf.core.pipeline import Channel

from .base import Stage

if TYPE_CHECKING:
    from projconf.core.context import Context

logger = logging.getLogger(__name__)

OnMatch = Callable[["Context", Path], Any]


def default_on_match(ctx: "Context", path: Path) -> None:
    """Record ``path`` as the project root and its basename as the project name."""
    ctx.project_root = path
    ctx.project_name = path.name or None


class DetectStage(Stage):
    """Pass-through stage that calls ``on_match`` where the matcher succeeds.

    Only the first match takes effect: once ``ctx.project_root`` is set the
    matcher is no longer evaluated. ``override=True`` lets a later stage for a
    more specific marker replace an earlier result.
    """

    name = "detect"

    def __init__(self, matcher: Any = None, on_match: Optional[OnMatch] = None, *, override: bool = False) -> None:
        self.matcher = normalize(matcher)
        self.on_match = on_match or default_on_match
        self.override = override

    async def process(self, ctx: "Context", item: Any, tx: Channel) -> None:
        path = Path(item)
        if ctx.project_root is None or self.override:
            if await self.matcher(path, ctx.dir_cache):
                await tx.checkpoint()
                logger.debug("project marker matched at %s", path)
                result = self.on_match(ctx, path)
                if inspect.isawaitable(result):
                    await result
        await tx.send(item)

    def __repr__(self) -> str:
        return f"DetectStage(matcher={self.matcher!r}, override={self.override})"


def detect(matcher: Any = None, on_match: Optional[OnMatch] = None, *, override: bool = False) -> DetectStage:
    return DetectStage(matcher=matcher, on_match=on_match, override=override)
