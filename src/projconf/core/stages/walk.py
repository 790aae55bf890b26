"""Walk stage: emit the ancestors of each input path."""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

import aiofiles.os

from projconf.core.matchers import normalize
from projconf.core.pipeline import Channel
from projconf.core.utils.paths import ancestors, canonical_path
from projconf.exceptions import ConfigError

from .base import Stage

if TYPE_CHECKING:
    from projconf.core.context import Context

DIRECTIONS = ("up", "down")


class WalkStage(Stage):
    """Emit every ancestor directory of each input path.

    File inputs start from their parent directory. ``direction="up"`` emits
    from the start directory to the filesystem root; ``"down"`` emits the same
    directories root first. An optional matcher filters what is emitted.
    """

    name = "walk"

    def __init__(self, direction: str = "up", matcher: Any = None) -> None:
        if direction not in DIRECTIONS:
            raise ConfigError(f"walk direction must be one of {DIRECTIONS}, got {direction!r}")
        self.direction = direction
        self.matcher = normalize(matcher)

    async def process(self, ctx: "Context", item: Any, tx: Channel) -> None:
        start = canonical_path(item)
        if not await aiofiles.os.path.isdir(start):
            start = start.parent

        chain = list(ancestors(start))
        if self.direction == "down":
            chain.reverse()

        for directory in chain:
            if await self.matcher(directory, ctx.dir_cache):
                await tx.send(directory)
            else:
                await tx.checkpoint()

    def __repr__(self) -> str:
        return f"WalkStage(direction={self.direction!r}, matcher={self.matcher!r})"


def walk(direction: str = "up", matcher: Any = None) -> WalkStage:
    return WalkStage(direction=direction, matcher=matcher)
