"""Base class for item-at-a-time stages."""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

from projconf.core.pipeline import DONE, Channel

if TYPE_CHECKING:
    from projconf.core.context import Context


class Stage:
    """A pipeline stage that handles one upstream item at a time.

    ``__call__`` drains ``rx`` until ``DONE``, hands every item to
    :meth:`process`, then forwards ``DONE`` once. Channel operations raise
    ``PipelineStopped`` when the run is stopped, which ends the stage without
    forwarding anything. Stages that need per-run state override
    ``__call__`` instead.
    """

    name = "stage"

    async def __call__(self, ctx: "Context", rx: Channel, tx: Channel) -> None:
        async for item in rx:
            await self.process(ctx, item, tx)
        await tx.send(DONE)

    async def process(self, ctx: "Context", item: Any, tx: Channel) -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
