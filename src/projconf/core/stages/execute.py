"""Execute stage: route discovered artifacts to extension handlers."""
from __future__ import annotations

import asyncio
import inspect
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Mapping, Optional

from projconf.core.pipeline import Channel
from projconf.exceptions import HandlerError, PipelineStopped, ProjconfError

from .base import Stage

if TYPE_CHECKING:
    from projconf.core.context import Context, Handler

logger = logging.getLogger(__name__)


async def _invoke(handler: "Handler", ctx: "Context", path: Path) -> None:
    result = handler(ctx, path)
    if inspect.isawaitable(result):
        await result


class ExecuteStage(Stage):
    """Apply each artifact with the handler registered for its extension.

    ``router`` maps extensions without the dot (``"json"``) to handlers; when
    omitted, ``ctx.handlers`` is used. ``ctx.executors[kind]["async"]`` runs the
    handler on its own task, otherwise it runs inline on the stage task. Either
    way the stage waits for it, so artifacts apply in emission order.

    Handler failures are reported through ``on_error`` and do not stop the
    run; applied paths are appended to ``ctx.files_loaded`` and forwarded.
    """

    name = "execute"

    def __init__(self, router: Optional[Mapping[str, "Handler"]] = None) -> None:
        self.router = {k.lstrip("."): v for k, v in router.items()} if router is not None else None

    def handler_for(self, ctx: "Context", kind: str) -> Optional["Handler"]:
        router = self.router if self.router is not None else ctx.handlers
        return router.get(kind)

    async def process(self, ctx: "Context", item: Any, tx: Channel) -> None:
        path = Path(item)
        kind = path.suffix.lstrip(".")
        handler = self.handler_for(ctx, kind)
        if handler is None:
            logger.debug("no handler for %r, skipping %s", kind, path)
            return

        run_async = bool(ctx.executors.get(kind, {}).get("async", False))
        try:
            if run_async:
                await tx.run.spawn_handler(_invoke(handler, ctx, path), name=f"projconf:{kind}:{path.name}")
            else:
                await _invoke(handler, ctx, path)
        except asyncio.CancelledError:
            if tx.stopped:
                raise PipelineStopped(f"handler cancelled: {path}")
            raise
        except PipelineStopped:
            raise
        except (ProjconfError, OSError) as exc:
            ctx.report_error(exc, path)
            return
        except Exception as exc:
            err = HandlerError(f"{kind} handler failed for {path}: {exc}", path=path)
            err.__cause__ = exc
            ctx.report_error(err, path)
            return

        # A clear() while the handler was suspended must not record into the next run.
        await tx.checkpoint()
        ctx.mark_loaded(path)
        logger.debug("applied %s", path)
        await tx.send(path)

    def __repr__(self) -> str:
        kinds = sorted(self.router) if self.router is not None else "ctx.handlers"
        return f"ExecuteStage(router={kinds!r})"


def execute(router: Optional[Mapping[str, "Handler"]] = None) -> ExecuteStage:
    return ExecuteStage(router=router)
