"""Pipeline runtime.

A pipeline is an ordered list of stages. Each stage is an async callable
``stage(ctx, rx, tx)`` running on its own task, reading from ``rx`` and
writing to ``tx``. ``run`` wires N stages with N+1 channels: a source
channel fed with the initial payload and ``DONE``, one output channel per
stage, and a sink that drains the terminal stage.
"""
from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Coroutine, List, Optional, Sequence, Set

from projconf.exceptions import PipelineInvariantError, PipelineStopped

from .channel import DEFAULT_CAPACITY, DONE, Channel

if TYPE_CHECKING:
    from projconf.core.context import Context

logger = logging.getLogger(__name__)

Stage = Callable[["Context", Channel, Channel], Awaitable[None]]


class PipelineRun:
    """Handle for one pipeline run.

    Awaiting the handle (or :meth:`wait`) returns the context once the run
    completes, or None when it was stopped or aborted.
    """

    def __init__(
        self,
        ctx: "Context",
        stages: Sequence[Stage],
        initial: Any,
        *,
        capacity: int = DEFAULT_CAPACITY,
    ) -> None:
        if not stages:
            raise PipelineInvariantError("pipeline needs at least one stage")
        self.ctx = ctx
        self.stages = list(stages)
        self.initial = initial
        self.stopped = False
        self.completed = False
        self.error: Optional[BaseException] = None
        self.channels: List[Channel] = [
            Channel(self, capacity=capacity, name=self._channel_name(i)) for i in range(len(self.stages) + 1)
        ]
        self.outputs = 0
        self._tasks: List[asyncio.Task[None]] = []
        self._handler_tasks: Set[asyncio.Task[Any]] = set()
        self._supervisor: Optional[asyncio.Task[None]] = None
        self._result: Optional[asyncio.Future[Optional["Context"]]] = None

    def _channel_name(self, index: int) -> str:
        if index == 0:
            return "source"
        return f"{_stage_name(self.stages[index - 1])}.out"

    @property
    def done(self) -> bool:
        return self._result is not None and self._result.done()

    def start(self) -> "PipelineRun":
        loop = asyncio.get_running_loop()
        self._result = loop.create_future()
        self._tasks.append(loop.create_task(self._feed(), name="projconf:source"))
        for index, stage in enumerate(self.stages):
            self._tasks.append(
                loop.create_task(self._run_stage(index, stage), name=f"projconf:{_stage_name(stage)}")
            )
        self._tasks.append(loop.create_task(self._sink(), name="projconf:sink"))
        self._supervisor = loop.create_task(self._supervise(), name="projconf:supervisor")
        return self

    async def _feed(self) -> None:
        source = self.channels[0]
        try:
            await source.send(self.initial)
            await source.send(DONE)
        except PipelineStopped:
            pass

    async def _run_stage(self, index: int, stage: Stage) -> None:
        rx = self.channels[index]
        tx = self.channels[index + 1]
        try:
            await stage(self.ctx, rx, tx)
            # A stage that returns without forwarding DONE still ends the stream.
            if not tx.done_sent:
                await tx.send(DONE)
        except PipelineStopped:
            logger.debug("stage %s stopped", _stage_name(stage))
        except Exception as exc:
            self._abort(exc, stage)

    async def _sink(self) -> None:
        try:
            async for _ in self.channels[-1]:
                self.outputs += 1
        except PipelineStopped:
            pass

    async def _supervise(self) -> None:
        await asyncio.gather(*self._tasks, return_exceptions=True)
        if self._result is None:
            raise PipelineInvariantError("pipeline run was never started")
        if self.stopped or self.error is not None:
            self._result.set_result(None)
            return
        self.completed = True
        logger.debug("pipeline run complete (%d outputs)", self.outputs)
        if self.ctx.on_load is not None:
            try:
                self.ctx.on_load(self.ctx)
            except Exception as exc:
                self.ctx.report_error(exc, None)
        self._result.set_result(self.ctx)

    def _abort(self, exc: BaseException, stage: Stage) -> None:
        if self.error is not None or self.stopped:
            logger.debug("ignoring error after abort in %s: %s", _stage_name(stage), exc)
            return
        self.error = exc
        logger.debug("stage %s failed: %s", _stage_name(stage), exc)
        self.ctx.report_error(exc, None)
        stop(self.ctx)

    def stop(self) -> None:
        """Set the stop flag, wake every channel and cancel handler tasks."""
        if self.stopped or self.done:
            return
        self.stopped = True
        for channel in self.channels:
            channel.wake()
        for task in list(self._handler_tasks):
            task.cancel()

    def spawn_handler(self, coro: Coroutine[Any, Any, Any], *, name: str = "projconf:handler") -> "asyncio.Task[Any]":
        """Run a handler coroutine on its own task, cancelled by :meth:`stop`."""
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._handler_tasks.add(task)
        task.add_done_callback(self._handler_tasks.discard)
        if self.stopped:
            task.cancel()
        return task

    async def wait(self) -> Optional["Context"]:
        if self._result is None:
            raise PipelineInvariantError("pipeline run was never started")
        return await asyncio.shield(self._result)

    def __await__(self):
        return self.wait().__await__()

    def __repr__(self) -> str:
        state = "stopped" if self.stopped else "completed" if self.completed else "running"
        return f"PipelineRun({len(self.stages)} stages, {state})"


def _stage_name(stage: Any) -> str:
    name = getattr(stage, "name", None)
    if isinstance(name, str) and name:
        return name
    return getattr(stage, "__name__", type(stage).__name__)


def run(ctx: "Context", stages: Sequence[Stage], initial: Any, *, capacity: int = DEFAULT_CAPACITY) -> PipelineRun:
    """Start a run of ``stages`` on ``ctx`` fed with ``initial``.

    Must be called from a running event loop.

    Raises:
        PipelineInvariantError: another run is still active on ``ctx``
    """
    active = ctx.active_run
    if active is not None and not active.done and not active.stopped:
        err = PipelineInvariantError(
            "a pipeline run is already active on this context",
            context={"run": repr(active)},
        )
        ctx.report_error(err, None)
        raise err

    pipeline_run = PipelineRun(ctx, stages, initial, capacity=capacity)
    ctx.pipeline_stopped = False
    ctx.active_run = pipeline_run
    logger.debug("starting pipeline with %d stages from %s", len(pipeline_run.stages), initial)
    return pipeline_run.start()


def stop(ctx: "Context") -> None:
    """Cancel the active run on ``ctx``. Idempotent; safe from any task."""
    ctx.pipeline_stopped = True
    active = ctx.active_run
    if active is not None:
        active.stop()


__all__ = ["PipelineRun", "Stage", "run", "stop"]
