"""Bounded single-producer/single-consumer channels.

There is no explicit close: the :data:`DONE` sentinel marks end of stream.
Every send and receive observes the owning run's stop flag and raises
:class:`~projconf.exceptions.PipelineStopped` once it is set.
"""
from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from projconf.exceptions import PipelineStopped

if TYPE_CHECKING:
    from .runtime import PipelineRun

DEFAULT_CAPACITY = 64


class _Done:
    _instance = None

    def __new__(cls) -> "_Done":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "DONE"


DONE: Any = _Done()


class Channel:
    """One edge of the pipeline."""

    def __init__(self, run: "PipelineRun", *, capacity: int = DEFAULT_CAPACITY, name: str = "") -> None:
        self._run = run
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=capacity)
        self.name = name
        self.done_sent = False

    @property
    def run(self) -> "PipelineRun":
        return self._run

    @property
    def stopped(self) -> bool:
        return self._run.stopped

    def _check(self) -> None:
        if self._run.stopped:
            raise PipelineStopped(f"pipeline stopped ({self.name})")

    async def send(self, item: Any) -> None:
        """Queue ``item``, waiting while the channel is full."""
        self._check()
        if item is DONE:
            if self.done_sent:
                return
            self.done_sent = True
        await self._queue.put(item)
        self._check()

    async def recv(self) -> Any:
        """Return the next item, which may be :data:`DONE`."""
        self._check()
        item = await self._queue.get()
        self._check()
        return item

    async def checkpoint(self) -> None:
        """Explicit yield point."""
        await asyncio.sleep(0)
        self._check()

    def __aiter__(self) -> "Channel":
        return self

    async def __anext__(self) -> Any:
        item = await self.recv()
        if item is DONE:
            raise StopAsyncIteration
        return item

    def wake(self) -> None:
        """Drop queued items and wake a pending receiver with :data:`DONE`."""
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
        self._queue.put_nowait(DONE)

    def qsize(self) -> int:
        return self._queue.qsize()

    def __repr__(self) -> str:
        return f"Channel({self.name!r}, size={self._queue.qsize()})"


__all__ = ["DONE", "DEFAULT_CAPACITY", "Channel"]
