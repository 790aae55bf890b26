"""Streaming, cancellable pipeline runtime."""
from __future__ import annotations

from .channel import DEFAULT_CAPACITY, DONE, Channel
from .runtime import PipelineRun, Stage, run, stop

__all__ = [
    "DONE",
    "DEFAULT_CAPACITY",
    "Channel",
    "PipelineRun",
    "Stage",
    "run",
    "stop",
]
