"""Built-in pipeline stages."""
from __future__ import annotations

from .base import Stage
from .detect import DetectStage, default_on_match, detect
from .execute import ExecuteStage, execute
from .find_files import FindFilesStage, find_files
from .walk import WalkStage, walk

__all__ = [
    "Stage",
    "WalkStage",
    "DetectStage",
    "FindFilesStage",
    "ExecuteStage",
    "walk",
    "detect",
    "find_files",
    "execute",
    "default_on_match",
]
