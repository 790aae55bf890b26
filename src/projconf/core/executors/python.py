"""Python artifact handler.

Runs ``<project>.py`` artifacts with :func:`runpy.run_path`. The artifact
sees the active context as the global ``ctx`` and may adjust it, e.g.
``ctx.project_name = "monorepo/api"`` or ``ctx.json["editor"] = {...}``.
"""
from __future__ import annotations

import logging
import runpy
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from projconf.core.context import Context

logger = logging.getLogger(__name__)

RUN_NAME = "__projconf__"


def python_executor(ctx: "Context", path: Path) -> None:
    logger.debug("running %s", path)
    runpy.run_path(str(path), init_globals={"ctx": ctx}, run_name=RUN_NAME)


__all__ = ["python_executor", "RUN_NAME"]
