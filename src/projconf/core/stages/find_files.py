"""Find-files stage: enumerate configuration artifacts for the current project.

For a project name ``a/b`` the lookups run outer to inner:

    <config_dir>/a<ext>          root-level artifact
    <config_dir>/a/*<ext>        directory contents, in name order
    <config_dir>/a/b<ext>
    <config_dir>/a/b/*<ext>

The result is stably ordered by extension priority (JSON first, then the
configured order), so later, more specific JSON artifacts win the merge.
Siblings of an inner segment come from the outer directory listing: for
``repo/pkg`` a ``repo/zzz.json`` sorts after ``repo/pkg.json`` and wins.
Each path is emitted at most once per run.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence, Set

from projconf.core.pipeline import DONE, Channel
from projconf.core.utils.paths import canonical_path, split_project_name
from projconf.exceptions import ConfigError

from .base import Stage

if TYPE_CHECKING:
    from projconf.core.context import Context

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = (".json", ".py", ".lua", ".vim")
JSON_EXTENSION = ".json"


class FindFilesStage(Stage):
    name = "find_files"

    def __init__(self, extensions: Optional[Iterable[str]] = None) -> None:
        exts = list(extensions) if extensions is not None else list(DEFAULT_EXTENSIONS)
        for ext in exts:
            if not ext.startswith(".") or len(ext) < 2:
                raise ConfigError(f"extension must look like '.json', got {ext!r}")
        self.extensions: Sequence[str] = tuple(dict.fromkeys(exts))

    def priority(self, path: Path) -> int:
        suffix = path.suffix
        if suffix == JSON_EXTENSION:
            return 0
        try:
            return 1 + self.extensions.index(suffix)
        except ValueError:
            return 1 + len(self.extensions)

    async def __call__(self, ctx: "Context", rx: Channel, tx: Channel) -> None:
        seen: Set[Path] = set()
        async for _trigger in rx:
            project_name = ctx.project_name
            if not project_name:
                continue
            for path in await self.collect(ctx, project_name):
                if path in seen:
                    continue
                seen.add(path)
                await tx.send(path)
        await tx.send(DONE)

    async def _files_in(self, ctx: "Context", directory: Path) -> List[str]:
        try:
            entries = await ctx.dir_cache.get(directory)
        except OSError as exc:
            ctx.report_error(exc, directory)
            return []
        return [entry.name for entry in entries or () if entry.is_file]

    async def collect(self, ctx: "Context", project_name: str) -> List[Path]:
        """Return the ordered candidate artifacts for ``project_name``."""
        config_dir = canonical_path(ctx.config_dir)
        collected: List[Path] = []

        for segment in split_project_name(project_name):
            base = config_dir / segment
            siblings = set(await self._files_in(ctx, base.parent))
            for ext in self.extensions:
                if base.name + ext in siblings:
                    collected.append(base.parent / (base.name + ext))

            for name in await self._files_in(ctx, base):
                if Path(name).suffix in self.extensions:
                    collected.append(base / name)

        # sorted() is stable: segment and name order survive within a priority.
        ordered = sorted(collected, key=self.priority)
        logger.debug("found %d artifacts for %s", len(ordered), project_name)
        return ordered

    def __repr__(self) -> str:
        return f"FindFilesStage(extensions={list(self.extensions)!r})"


def find_files(extensions: Optional[Iterable[str]] = None) -> FindFilesStage:
    return FindFilesStage(extensions=extensions)
