"""JSON artifact handler and document persistence."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from projconf.core.document import ReactiveDocument
from projconf.core.utils.io import decode_json_object, encode_json
from projconf.core.utils.paths import canonical_path, split_project_name
from projconf.exceptions import CacheWriteError, PersistenceError

if TYPE_CHECKING:
    from projconf.core.context import Context

logger = logging.getLogger(__name__)


def matches_project_name(ctx: "Context", path: Path) -> bool:
    """Return True when ``path`` belongs to the current project.

    Under ``config_dir`` the artifact's relative path without suffix must equal
    the project name (``p.json``, ``repo/pkg.json``), or its relative parent
    directory must (``p/local.json``). Outside ``config_dir`` the basename or
    the parent directory name is compared instead.
    """
    project_name = ctx.project_name
    if not project_name:
        return False
    segments = split_project_name(project_name)
    if not segments:
        return False
    name = segments[-1]

    path = canonical_path(path)
    try:
        rel = path.relative_to(canonical_path(ctx.config_dir))
    except ValueError:
        leaf = name.rsplit("/", 1)[-1]
        return path.stem == leaf or path.parent.name == leaf

    return rel.with_suffix("").as_posix() == name or rel.parent.as_posix() == name


async def json_executor(ctx: "Context", path: Path) -> None:
    """Merge the JSON object at ``path`` into ``ctx.json``.

    Raises:
        OSError: the artifact cannot be read
        ArtifactDecodeError: invalid JSON or a non-object root
    """
    # A clear() during the read installs a new document; merge into the one
    # this run started with.
    document = ctx.json
    entry = await ctx.file_cache.read(path)
    data = entry.parsed
    if data is None:
        data = decode_json_object(entry.content, path)
        entry.parsed = data
    else:
        logger.debug("reusing parsed JSON for %s", path)

    document.merge(data)

    if ctx.json is document and matches_project_name(ctx, Path(path)):
        ctx.last_project_json = canonical_path(path)


def persist_document(ctx: "Context", document: Optional[ReactiveDocument] = None) -> bool:
    """Write ``document`` (default ``ctx.json``) to ``ctx.last_project_json``.

    Both the serialised bytes and the plain value go into the file cache so
    the entry stays coherent. Failures are reported through ``on_error``.
    """
    document = document if document is not None else ctx.json
    target = document.persist_to
    if target is None:
        ctx.report_error(
            PersistenceError(
                "document changed but no project JSON file is known; keeping the change in memory",
                context={"project_name": ctx.project_name},
            ),
            None,
        )
        return False

    data = document.to_dict()
    try:
        ctx.file_cache.write_sync(target, encode_json(data), parsed=data)
    except (OSError, CacheWriteError) as exc:
        ctx.report_error(exc, target)
        return False
    logger.debug("persisted document to %s", target)
    return True


__all__ = ["json_executor", "persist_document", "matches_project_name"]
