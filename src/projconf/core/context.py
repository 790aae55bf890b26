"""Shared state for one active configuration."""
from __future__ import annotations

import logging
import weakref
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional, Sequence

from projconf.core.cache import DirectoryCache, FileCache
from projconf.core.document import ReactiveDocument

if TYPE_CHECKING:
    from projconf.core.pipeline import PipelineRun, Stage

logger = logging.getLogger(__name__)

LoadCallback = Callable[["Context"], None]
ErrorCallback = Callable[["Context", BaseException, Optional[Path]], None]
Handler = Callable[["Context", Path], Any]


class Context:
    """Mutable state shared by the stages of a configuration.

    Per-run state (``project_root``, ``project_name``, ``files_loaded``,
    ``last_project_json`` and the document) is reset by :meth:`reset`; the
    caches live as long as the context.
    """

    def __init__(
        self,
        config_dir: Path,
        *,
        pipeline: Optional[Sequence["Stage"]] = None,
        executors: Optional[Mapping[str, Mapping[str, Any]]] = None,
        handlers: Optional[Mapping[str, Handler]] = None,
        loading: Optional[Mapping[str, Any]] = None,
        cache: Optional[Mapping[str, Any]] = None,
        trust_mtime: bool = True,
        on_load: Optional[LoadCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        on_clear: Optional[LoadCallback] = None,
    ) -> None:
        self.config_dir = Path(config_dir)
        self.pipeline: List["Stage"] = list(pipeline or [])
        self.executors: Dict[str, Dict[str, Any]] = {k: dict(v) for k, v in (executors or {}).items()}
        self.handlers: Dict[str, Handler] = dict(handlers or {})
        self.loading: Dict[str, Any] = dict(loading or {})
        self.cache: Dict[str, Any] = dict(cache or {})
        self.on_load = on_load
        self.on_error = on_error
        self.on_clear = on_clear

        self.dir_cache = DirectoryCache(trust_mtime=trust_mtime)
        self.file_cache = FileCache(trust_mtime=trust_mtime)

        self.project_root: Optional[Path] = None
        self.project_name: Optional[str] = None
        self.files_loaded: List[Path] = []
        self.json: ReactiveDocument = self.new_document()

        self.pipeline_stopped = False
        self.active_run: Optional["PipelineRun"] = None

    @property
    def last_project_json(self) -> Optional[Path]:
        """Write target for document persistence."""
        return self.json.persist_to

    @last_project_json.setter
    def last_project_json(self, path: Optional[Path]) -> None:
        self.json.persist_to = Path(path) if path is not None else None

    @property
    def trust_mtime(self) -> bool:
        return self.file_cache.trust_mtime

    def new_document(self) -> ReactiveDocument:
        """Create an empty document that persists through this context's file cache."""
        # Lazy import: the JSON executor imports this module.
        from projconf.core.executors.json import persist_document

        ctx_ref = weakref.ref(self)

        def _persist(document: ReactiveDocument) -> None:
            ctx = ctx_ref()
            if ctx is not None and ctx.json is document:
                persist_document(ctx, document)

        return ReactiveDocument(observer=_persist)

    def mark_loaded(self, path: Path) -> None:
        if path not in self.files_loaded:
            self.files_loaded.append(path)

    def report_error(self, err: BaseException, path: Optional[Path]) -> None:
        """Route ``err`` to ``on_error``, or log a one-line diagnostic."""
        if self.on_error is None:
            default_on_error(self, err, path)
            return
        try:
            self.on_error(self, err, path)
        except Exception:
            logger.exception("on_error callback failed while reporting %r", err)

    def reset(self) -> None:
        """Drop per-run state and install a fresh, empty document."""
        self.project_root = None
        self.project_name = None
        self.files_loaded = []
        self.json = self.new_document()

    def __repr__(self) -> str:
        return (
            f"Context(config_dir={str(self.config_dir)!r}, project_root={self.project_root!r}, "
            f"project_name={self.project_name!r}, files_loaded={len(self.files_loaded)})"
        )


def default_on_error(ctx: Context, err: BaseException, path: Optional[Path]) -> None:
    where = f" ({path})" if path is not None else ""
    logger.error("projconf: %s: %s%s", type(err).__name__, err, where)


__all__ = ["Context", "Handler", "LoadCallback", "ErrorCallback", "default_on_error"]
