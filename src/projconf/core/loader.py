"""Loader: the public entry points that tie options, context and pipeline together.

A module-level :class:`ProjectConfig` backs the functions exported from
``projconf`` (``setup``, ``load``, ``load_await``, ``clear``...). Hosts that
need several independent configurations create their own instances; they
share nothing.
"""
from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Any, List, Mapping, Optional

from projconf.core import pipeline
from projconf.core.cache import probe_mtime_trust
from projconf.core.config import Options, load_options
from projconf.core.context import Context
from projconf.core.executors import build_router
from projconf.core.pipeline import PipelineRun
from projconf.core.stages import detect, execute, find_files, walk
from projconf.core.utils.logging import configure_logging
from projconf.core.utils.paths import PathLike, canonical_path
from projconf.core.watchers import Watchers
from projconf.exceptions import PipelineInvariantError

logger = logging.getLogger(__name__)


def default_pipeline(options: Options) -> List[Any]:
    """Build ``[walk, detect, find_files, execute]`` from the option sections."""
    return [
        walk("up"),
        detect(list(options.detect.get("markers") or [])),
        find_files(options.find_files.get("extensions")),
        execute(),
    ]


class ProjectConfig:
    """One loader: a context, its watchers and the loading policy."""

    def __init__(self) -> None:
        self.ctx: Optional[Context] = None
        self.options: Optional[Options] = None
        self.watchers: Optional[Watchers] = None
        self._lazy_pending = False

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------
    def setup(
        self,
        options: Optional[Mapping[str, Any]] = None,
        *,
        environ: Optional[Mapping[str, str]] = None,
    ) -> Context:
        """Build the context, install watchers and schedule the first run.

        A second call on an initialised loader returns the existing context
        untouched.

        Raises:
            ConfigError: invalid options
        """
        if self.ctx is not None:
            logger.debug("setup called on an initialised loader; ignoring")
            return self.ctx

        opts = load_options(options, environ=environ)
        configure_logging(
            level=str(opts.logging.get("level") or "WARNING"),
            log_path=Path(opts.logging["path"]).expanduser() if opts.logging.get("path") else None,
        )

        trust_mtime = opts.trust_mtime
        if trust_mtime and not probe_mtime_trust(opts.config_dir):
            logger.warning("file modification times are unreliable; disabling mtime trust")
            trust_mtime = False

        ctx = Context(
            opts.config_dir,
            pipeline=opts.pipeline if opts.pipeline is not None else default_pipeline(opts),
            executors=opts.executors,
            handlers=build_router(opts.handlers),
            loading=opts.loading,
            cache=opts.cache,
            trust_mtime=trust_mtime,
            on_load=opts.on_load,
            on_error=opts.on_error,
            on_clear=opts.on_clear,
        )
        self.options = opts
        self.ctx = ctx
        logger.info("projconf initialised with config_dir=%s", ctx.config_dir)

        self.watchers = Watchers(self, ctx, debounce_ms=opts.debounce_ms)
        self.watchers.install(opts.watch)
        self._schedule_initial(opts.loading_on)
        return ctx

    def _schedule_initial(self, mode: str) -> None:
        if mode == "lazy":
            self._lazy_pending = True
            return
        if mode != "startup":
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("loading.on=%s needs a running event loop; falling back to manual loading", mode)
            return
        loop.call_soon(self._scheduled_load)

    def _scheduled_load(self) -> None:
        try:
            self.load()
        except PipelineInvariantError:
            # Already reported through on_error.
            logger.debug("scheduled load skipped: a run is active")

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------
    def _context(self, override_ctx: Optional[Context]) -> Optional[Context]:
        return override_ctx if override_ctx is not None else self.ctx

    def _start(self, ctx: Context, start_dir: Optional[PathLike]) -> PipelineRun:
        active = ctx.active_run
        if active is not None and (active.done or active.stopped):
            # Per-run state from the previous run must not carry over.
            self.clear(ctx)

        if start_dir is None:
            start_dir = ctx.loading.get("start_dir") or os.getcwd()
        return pipeline.run(ctx, ctx.pipeline, canonical_path(start_dir))

    def load(self, override_ctx: Optional[Context] = None, *, start_dir: Optional[PathLike] = None) -> None:
        """Start a run from ``start_dir``, ``loading.start_dir`` or the cwd.

        Does nothing before :meth:`setup`.

        Raises:
            PipelineInvariantError: a run is still active on the context
        """
        ctx = self._context(override_ctx)
        if ctx is None:
            logger.debug("load called before setup")
            return
        self._lazy_pending = False
        self._start(ctx, start_dir)

    def load_await(
        self, override_ctx: Optional[Context] = None, *, start_dir: Optional[PathLike] = None
    ) -> Optional[PipelineRun]:
        """Like :meth:`load`, returning the run handle.

        ``await handle`` gives the context once the run completes, or None if
        it was stopped or aborted.
        """
        ctx = self._context(override_ctx)
        if ctx is None:
            logger.debug("load_await called before setup")
            return None
        self._lazy_pending = False
        return self._start(ctx, start_dir)

    def clear(self, override_ctx: Optional[Context] = None) -> None:
        """Stop any run and reset per-run state; the caches are kept."""
        ctx = self._context(override_ctx)
        if ctx is None:
            return
        pipeline.stop(ctx)
        ctx.active_run = None
        ctx.reset()
        if ctx.on_clear is not None:
            try:
                ctx.on_clear(ctx)
            except Exception as exc:
                ctx.report_error(exc, None)

    def get_context(self) -> Optional[Context]:
        return self.ctx

    # ------------------------------------------------------------------
    # Host notifications
    # ------------------------------------------------------------------
    def notify_buffer_enter(self, path: PathLike) -> None:
        """The host entered a buffer for ``path``."""
        if self.ctx is None:
            return
        if self._lazy_pending:
            self.load()
            return
        if self.watchers is not None:
            self.watchers.buffer_entered(Path(path))

    def notify_cwd_changed(self, path: Optional[PathLike] = None) -> None:
        """The host changed its working directory."""
        if self.watchers is not None:
            self.watchers.cwd_changed(Path(path) if path is not None else None)

    def teardown(self) -> None:
        """Stop watchers and runs and forget the context."""
        if self.watchers is not None:
            self.watchers.teardown()
            self.watchers = None
        if self.ctx is not None:
            pipeline.stop(self.ctx)
        self.ctx = None
        self.options = None
        self._lazy_pending = False


_default = ProjectConfig()


def setup(options: Optional[Mapping[str, Any]] = None) -> Context:
    return _default.setup(options)


def load(override_ctx: Optional[Context] = None, *, start_dir: Optional[PathLike] = None) -> None:
    _default.load(override_ctx, start_dir=start_dir)


def load_await(
    override_ctx: Optional[Context] = None, *, start_dir: Optional[PathLike] = None
) -> Optional[PipelineRun]:
    return _default.load_await(override_ctx, start_dir=start_dir)


def clear(override_ctx: Optional[Context] = None) -> None:
    _default.clear(override_ctx)


def get_context() -> Optional[Context]:
    return _default.get_context()


def notify_buffer_enter(path: PathLike) -> None:
    _default.notify_buffer_enter(path)


def notify_cwd_changed(path: Optional[PathLike] = None) -> None:
    _default.notify_cwd_changed(path)


def teardown() -> None:
    _default.teardown()


__all__ = [
    "ProjectConfig",
    "default_pipeline",
    "setup",
    "load",
    "load_await",
    "clear",
    "get_context",
    "notify_buffer_enter",
    "notify_cwd_changed",
    "teardown",
]
