"""Debounced reloads on config-dir, buffer and working-directory changes.

Config-dir events come from a watchdog observer thread and are marshalled
onto the event loop with ``call_soon_threadsafe``. Buffer and cwd events are
forwarded by the host through the loader's ``notify_*`` methods. Every
source feeds one debouncer; when it fires the loader runs ``clear`` then
``load``.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from projconf.core.utils.paths import canonical_path

if TYPE_CHECKING:
    from projconf.core.context import Context
    from projconf.core.loader import ProjectConfig

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 100


class Debouncer:
    """Collapse bursts of triggers into one call after ``delay_ms`` of quiet.

    The last trigger's arguments win. Must be triggered from the event loop
    thread.
    """

    def __init__(self, delay_ms: int, callback: Callable[..., Any]) -> None:
        self.delay = max(0, int(delay_ms)) / 1000.0
        self.callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self, *args: Any) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire, args)

    def _fire(self, args: tuple) -> None:
        self._handle = None
        self.callback(*args)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class ConfigDirEventHandler(FileSystemEventHandler):
    """Forward watchdog events under the config dir to the event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop, notify: Callable[[], None]) -> None:
        self.loop = loop
        self.notify = notify

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in ("opened", "closed_no_write"):
            return
        logger.debug("config dir event: %s %s", event.event_type, event.src_path)
        try:
            self.loop.call_soon_threadsafe(self.notify)
        except RuntimeError:
            # Loop already closed; nothing left to reload.
            logger.debug("dropping config dir event after loop shutdown")


class Watchers:
    """Watchers of one context, owned by a :class:`ProjectConfig`."""

    def __init__(self, loader: "ProjectConfig", ctx: "Context", *, debounce_ms: int = DEFAULT_DEBOUNCE_MS) -> None:
        self.loader = loader
        self.ctx = ctx
        self.debouncer = Debouncer(debounce_ms, self._reload)
        self.observer: Optional[Any] = None
        self.buffer = False
        self.cwd = False

    def install(self, watch: Mapping[str, Any]) -> None:
        """Enable the watchers selected by the ``loading.watch`` section."""
        self.buffer = bool(watch.get("buffer"))
        self.cwd = bool(watch.get("cwd"))
        if watch.get("config_dir"):
            self._watch_config_dir()

    def _watch_config_dir(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("config_dir watching needs a running event loop; not watching %s", self.ctx.config_dir)
            return

        directory = self.ctx.config_dir
        observer = Observer()
        try:
            observer.schedule(ConfigDirEventHandler(loop, self.config_dir_changed), str(directory), recursive=True)
            observer.start()
        except OSError as exc:
            logger.warning("cannot watch config dir %s: %s", directory, exc)
            return
        self.observer = observer
        logger.debug("watching config dir %s", directory)

    def config_dir_changed(self) -> None:
        self.debouncer.trigger(None)

    def buffer_entered(self, path: Path) -> None:
        if not self.buffer or not str(path):
            return
        buf_dir = canonical_path(path).parent
        if self.ctx.project_root is None or buf_dir != canonical_path(self.ctx.project_root):
            self.debouncer.trigger(buf_dir)

    def cwd_changed(self, path: Optional[Path] = None) -> None:
        if not self.cwd:
            return
        self.debouncer.trigger(canonical_path(path) if path is not None else None)

    def _reload(self, start_dir: Optional[Path]) -> None:
        logger.info("reloading project configuration%s", f" from {start_dir}" if start_dir else "")
        self.loader.clear(self.ctx)
        self.loader.load(self.ctx, start_dir=start_dir)

    def teardown(self) -> None:
        self.debouncer.cancel()
        self.buffer = False
        self.cwd = False
        if self.observer is not None:
            self.observer.stop()
            self.observer.join()
            self.observer = None


__all__ = ["Debouncer", "ConfigDirEventHandler", "Watchers", "DEFAULT_DEBOUNCE_MS"]
