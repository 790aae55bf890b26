from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from projconf.core.utils.io import ensure_parent_dir

LOGGER_NAME = "projconf"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_CONFIGURED: Optional[tuple[str, str]] = None
_PROJCONF_HANDLER: logging.Handler | None = None


def _level_from_name(name: str) -> int:
    level = logging.getLevelName(str(name).upper())
    return level if isinstance(level, int) else logging.WARNING


def configure_logging(*, level: str = "WARNING", log_path: Optional[Path] = None) -> None:
    """Attach a single handler to the ``projconf`` logger.

    Logs go to ``log_path`` when given, otherwise to stderr. Idempotent
    per-process: reconfiguring with the same level and target is a no-op.
    """
    global _CONFIGURED, _PROJCONF_HANDLER

    target = str(Path(log_path).resolve()) if log_path else "<stderr>"
    if _CONFIGURED == (target, level) and _PROJCONF_HANDLER is not None:
        return

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(_level_from_name(level))

    # Replace the projconf-installed handler when switching targets.
    if _PROJCONF_HANDLER is not None:
        logger.removeHandler(_PROJCONF_HANDLER)
        _PROJCONF_HANDLER.close()
        _PROJCONF_HANDLER = None

    if log_path:
        ensure_parent_dir(Path(target))
        handler: logging.Handler = logging.FileHandler(target, encoding="utf-8")
    else:
        handler = logging.StreamHandler()
    handler.setLevel(_level_from_name(level))
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)

    _PROJCONF_HANDLER = handler
    _CONFIGURED = (target, level)


def reset_logging_for_tests() -> None:
    """Test-only: remove the projconf handler."""
    global _CONFIGURED, _PROJCONF_HANDLER
    logger = logging.getLogger(LOGGER_NAME)
    if _PROJCONF_HANDLER is not None:
        logger.removeHandler(_PROJCONF_HANDLER)
        _PROJCONF_HANDLER.close()
    logger.setLevel(logging.NOTSET)
    _CONFIGURED = None
    _PROJCONF_HANDLER = None


__all__ = ["LOGGER_NAME", "configure_logging", "reset_logging_for_tests"]
