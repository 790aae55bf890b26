from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Mapping, Optional


class ProjconfError(Exception):
    """Base exception for projconf."""

    context: Dict[str, Any]

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        if context is not None:
            # Store a shallow copy to avoid accidental mutation.
            self.context = dict(context)
        else:
            self.context = {}

    def to_json_error(self) -> Dict[str, Any]:
        """Return a JSON-serializable error payload."""
        return {
            "message": str(self),
            "code": self.__class__.__name__,
            "context": self.context,
        }


class ConfigError(ProjconfError, ValueError):
    """Raised when setup options are invalid."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        ProjconfError.__init__(self, message, context=context)
        ValueError.__init__(self, message)


class ArtifactError(ProjconfError):
    """Base class for failures tied to a single configuration artifact."""

    def __init__(
        self,
        message: str = "",
        *,
        path: Optional[Path] = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        ctx = dict(context or {})
        if path is not None:
            ctx["path"] = str(path)
        super().__init__(message, context=ctx)
        self.path = path


class ArtifactDecodeError(ArtifactError, ValueError):
    """Raised when a JSON artifact cannot be decoded or is not an object."""


class HandlerError(ArtifactError, RuntimeError):
    """Raised when an extension handler fails while applying an artifact."""


class PersistenceError(ProjconfError):
    """Raised when a document write cannot be persisted to disk."""


class PipelineStopped(ProjconfError):
    """Raised inside stages when the active run has been stopped.

    The runtime swallows it; it is never reported through ``on_error``.
    """


class PipelineInvariantError(ProjconfError, RuntimeError):
    """Raised when an operation would break a runtime invariant."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        ProjconfError.__init__(self, message, context=context)
        RuntimeError.__init__(self, message)


class CacheWriteError(PipelineInvariantError):
    """Raised when a cache write cannot observe the post-write mtime."""


__all__ = [
    "ProjconfError",
    "ConfigError",
    "ArtifactError",
    "ArtifactDecodeError",
    "HandlerError",
    "PersistenceError",
    "PipelineStopped",
    "PipelineInvariantError",
    "CacheWriteError",
]
