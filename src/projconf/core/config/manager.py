"""
projconf option loading.

Sources (lowest to highest priority):
1. Bundled defaults: projconf.data/config/defaults.yaml
2. Options passed to ``setup()``
3. Environment variables: ``PROJCONF_<section>__<key>`` (e.g.
   ``PROJCONF_loading__watch__debounce_ms=250``)

The declarative part of the merged options is validated against
projconf.data/schemas/options.schema.json. Callable options (a
``config_dir`` producer, ``pipeline``, ``handlers`` and the ``on_*``
callbacks) are kept aside and never validated.
"""
from __future__ import annotations

import copy
import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple

from jsonschema import Draft202012Validator

from projconf.core.utils.merge import deep_merge
from projconf.core.utils.paths import user_config_home
from projconf.data import read_json, read_yaml
from projconf.exceptions import ConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "PROJCONF_"
CALLABLE_KEYS = ("pipeline", "handlers", "on_load", "on_error", "on_clear")
LOADING_MODES = ("startup", "lazy", "manual")


@dataclass
class Options:
    """Resolved setup options."""

    config_dir: Path
    executors: Dict[str, Dict[str, Any]]
    loading: Dict[str, Any]
    cache: Dict[str, Any]
    detect: Dict[str, Any]
    find_files: Dict[str, Any]
    logging: Dict[str, Any]
    pipeline: Optional[List[Any]] = None
    handlers: Dict[str, Callable[..., Any]] = field(default_factory=dict)
    on_load: Optional[Callable[..., Any]] = None
    on_error: Optional[Callable[..., Any]] = None
    on_clear: Optional[Callable[..., Any]] = None

    @property
    def loading_on(self) -> str:
        return self.loading.get("on", "startup")

    @property
    def watch(self) -> Dict[str, Any]:
        return self.loading.get("watch", {}) or {}

    @property
    def debounce_ms(self) -> int:
        return int(self.watch.get("debounce_ms", 100))

    @property
    def trust_mtime(self) -> bool:
        return bool(self.cache.get("trust_mtime", True))


def _as_bool(v: str) -> Optional[bool]:
    low = v.strip().lower()
    if low in {"true", "false"}:
        return low == "true"
    return None


def _as_int(v: str) -> Optional[int]:
    if re.fullmatch(r"[-+]?\d+", v.strip() or " "):
        return int(v)
    return None


def _as_float(v: str) -> Optional[float]:
    s = v.strip()
    if re.fullmatch(r"[-+]?\d*\.\d+", s) or re.fullmatch(r"[-+]?\d+\.\d*", s):
        return float(s)
    return None


def _as_json(v: str) -> Optional[Any]:
    s = v.strip()
    if (s.startswith("{") and s.endswith("}")) or (s.startswith("[") and s.endswith("]")):
        try:
            return json.loads(s)
        except json.JSONDecodeError:
            return None
    return None


def coerce_env_value(value: str) -> Any:
    """Convert an environment string to bool, int, float, JSON or stripped text."""
    if value.strip().lower() in {"null", "none"}:
        return None
    for caster in (_as_bool, _as_int, _as_float, _as_json):
        result = caster(value)
        if result is not None:
            return result
    return value.strip()


def iter_env_overrides(environ: Optional[Mapping[str, str]] = None) -> Iterator[Tuple[List[str], Any]]:
    """Yield ``(key_path, value)`` for every ``PROJCONF_*`` variable.

    Segments are separated by a double underscore and lowercased.

    Raises:
        ConfigError: a key with an empty segment
    """
    env = os.environ if environ is None else environ
    for key in sorted(env):
        if not key.startswith(ENV_PREFIX):
            continue
        raw = key[len(ENV_PREFIX):]
        segments = raw.split("__")
        if not raw or any(seg == "" for seg in segments):
            raise ConfigError(f"Malformed {ENV_PREFIX}* key: {key!r}", context={"key": key})
        yield [seg.lower() for seg in segments], coerce_env_value(env[key])


def set_nested(root: Dict[str, Any], path: List[str], value: Any) -> None:
    """Assign ``value`` at ``path``, creating intermediate dicts."""
    cur = root
    for part in path[:-1]:
        nxt = cur.get(part)
        if not isinstance(nxt, dict):
            nxt = {}
            cur[part] = nxt
        cur = nxt
    cur[path[-1]] = value


def validate_options(payload: Mapping[str, Any]) -> None:
    """Validate declarative options against the bundled schema.

    Raises:
        ConfigError: listing every violation as ``dotted.path: message``
    """
    validator = Draft202012Validator(read_json("schemas", "options.schema.json"))
    errors: List[str] = []
    for error in sorted(validator.iter_errors(payload), key=lambda e: str(e.path)):
        if error.path:
            errors.append(f"{'.'.join(str(p) for p in error.path)}: {error.message}")
        else:
            errors.append(error.message)
    if errors:
        raise ConfigError("invalid projconf options: " + "; ".join(errors), context={"errors": errors})


def resolve_config_dir(value: Any) -> Path:
    """Resolve a path, or the result of a path producer, to an absolute path.

    Relative paths are taken relative to the user config home.
    """
    if callable(value):
        value = value()
    if value is None:
        raise ConfigError("config_dir resolved to None")
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = user_config_home() / path
    return path


def load_options(
    options: Optional[Mapping[str, Any]] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> Options:
    """Merge defaults, ``options`` and environment overrides into :class:`Options`.

    Raises:
        ConfigError: invalid option values or a malformed environment key
    """
    user = dict(options or {})
    callables: Dict[str, Any] = {key: user.pop(key) for key in CALLABLE_KEYS if key in user}
    config_dir_producer = user.pop("config_dir") if callable(user.get("config_dir")) else None

    cfg = deep_merge(copy.deepcopy(read_yaml("config", "defaults.yaml")), user)
    for path, value in iter_env_overrides(environ):
        logger.debug("environment override %s=%r", ".".join(path), value)
        set_nested(cfg, path, value)

    validate_options(cfg)

    config_dir = resolve_config_dir(config_dir_producer or cfg.get("config_dir"))

    pipeline = callables.get("pipeline")
    if pipeline is not None and not isinstance(pipeline, (list, tuple)):
        raise ConfigError("pipeline must be a list of stages")
    handlers = callables.get("handlers") or {}
    if not isinstance(handlers, Mapping) or not all(callable(h) for h in handlers.values()):
        raise ConfigError("handlers must map extensions to callables")
    for key in ("on_load", "on_error", "on_clear"):
        if callables.get(key) is not None and not callable(callables[key]):
            raise ConfigError(f"{key} must be callable")

    return Options(
        config_dir=config_dir,
        executors=cfg.get("executors") or {},
        loading=cfg.get("loading") or {},
        cache=cfg.get("cache") or {},
        detect=cfg.get("detect") or {},
        find_files=cfg.get("find_files") or {},
        logging=cfg.get("logging") or {},
        pipeline=list(pipeline) if pipeline is not None else None,
        handlers={str(k).lstrip("."): v for k, v in handlers.items()},
        on_load=callables.get("on_load"),
        on_error=callables.get("on_error"),
        on_clear=callables.get("on_clear"),
    )


__all__ = [
    "Options",
    "ENV_PREFIX",
    "LOADING_MODES",
    "load_options",
    "validate_options",
    "resolve_config_dir",
    "coerce_env_value",
    "iter_env_overrides",
    "set_nested",
]
