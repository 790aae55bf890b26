"""Option loading and validation."""
from .manager import (
    ENV_PREFIX,
    LOADING_MODES,
    Options,
    coerce_env_value,
    iter_env_overrides,
    load_options,
    resolve_config_dir,
    set_nested,
    validate_options,
)

__all__ = [
    "ENV_PREFIX",
    "LOADING_MODES",
    "Options",
    "coerce_env_value",
    "iter_env_overrides",
    "load_options",
    "resolve_config_dir",
    "set_nested",
    "validate_options",
]
