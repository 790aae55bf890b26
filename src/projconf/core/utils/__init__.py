"""Shared utilities for projconf core modules."""
from __future__ import annotations

from .merge import deep_merge, deep_merge_into
from .paths import ancestors, canonical_path, split_project_name, user_config_home

__all__ = [
    "deep_merge",
    "deep_merge_into",
    "ancestors",
    "canonical_path",
    "split_project_name",
    "user_config_home",
]
