"""I/O utilities for projconf.

- Core: atomic byte writes, directory management
- JSON: document encoding/decoding with projconf's formatting defaults
"""
from __future__ import annotations

from .core import atomic_write_bytes, ensure_parent_dir
from .json import DEFAULT_JSON_CONFIG, decode_json_object, encode_json

__all__ = [
    "atomic_write_bytes",
    "ensure_parent_dir",
    "DEFAULT_JSON_CONFIG",
    "decode_json_object",
    "encode_json",
]
