"""JSON encoding helpers for configuration artifacts."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

from projconf.exceptions import ArtifactDecodeError

# Formatting used when persisting the merged document.
DEFAULT_JSON_CONFIG: Dict[str, Any] = {
    "indent": 2,
    "sort_keys": True,
    "ensure_ascii": False,
    "encoding": "utf-8",
}


def encode_json(data: Any) -> bytes:
    """Serialise ``data`` with the default formatting and a trailing newline."""
    cfg = DEFAULT_JSON_CONFIG
    text = json.dumps(
        data,
        indent=cfg["indent"],
        sort_keys=cfg["sort_keys"],
        ensure_ascii=cfg["ensure_ascii"],
    )
    return (text + "\n").encode(cfg["encoding"])


def decode_json_object(content: bytes, path: Optional[Path] = None) -> Dict[str, Any]:
    """Decode ``content`` as a JSON object.

    Raises:
        ArtifactDecodeError: invalid UTF-8/JSON, or a top-level value that is
            not an object
    """
    try:
        data = json.loads(content.decode(DEFAULT_JSON_CONFIG["encoding"]))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ArtifactDecodeError(f"Failed to parse JSON: {path}: {exc}", path=path) from exc
    if not isinstance(data, dict):
        raise ArtifactDecodeError(
            f"JSON artifact must contain an object, got {type(data).__name__}: {path}",
            path=path,
        )
    return data


__all__ = ["DEFAULT_JSON_CONFIG", "encode_json", "decode_json_object"]
