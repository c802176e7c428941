from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import yaml


def detect_format(path_hint: Optional[str] = None, data_hint: Optional[str] = None) -> Optional[str]:
    """
    Returns 'json' or 'yaml' for a serialized parse tree.
    Uses the file extension first; falls back to simple data sniffing.
    """
    if path_hint:
        ext = Path(path_hint).suffix.lower()
        if ext == '.json':
            return 'json'
        if ext in ('.yaml', '.yml'):
            return 'yaml'
    if data_hint is not None:
        s = data_hint.lstrip()
        if s.startswith('{') or s.startswith('['):
            return 'json'
        # YAML is a superset of JSON, so it is the safe default
        return 'yaml'
    return None


def deserialize(data: bytes | bytearray | str, *, fmt: Optional[str] = None) -> Any:
    """
    Convert serialized parse-tree text into plain dicts/lists.
    Supported fmt: 'json', 'yaml'. If fmt is None, the data is sniffed.
    """
    if isinstance(data, (bytes, bytearray)):
        text = data.decode('utf-8', errors='replace')
    else:
        text = data
    f = (fmt or detect_format(data_hint=text) or '').lower()
    if f == 'json':
        return json.loads(text)
    if f == 'yaml':
        return yaml.safe_load(text)
    raise ValueError(f"Unsupported tree format: {fmt!r}")


def serialize(tree: Any, *, fmt: str, pretty: bool = True) -> str:
    """Convert a raw parse tree into JSON or YAML text."""
    f = (fmt or '').lower()
    if f == 'json':
        return json.dumps(tree, ensure_ascii=False, indent=2 if pretty else None)
    if f == 'yaml':
        return yaml.safe_dump(tree, sort_keys=False)
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


def load_tree(path: str | Path) -> Any:
    """Reads a parse tree file, choosing the format from its extension."""
    p = Path(path)
    text = p.read_text(encoding='utf-8')
    return deserialize(text, fmt=detect_format(str(p), text))


__all__ = [
    "deserialize",
    "serialize",
    "detect_format",
    "load_tree",
]
