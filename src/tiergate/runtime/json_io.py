from __future__ import annotations

import json
from pathlib import Path
from typing import Mapping


def canonicalize_json(value: object) -> object:
    if isinstance(value, Mapping):
        return {
            str(key): canonicalize_json(value[key])
            for key in sorted(value, key=str)
        }
    if isinstance(value, list):
        return [canonicalize_json(item) for item in value]
    return value


def load_json_path(path: Path, *, encoding: str = "utf-8") -> object | None:
    """Return the decoded document, or None when the file is absent or unreadable."""
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text(encoding=encoding))
    except (OSError, UnicodeError, json.JSONDecodeError):
        return None


def dump_json_pretty(payload: object) -> str:
    return json.dumps(canonicalize_json(payload), indent=2, sort_keys=False)


def write_json(path: Path, payload: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dump_json_pretty(payload) + "\n", encoding="utf-8")
