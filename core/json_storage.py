"""Small JSON file helpers shared by the records backend and the trainer.

Reads tolerate an absent or blank file; writes go through a temp file and
``os.replace`` so readers never observe a half-written document.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, TypeVar

T = TypeVar("T")


def read_json(path: Path, default: T) -> T:
    """Return JSON content from ``path`` or ``default`` when the file is absent or blank."""

    if not path.exists():
        return default
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return default
    if not raw.strip():
        return default
    return json.loads(raw)


def atomic_write_json(path: Path, payload: Any) -> None:
    """Persist ``payload`` to ``path`` atomically, keeping accented text readable."""

    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    os.replace(tmp_path, path)


__all__ = ["read_json", "atomic_write_json"]
