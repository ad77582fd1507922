"""File-based persistence helpers for caches and seed data."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from ..config import settings


class FileStorage:
    """Thin wrapper around the data root for reading and writing JSON documents."""

    def __init__(self, root: Path | None = None) -> None:
        self.root = (root or settings.data_root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def resolve(self, path: Path | str) -> Path:
        candidate = Path(path)
        return candidate if candidate.is_absolute() else self.root / candidate

    def read_json(self, path: Path | str, default: Any = None) -> Any:
        target = self.resolve(path)
        if not target.exists():
            return default
        with target.open("r", encoding="utf-8") as handle:
            return json.load(handle)

    def write_json(self, path: Path | str, data: Any, *, indent: int = 2) -> None:
        target = self.resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = target.with_suffix(target.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(data, handle, ensure_ascii=False, indent=indent)
        tmp_path.replace(target)
