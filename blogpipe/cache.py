from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Optional

from .utils import glob_to_regex


def list_files(root: Path, patterns: Optional[list[str]] = None) -> list[Path]:
    if not root.exists():
        return []
    files = [path for path in root.rglob("*") if path.is_file()]
    if patterns:
        compiled = [glob_to_regex(pattern) for pattern in patterns]
        files = [
            path
            for path in files
            if any(regex.match(path.relative_to(root).as_posix()) for regex in compiled)
        ]
    return sorted(files, key=lambda p: p.relative_to(root).as_posix())


def hash_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def hash_file(path: Path) -> str:
    return hash_bytes(path.read_bytes())


def write_if_changed(path: Path, data: bytes) -> bool:
    """Write ``data`` unless ``path`` already holds the same bytes."""
    if path.exists() and hash_file(path) == hash_bytes(data):
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return True
