from __future__ import annotations

import re
import shutil
import sys
from pathlib import Path, PurePosixPath


def parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y", "on"}
    return False


def parse_int(value: object, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def rel_posix(path: Path, root: Path) -> str:
    try:
        return path.resolve().relative_to(root.resolve()).as_posix()
    except ValueError:
        return PurePosixPath(path.as_posix()).as_posix()


def glob_to_regex(pattern: str) -> re.Pattern:
    """Translate a watch glob into a regex over root-relative POSIX paths.

    ``*`` and ``?`` stay inside one path segment, ``**/`` spans any number of
    directories and ``{a,b}`` is an alternation.
    """
    out = []
    i = 0
    depth = 0
    while i < len(pattern):
        ch = pattern[i]
        if pattern.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
            continue
        if pattern.startswith("**", i):
            out.append(".*")
            i += 2
            continue
        if ch == "*":
            out.append("[^/]*")
        elif ch == "?":
            out.append("[^/]")
        elif ch == "{":
            depth += 1
            out.append("(?:")
        elif ch == "}" and depth:
            depth -= 1
            out.append(")")
        elif ch == "," and depth:
            out.append("|")
        else:
            out.append(re.escape(ch))
        i += 1
    return re.compile("".join(out) + r"\Z")


def replace_dir(staging: Path, target: Path, project_root: Path) -> None:
    target_resolved = target.resolve()
    root_resolved = project_root.resolve()
    if target_resolved == root_resolved:
        print("Refusing to replace project root.", file=sys.stderr)
        sys.exit(1)
    if not target_resolved.is_relative_to(root_resolved):
        print("Refusing to replace directory outside project root.", file=sys.stderr)
        sys.exit(1)
    if target.exists():
        shutil.rmtree(target)
    staging.rename(target)
