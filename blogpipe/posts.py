from __future__ import annotations

import datetime as dt
import re
from pathlib import Path
from typing import Optional

from .cache import write_if_changed
from .content import slugify

DATE_LINE_RE = re.compile(r"^date: .*$", re.MULTILINE)


def post_skeleton(title: str, now: dt.datetime) -> str:
    escaped = title.replace("\\", "\\\\").replace('"', '\\"')
    return "\n".join(
        [
            "---",
            "layout: post",
            f'title: "{escaped}"',
            f"date: {now:%Y-%m-%d %H:%M:%S}",
            "image: '/assets/images/'",
            "description:",
            "tags:",
            "categories:",
            "twitter_text:",
            "---",
            "",
        ]
    )


def post_filename(title: str, now: dt.datetime) -> str:
    return f"{now:%Y-%m-%d}-{slugify(title)}.md"


def create_post(title: str, posts_dir: Path, now: Optional[dt.datetime] = None) -> Path:
    now = now or dt.datetime.now()
    path = posts_dir / post_filename(title, now)
    if path.exists():
        raise FileExistsError(f"Post already exists: {path}")
    write_if_changed(path, post_skeleton(title, now).encode("utf-8"))
    return path


def create_draft(title: str, drafts_dir: Path, now: Optional[dt.datetime] = None) -> Path:
    now = now or dt.datetime.now()
    path = drafts_dir / f"{slugify(title)}.md"
    if path.exists():
        raise FileExistsError(f"Draft already exists: {path}")
    write_if_changed(path, post_skeleton(title, now).encode("utf-8"))
    return path


def promote_draft(title: str, drafts_dir: Path, posts_dir: Path, now: Optional[dt.datetime] = None) -> Path:
    """Move a draft into the posts directory under today's date and stamp its ``date:`` line."""
    now = now or dt.datetime.now()
    draft = drafts_dir / f"{slugify(title)}.md"
    if not draft.exists():
        raise FileNotFoundError(f"Draft not found: {draft}")
    target = posts_dir / post_filename(title, now)
    if target.exists():
        raise FileExistsError(f"Post already exists: {target}")
    text = DATE_LINE_RE.sub(f"date: {now:%Y-%m-%d %H:%M:%S}", draft.read_text(encoding="utf-8"), count=1)
    write_if_changed(target, text.encode("utf-8"))
    draft.unlink()
    return target
