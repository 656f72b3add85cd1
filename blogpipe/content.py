from __future__ import annotations

import re
import sys
from dataclasses import dataclass, field
from pathlib import Path

import yaml

DATE_PREFIX_RE = re.compile(r"^\d{4}-\d{2}-\d{2}-")
MARKDOWN_SUFFIXES = {".md", ".markdown", ".mkdn", ".mkd"}
HTML_SUFFIXES = {".html", ".htm"}


@dataclass(frozen=True)
class ContentUnit:
    path: Path
    raw: str
    front_matter: dict = field(default_factory=dict)
    body: str = ""
    format: str = "markdown"

    @property
    def title(self) -> str:
        title, _ = extract_title(self.front_matter, self.body)
        return title

    @property
    def slug(self) -> str:
        explicit = str(self.front_matter.get("slug") or "").strip()
        if explicit:
            return slugify(explicit)
        permalink = str(self.front_matter.get("permalink") or "").strip("/ ")
        if permalink:
            return permalink
        return slugify(DATE_PREFIX_RE.sub("", self.path.stem))

    @property
    def published(self) -> bool:
        return self.front_matter.get("published", True) is not False


def slugify(text: str) -> str:
    text = text.lower()
    text = re.sub(r"[^\w]+", "-", text, flags=re.UNICODE)
    text = text.strip("-_").replace("_", "-")
    return text or "post"


def parse_front_matter(text: str, source: str = "<string>") -> tuple[dict, str]:
    clean_text = text.lstrip("\ufeff")
    lines = clean_text.splitlines()
    if not lines or lines[0].strip() != "---":
        return {}, clean_text

    end = None
    for i in range(1, len(lines)):
        if lines[i].strip() in {"---", "..."}:
            end = i
            break
    if end is None:
        return {}, clean_text

    body = "\n".join(lines[end + 1 :])
    try:
        meta = yaml.safe_load("\n".join(lines[1:end]))
    except yaml.YAMLError as exc:
        print(f"Invalid front matter in {source}: {exc}", file=sys.stderr)
        return {}, body
    if not isinstance(meta, dict):
        return {}, body
    return meta, body


def extract_title(meta: dict, body: str) -> tuple[str, str]:
    if meta.get("title"):
        return str(meta["title"]), body
    lines = body.splitlines()
    for i, line in enumerate(lines):
        stripped = line.strip()
        if stripped.startswith("# "):
            title = stripped[2:].strip() or "Untitled"
            new_body = "\n".join(lines[i + 1 :]).lstrip()
            return title, new_body
        if stripped:
            break
    return "Untitled", body


def detect_format(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix in MARKDOWN_SUFFIXES:
        return "markdown"
    if suffix in HTML_SUFFIXES:
        return "html"
    return "text"


def load_content(path: Path) -> ContentUnit:
    raw = path.read_text(encoding="utf-8")
    meta, body = parse_front_matter(raw, str(path))
    return ContentUnit(path=path, raw=raw, front_matter=meta, body=body, format=detect_format(path))
