from __future__ import annotations

import html
import shutil
import sys
from pathlib import Path

from .cache import write_if_changed
from .config import Settings
from .content import ContentUnit, MARKDOWN_SUFFIXES, HTML_SUFFIXES, extract_title, load_content
from .converter import MarkdownConverter
from .utils import replace_dir

DEFAULT_LAYOUT = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>{{title}}</title>
  <link rel="stylesheet" href="/assets/css/main.css">
</head>
<body>
  <article class="post">
{{content}}
  </article>
  <script src="/assets/js/main.js"></script>
</body>
</html>
"""


def render_template(layout: str, title: str, content: str) -> str:
    # Content goes in last so a literal "{{title}}" inside a post survives.
    return layout.replace("{{title}}", title).replace("{{content}}", content)


def read_layout(layouts_dir: Path, name: str) -> str:
    path = layouts_dir / f"{name}.html"
    if path.exists():
        return path.read_text(encoding="utf-8")
    return DEFAULT_LAYOUT


def content_files(directory: Path) -> list[Path]:
    if not directory.exists():
        return []
    suffixes = MARKDOWN_SUFFIXES | HTML_SUFFIXES
    return sorted(
        (path for path in directory.rglob("*") if path.is_file() and path.suffix.lower() in suffixes),
        key=lambda p: p.as_posix(),
    )


def output_path(unit: ContentUnit, output_dir: Path) -> Path:
    if unit.slug == "index":
        return output_dir / "index.html"
    return output_dir / unit.slug / "index.html"


def render_unit(unit: ContentUnit, converter: MarkdownConverter, layouts_dir: Path) -> str:
    title, body = extract_title(unit.front_matter, unit.body)
    content = converter.convert(body) if unit.format == "markdown" else body
    layout = read_layout(layouts_dir, str(unit.front_matter.get("layout") or "default"))
    return render_template(layout, html.escape(title), content)


def render_site(settings: Settings, converter: MarkdownConverter) -> bool:
    """Render posts and pages into the destination tree.

    Output is staged next to the destination and swapped in only when every
    file rendered, so a failed run leaves the previous site in place.
    """
    converter.setup()
    staging = settings.destination.with_name(f"{settings.destination.name}.staging")
    if staging.exists():
        shutil.rmtree(staging)
    staging.mkdir(parents=True)

    swapped = False
    try:
        if settings.assets.exists():
            shutil.copytree(settings.assets, staging / "assets")

        failed = []
        rendered = 0
        for path in content_files(settings.posts) + content_files(settings.pages):
            try:
                unit = load_content(path)
                if not unit.published:
                    continue
                page = render_unit(unit, converter, settings.layouts)
                write_if_changed(output_path(unit, staging), page.encode("utf-8"))
                rendered += 1
            except (OSError, UnicodeDecodeError, ValueError) as exc:
                print(f"[render] Failed to render {path}: {exc}", file=sys.stderr)
                failed.append(path)

        if failed:
            print(f"[render] {len(failed)} file(s) failed; keeping previous site.", file=sys.stderr)
            return False

        replace_dir(staging, settings.destination, settings.root)
        swapped = True
    finally:
        if not swapped and staging.exists():
            shutil.rmtree(staging)
    print(f"[render] Rendered {rendered} file(s) into {settings.destination}")
    return True
