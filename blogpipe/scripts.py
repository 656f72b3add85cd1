from __future__ import annotations

import sys
from pathlib import Path

import rjsmin

from .cache import list_files, write_if_changed
from .config import Settings
from .utils import rel_posix


def compile_scripts(settings: Settings) -> list[Path]:
    chunks = []
    for path in list_files(settings.scripts, ["**/*.js"]):
        try:
            source = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            print(f"[script] Skipping {rel_posix(path, settings.root)}: {exc}", file=sys.stderr)
            continue
        chunks.append(rjsmin.jsmin(source).strip() if settings.minify else source.rstrip("\n"))
    bundle = "\n".join(chunks)
    if bundle:
        bundle += "\n"

    written = []
    for root in settings.asset_roots:
        target = root / "js" / settings.script_bundle
        write_if_changed(target, bundle.encode("utf-8"))
        written.append(target)
    print(f"[script] Bundled {len(chunks)} source(s) into {settings.script_bundle}")
    return written
