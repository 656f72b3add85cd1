from __future__ import annotations

import re
import sys
from pathlib import Path

import csscompressor

from .cache import list_files, write_if_changed
from .config import Settings
from .utils import rel_posix

COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
STRING_RE = re.compile(r"\"(?:\\.|[^\"\\])*\"|'(?:\\.|[^'\\])*'")
MACRO_RE = re.compile(r"@(?P<name>above|below|between|mobile|tablet|desktop)\b(?P<args>[^{;]*)\{")
DECLARATION_RE = re.compile(r"(?P<lead>[{;]\s*)(?P<prop>[a-z][a-z-]*)\s*:\s*(?P<value>[^;{}]+)")
LENGTH_RE = re.compile(r"^\d+(?:\.\d+)?(?:px|em|rem)?$")

PREFIXES = {
    "user-select": ("-webkit-", "-moz-", "-ms-"),
    "appearance": ("-webkit-", "-moz-"),
    "backdrop-filter": ("-webkit-",),
    "text-size-adjust": ("-webkit-", "-moz-", "-ms-"),
    "hyphens": ("-webkit-", "-ms-"),
    "box-decoration-break": ("-webkit-",),
    "mask-image": ("-webkit-",),
    "clip-path": ("-webkit-",),
}
MOBILE_CUTOFF = "xs"
DESKTOP_CUTOFF = "lg"


class StyleError(ValueError):
    pass


def check_braces(text: str) -> None:
    stripped = STRING_RE.sub('""', COMMENT_RE.sub("", text))
    depth = 0
    for ch in stripped:
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth < 0:
                raise StyleError("unexpected '}'")
    if depth:
        raise StyleError("unbalanced braces")


def breakpoint_width(value: str, breakpoints: dict) -> str:
    value = value.strip()
    if value in breakpoints:
        return f"{breakpoints[value]}px"
    if LENGTH_RE.match(value):
        return value if not value[-1].isdigit() else f"{value}px"
    raise StyleError(f"unknown breakpoint {value!r}")


def media_query(name: str, args: list[str], breakpoints: dict) -> str:
    if name == "mobile":
        name, args = "below", [MOBILE_CUTOFF]
    elif name == "tablet":
        name, args = "between", [MOBILE_CUTOFF, DESKTOP_CUTOFF]
    elif name == "desktop":
        name, args = "above", [DESKTOP_CUTOFF]
    expected = 2 if name == "between" else 1
    if len(args) != expected:
        raise StyleError(f"@{name} expects {expected} breakpoint(s), got {len(args)}")
    widths = [breakpoint_width(arg, breakpoints) for arg in args]
    if name == "above":
        return f"@media only screen and (min-width: {widths[0]}) {{"
    if name == "below":
        return f"@media only screen and (max-width: {widths[0]}) {{"
    return f"@media only screen and (min-width: {widths[0]}) and (max-width: {widths[1]}) {{"


def expand_breakpoints(text: str, breakpoints: dict) -> str:
    def repl(match: re.Match) -> str:
        args = match.group("args").replace(",", " ").split()
        return media_query(match.group("name"), args, breakpoints)

    return MACRO_RE.sub(repl, text)


def add_prefixes(text: str) -> str:
    def repl(match: re.Match) -> str:
        prop = match.group("prop")
        prefixes = PREFIXES.get(prop)
        if not prefixes:
            return match.group(0)
        lead = match.group("lead")
        value = match.group("value").strip()
        extra = "".join(f"{prefix}{prop}: {value}; " for prefix in prefixes)
        return f"{lead}{extra}{match.group(0)[len(lead):]}"

    return DECLARATION_RE.sub(repl, text)


def compile_source(text: str, breakpoints: dict) -> str:
    check_braces(text)
    return add_prefixes(expand_breakpoints(text, breakpoints))


def compile_styles(settings: Settings) -> list[Path]:
    parts = []
    for path in list_files(settings.styles, ["**/*.css"]):
        rel = rel_posix(path, settings.root)
        try:
            parts.append(compile_source(path.read_text(encoding="utf-8"), settings.breakpoints))
        except (OSError, UnicodeDecodeError, StyleError) as exc:
            print(f"[style] Skipping {rel}: {exc}", file=sys.stderr)
    stylesheet = "\n".join(parts)
    if settings.compress:
        stylesheet = csscompressor.compress(stylesheet)
    elif stylesheet and not stylesheet.endswith("\n"):
        stylesheet += "\n"

    written = []
    for root in settings.asset_roots:
        target = root / "css" / settings.style_bundle
        write_if_changed(target, stylesheet.encode("utf-8"))
        written.append(target)
    print(f"[style] Compiled {len(parts)} source(s) into {settings.style_bundle}")
    return written
