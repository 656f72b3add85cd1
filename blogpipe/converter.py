from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Callable, Optional

import markdown

from .codeblock import CodeBlockExtension, CodeBlockRenderer
from .config import ConfigError

# Never list "fenced_code" or "codehilite" here: code blocks belong to CodeBlockExtension.
INPUT_EXTENSIONS = {
    "gfm": ("tables", "sane_lists", "attr_list", "footnotes", "toc"),
    "kramdown": ("abbr", "attr_list", "def_list", "footnotes", "md_in_html", "tables", "toc"),
    "markdown": (),
}
RESERVED_EXTENSIONS = {"fenced_code", "codehilite", "extra", "markdown.extensions.fenced_code"}


@dataclass(frozen=True)
class ConverterOptions:
    input: str = "gfm"
    highlighter: str = "rouge"
    extensions: tuple[str, ...] = INPUT_EXTENSIONS["gfm"]
    warn_unknown_languages: bool = False


def resolve_options(config: dict) -> ConverterOptions:
    kramdown = config.get("kramdown") or {}
    input_mode = str(kramdown.get("input") or "GFM").strip().lower()
    if input_mode not in INPUT_EXTENSIONS:
        print(f"Unknown markdown input mode {input_mode!r}; using GFM.", file=sys.stderr)
        input_mode = "gfm"
    extensions = list(INPUT_EXTENSIONS[input_mode])
    for name in kramdown.get("extensions") or []:
        name = str(name)
        if name in RESERVED_EXTENSIONS:
            print(f"Ignoring markdown extension {name!r}: code blocks are rendered by blogpipe.", file=sys.stderr)
            continue
        if name not in extensions:
            extensions.append(name)
    highlighter = config.get("highlighter", "rouge")
    return ConverterOptions(
        input=input_mode,
        highlighter="none" if highlighter in (None, False) else str(highlighter),
        extensions=tuple(extensions),
        warn_unknown_languages=bool(config.get("warn_unknown_languages", False)),
    )


class MarkdownConverter:
    """Markdown to HTML with every code block routed through a CodeBlockRenderer.

    ``config`` is the site engine's options map (``kramdown``, ``highlighter``).
    It is resolved once by :meth:`setup`; further calls return the same options.
    """

    def __init__(self, config: Optional[dict] = None, renderer: Optional[CodeBlockRenderer] = None):
        self.config = dict(config or {})
        self.renderer = renderer
        self.options: Optional[ConverterOptions] = None

    def setup(self) -> ConverterOptions:
        if self.options is not None:
            return self.options
        options = resolve_options(self.config)
        try:
            markdown.Markdown(extensions=list(options.extensions))
        except (ImportError, AttributeError, TypeError) as exc:
            raise ConfigError(f"Cannot load markdown extensions {list(options.extensions)}: {exc}") from exc
        self.options = options
        if self.renderer is None:
            self.renderer = CodeBlockRenderer(
                self.options.highlighter, warn_unknown=self.options.warn_unknown_languages
            )
        return self.options

    def convert(self, content: str) -> str:
        options = self.setup()
        md = markdown.Markdown(
            extensions=[*options.extensions, CodeBlockExtension(self.renderer)],
            output_format="html",
        )
        return md.convert(content)


CONVERTERS: dict[str, Callable[[dict], MarkdownConverter]] = {}


def register_converter(name: str) -> Callable:
    def decorator(factory: Callable[[dict], MarkdownConverter]) -> Callable[[dict], MarkdownConverter]:
        CONVERTERS[name] = factory
        return factory

    return decorator


def get_converter(name: str, config: dict) -> MarkdownConverter:
    try:
        factory = CONVERTERS[name]
    except KeyError:
        raise KeyError(f"No markdown converter registered as {name!r}") from None
    converter = factory(config)
    converter.setup()
    return converter


@register_converter("kramdown")
def kramdown_converter(config: dict) -> MarkdownConverter:
    return MarkdownConverter(config)
