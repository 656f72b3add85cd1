from __future__ import annotations

import re
import sys
from dataclasses import dataclass
from typing import Optional

from markdown import Markdown
from markdown.extensions import Extension
from markdown.preprocessors import Preprocessor
from markdown.treeprocessors import Treeprocessor

from .highlight import PLAINTEXT, highlight_code

FENCED_RE = re.compile(
    r"(?P<fence>^(?:~{3,}|`{3,}))[ \t]*(?P<info>[^\n`]*)\n"
    r"(?P<code>.*?)(?<=\n)"
    r"(?P=fence)[ \t]*$",
    re.MULTILINE | re.DOTALL,
)
LEGACY_RE = re.compile(
    r"^[ \t]*\{%-?\s*highlight\s+(?P<lang>\S+)(?P<options>[^%]*?)\s*-?%\}[ \t]*\n?"
    r"(?P<code>.*?)"
    r"\n?[ \t]*\{%-?\s*endhighlight\s*-?%\}[ \t]*$",
    re.MULTILINE | re.DOTALL,
)
FRAGMENT = (
    '<figure class="highlight"><pre>'
    '<code class="language-{lang}" data-lang="{lang}">{markup}</code>'
    "</pre></figure>"
)
PLAIN_ALIASES = {PLAINTEXT, "text", "plain"}


@dataclass(frozen=True)
class CodeBlock:
    code: str
    lang: Optional[str] = None
    start: int = 0
    end: int = 0
    syntax: str = "fenced"


def info_language(info: str) -> Optional[str]:
    info = info.strip().strip("{}").strip()
    if not info:
        return None
    return info.split()[0].lstrip(".")


class CodeBlockRenderer:
    """Renders every code block into the ``{% highlight %}`` tag's HTML shape."""

    def __init__(self, highlighter: object = "rouge", warn_unknown: bool = False):
        self.enabled = str(highlighter or "").strip().lower() not in {"", "none", "false", "off"}
        self.warn_unknown = warn_unknown

    def render(self, block: CodeBlock) -> str:
        code = block.code
        if block.syntax == "legacy":
            code = code.strip("\r\n")
        lang, markup = highlight_code(code, block.lang, enabled=self.enabled)
        if self.warn_unknown and self.enabled and lang == PLAINTEXT and block.lang:
            if block.lang.strip().lower() not in PLAIN_ALIASES:
                print(f"Unknown code block language: {block.lang!r}", file=sys.stderr)
        return FRAGMENT.format(lang=lang, markup=markup)


class CodeBlockPreprocessor(Preprocessor):
    def __init__(self, md: Markdown, renderer: CodeBlockRenderer):
        super().__init__(md)
        self.renderer = renderer

    def next_block(self, text: str, pos: int) -> Optional[CodeBlock]:
        matches = [m for m in (FENCED_RE.search(text, pos), LEGACY_RE.search(text, pos)) if m]
        if not matches:
            return None
        m = min(matches, key=lambda match: match.start())
        if m.re is FENCED_RE:
            return CodeBlock(m.group("code"), info_language(m.group("info")), m.start(), m.end(), "fenced")
        return CodeBlock(m.group("code"), m.group("lang"), m.start(), m.end(), "legacy")

    def run(self, lines: list[str]) -> list[str]:
        text = "\n".join(lines)
        pos = 0
        while True:
            block = self.next_block(text, pos)
            if block is None:
                break
            placeholder = self.md.htmlStash.store(self.renderer.render(block))
            replacement = f"\n\n{placeholder}\n\n"
            text = f"{text[:block.start]}{replacement}{text[block.end:]}"
            pos = block.start + len(replacement)
        return text.split("\n")


class IndentedCodeTreeprocessor(Treeprocessor):
    """Routes indented code blocks, which the parser builds as ``<pre><code>``."""

    def __init__(self, md: Markdown, renderer: CodeBlockRenderer):
        super().__init__(md)
        self.renderer = renderer

    @staticmethod
    def code_unescape(text: str) -> str:
        text = text.replace("&lt;", "<")
        text = text.replace("&gt;", ">")
        return text.replace("&amp;", "&")

    def run(self, root):
        for block in root.iter("pre"):
            if len(block) != 1 or block[0].tag != "code":
                continue
            code = self.code_unescape(block[0].text or "")
            placeholder = self.md.htmlStash.store(self.renderer.render(CodeBlock(code, None, syntax="indented")))
            block.clear()
            block.tag = "p"
            block.text = placeholder


class CodeBlockExtension(Extension):
    def __init__(self, renderer: CodeBlockRenderer, **kwargs):
        super().__init__(**kwargs)
        self.renderer = renderer

    def extendMarkdown(self, md):
        md.registerExtension(self)
        md.preprocessors.register(CodeBlockPreprocessor(md, self.renderer), "blogpipe_code_blocks", 25)
        md.treeprocessors.register(IndentedCodeTreeprocessor(md, self.renderer), "blogpipe_indented_code", 30)
