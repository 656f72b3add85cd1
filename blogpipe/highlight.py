from __future__ import annotations

import html
import re
from typing import Optional

from pygments import highlight as pygments_highlight
from pygments.formatters import HtmlFormatter
from pygments.lexer import Lexer
from pygments.lexers import get_lexer_by_name, guess_lexer
from pygments.lexers.special import TextLexer
from pygments.util import ClassNotFound

PLAINTEXT = "plaintext"
LANG_RE = re.compile(r"^[A-Za-z0-9_+#.-]+$")


def normalize_language(lang: Optional[str]) -> str:
    if not lang:
        return ""
    lang = lang.strip().lower()
    if not LANG_RE.match(lang):
        return ""
    return lang


def find_lexer(lang: Optional[str], code: str) -> Optional[Lexer]:
    name = normalize_language(lang)
    if not name or name in {PLAINTEXT, "text", "plain"}:
        return None
    if name == "guess":
        try:
            return guess_lexer(code)
        except ClassNotFound:
            return None
    try:
        return get_lexer_by_name(name)
    except ClassNotFound:
        return None


def highlight_code(code: str, lang: Optional[str], enabled: bool = True) -> tuple[str, str]:
    """Return ``(language, markup)`` for a code snippet.

    ``markup`` holds only the token spans (no wrapping element). When the
    language cannot be resolved, or highlighting is disabled or fails, the
    code is escaped as plain text and the language is ``plaintext``.
    """
    lexer = find_lexer(lang, code) if enabled else None
    if lexer is None:
        return plain_code(code)
    language = normalize_language(lang)
    if language == "guess":
        language = lexer.aliases[0] if lexer.aliases else PLAINTEXT
    try:
        return language, pygments_highlight(code, lexer, HtmlFormatter(nowrap=True))
    except Exception:
        return plain_code(code)


def plain_code(code: str) -> tuple[str, str]:
    try:
        return PLAINTEXT, pygments_highlight(code, TextLexer(), HtmlFormatter(nowrap=True))
    except Exception:
        return PLAINTEXT, html.escape(code)
