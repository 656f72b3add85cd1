"""Unit tests for highlight.py"""

import pytest

import blogpipe.highlight as highlight
from blogpipe.highlight import PLAINTEXT, find_lexer, highlight_code, normalize_language


def test_highlight_known_language_emits_token_spans():
    """A resolvable language yields Pygments token spans and keeps the tag."""
    lang, markup = highlight_code('print("hi")', "python")
    assert lang == "python"
    assert '<span class="nb">print</span>' in markup
    assert "&quot;" in markup and "hi" in markup
    assert not markup.startswith("<div")


def test_highlight_language_tag_is_normalized():
    """Tags are trimmed and lower-cased."""
    lang, _ = highlight_code("x = 1", "  Python ")
    assert lang == "python"


@pytest.mark.parametrize("tag", [None, "", "no-such-language", "py thon", "<script>"])
def test_unresolvable_language_falls_back_to_plaintext(tag):
    """Absent, unknown or malformed tags produce escaped plain text."""
    lang, markup = highlight_code("<b>&</b>", tag)
    assert lang == PLAINTEXT
    assert "&lt;b&gt;&amp;&lt;/b&gt;" in markup
    assert "<span" not in markup


def test_highlighting_disabled_uses_plaintext():
    """With highlighting off even known languages are rendered as plain text."""
    lang, markup = highlight_code("x = 1", "python", enabled=False)
    assert lang == PLAINTEXT
    assert "<span" not in markup


def test_lexer_failure_degrades_to_plaintext(monkeypatch):
    """An exception from the highlighter never escapes."""
    real = highlight.pygments_highlight

    def explode(code, lexer, formatter):
        if lexer.name != "Text only":
            raise RuntimeError("lexer blew up")
        return real(code, lexer, formatter)

    monkeypatch.setattr(highlight, "pygments_highlight", explode)
    lang, markup = highlight_code("a < b", "python")
    assert lang == PLAINTEXT
    assert "a &lt; b" in markup


def test_normalize_language_rejects_malformed_tags():
    assert normalize_language("c++") == "c++"
    assert normalize_language("{python}") == ""


def test_find_lexer_plain_aliases_return_none():
    assert find_lexer("plaintext", "x") is None
    assert find_lexer("text", "x") is None
    assert find_lexer("python", "x") is not None
