"""Tests for code block routing through the markdown converter"""

import re

import pytest

from blogpipe.codeblock import CodeBlock, CodeBlockRenderer, info_language
from blogpipe.converter import CONVERTERS, MarkdownConverter, get_converter, register_converter

FIGURE_RE = re.compile(r'<figure class="highlight">.*?</figure>', re.DOTALL)

FENCED = 'Before.\n\n```python\nprint("hi")\n```\n\nAfter.\n'
LEGACY = 'Before.\n\n{% highlight python %}\nprint("hi")\n{% endhighlight %}\n\nAfter.\n'


def figures(html):
    return FIGURE_RE.findall(html)


def test_fenced_block_has_fixed_fragment_shape():
    """A fenced block becomes figure > pre > code with the language on the code element."""
    html = MarkdownConverter().convert(FENCED)
    (fragment,) = figures(html)
    assert fragment.startswith('<figure class="highlight"><pre><code class="language-python" data-lang="python">')
    assert fragment.endswith("</code></pre></figure>")
    assert "<p>Before.</p>" in html
    assert "<p>After.</p>" in html


def test_fenced_and_legacy_tag_render_identically():
    """Fenced blocks and the legacy highlight tag share one output shape."""
    converter = MarkdownConverter()
    assert figures(converter.convert(FENCED)) == figures(converter.convert(LEGACY))


def test_tilde_fence_and_braced_info_string():
    html = MarkdownConverter().convert("~~~ {.ruby}\nputs 1\n~~~\n")
    assert 'data-lang="ruby"' in html


def test_block_is_not_wrapped_in_paragraph():
    html = MarkdownConverter().convert(FENCED)
    assert "<p><figure" not in html


@pytest.mark.parametrize("source", ["```\nx = 1\n```\n", "```nosuchlang\nx = 1\n```\n"])
def test_missing_or_unknown_language_uses_plaintext(source):
    """No language, or one no lexer knows, falls back to plaintext."""
    (fragment,) = figures(MarkdownConverter().convert(source))
    assert 'class="language-plaintext" data-lang="plaintext"' in fragment
    assert "x = 1" in fragment


def test_indented_code_is_rendered_as_plaintext_without_double_escaping():
    """Indented blocks go through the same renderer and are escaped exactly once."""
    html = MarkdownConverter().convert("Para.\n\n    a < b && c\n")
    (fragment,) = figures(html)
    assert 'data-lang="plaintext"' in fragment
    assert "a &lt; b &amp;&amp; c" in fragment
    assert "&amp;lt;" not in fragment
    assert "<pre><code>" not in html


def test_code_contents_are_escaped():
    (fragment,) = figures(MarkdownConverter().convert("```html\n<div>&</div>\n```\n"))
    assert "<div>" not in fragment
    assert "&lt;" in fragment


def test_multiple_blocks_keep_document_order():
    source = "```python\na = 1\n```\n\ntext\n\n{% highlight ruby %}\nb = 2\n{% endhighlight %}\n"
    found = figures(MarkdownConverter().convert(source))
    assert len(found) == 2
    assert 'data-lang="python"' in found[0]
    assert 'data-lang="ruby"' in found[1]


def test_highlighter_disabled_still_emits_fragment():
    converter = MarkdownConverter({"highlighter": None})
    (fragment,) = figures(converter.convert(FENCED))
    assert 'data-lang="plaintext"' in fragment
    assert "<span" not in fragment


def test_unknown_language_warning_is_opt_in(capsys):
    """Unknown languages only warn when asked to."""
    CodeBlockRenderer().render(CodeBlock("x", "nosuchlang"))
    assert capsys.readouterr().err == ""
    CodeBlockRenderer(warn_unknown=True).render(CodeBlock("x", "nosuchlang"))
    assert "nosuchlang" in capsys.readouterr().err


def test_info_language_parsing():
    assert info_language("python linenos") == "python"
    assert info_language("{.ruby}") == "ruby"
    assert info_language("  ") is None


def test_setup_is_idempotent():
    """Setup resolves options once and returns the same object afterwards."""
    converter = MarkdownConverter({"kramdown": {"input": "kramdown"}})
    first = converter.setup()
    converter.config["kramdown"] = {"input": "markdown"}
    assert converter.setup() is first
    assert "def_list" in first.extensions


def test_reserved_extensions_are_ignored(capsys):
    converter = MarkdownConverter({"kramdown": {"extensions": ["fenced_code", "nl2br"]}})
    options = converter.setup()
    assert "fenced_code" not in options.extensions
    assert "nl2br" in options.extensions
    assert "fenced_code" in capsys.readouterr().err


def test_converter_registry():
    """Converters are looked up by name and come back already set up."""
    converter = get_converter("kramdown", {})
    assert converter.options is not None
    with pytest.raises(KeyError):
        get_converter("no-such-converter", {})


def test_register_converter_adds_factory():
    @register_converter("test-gfm")
    def factory(config):
        return MarkdownConverter({"kramdown": {"input": "GFM"}})

    try:
        assert get_converter("test-gfm", {}).options.input == "gfm"
    finally:
        CONVERTERS.pop("test-gfm", None)
