"""Shared fixtures: a throwaway blog project tree under tmp_path"""

from pathlib import Path

import pytest

from blogpipe.config import resolve_settings


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def project(tmp_path):
    """A minimal blog project with one post, one stylesheet and one script."""
    write(tmp_path / "_posts" / "2025-01-01-example.md", (
        "---\n"
        "layout: post\n"
        "title: Example\n"
        "---\n"
        "Intro paragraph.\n"
        "\n"
        "```python\n"
        'print("hi")\n'
        "```\n"
    ))
    write(tmp_path / "src" / "css" / "main.css", ".post { color: #333; }\n")
    write(tmp_path / "src" / "js" / "app.js", "function hello ( name ) {\n  return 'hi ' + name ;\n}\n")
    return tmp_path


@pytest.fixture
def make_settings(project):
    """Build Settings for the project; keyword args become `pipeline` config entries."""
    def factory(config=None, **pipeline):
        config = dict(config or {})
        config.setdefault("pipeline", {}).update(pipeline)
        return resolve_settings(config, project, project / "_config.yml")
    return factory
