from __future__ import annotations

import json
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

try:
    import tomllib as toml
except ImportError:
    import tomli as toml

from .utils import parse_bool, parse_int

DEFAULT_BREAKPOINTS = {"xs": 400, "sm": 600, "md": 800, "lg": 1050, "xl": 1800}


class ConfigError(Exception):
    pass


def load_config(path: Path) -> dict:
    if not path.exists():
        return {}
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix == ".toml":
        try:
            data = toml.loads(text)
        except toml.TOMLDecodeError as exc:
            print(f"Invalid TOML in config file {path}: {exc}", file=sys.stderr)
            sys.exit(1)
        return data
    if suffix in {".yml", ".yaml"}:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            print(f"Invalid YAML in config file {path}: {exc}", file=sys.stderr)
            sys.exit(1)
        if data is None:
            return {}
        if not isinstance(data, dict):
            print(f"YAML config must be a mapping: {path}", file=sys.stderr)
            sys.exit(1)
        return data
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        print(f"Invalid JSON in config file {path}: {exc}", file=sys.stderr)
        sys.exit(1)
    if not isinstance(data, dict):
        print(f"JSON config must be an object: {path}", file=sys.stderr)
        sys.exit(1)
    return data


@dataclass(frozen=True)
class Settings:
    root: Path
    config_path: Path
    destination: Path
    assets: Path
    styles: Path
    scripts: Path
    images: Path
    posts: Path
    drafts: Path
    pages: Path
    layouts: Path
    host: str = "localhost"
    port: int = 3000
    reload_port: int = 35729
    style_bundle: str = "main.css"
    script_bundle: str = "main.js"
    compress: bool = True
    minify: bool = True
    breakpoints: dict = field(default_factory=lambda: dict(DEFAULT_BREAKPOINTS))
    optimization_level: int = 3
    preview_size: tuple[int, int] = (1200, 630)
    engine: str = "builtin"
    site_command: Optional[object] = None
    warn_unknown_languages: bool = False
    watch: Optional[list] = None
    markdown: dict = field(default_factory=dict)

    @property
    def asset_roots(self) -> list[Path]:
        """Every compiled asset is written under the dev build and the committed copy."""
        return [self.destination / "assets", self.assets]


def resolve_settings(
    config: dict,
    root: Path,
    config_path: Path,
    destination: Optional[str] = None,
    port: Optional[int] = None,
) -> Settings:
    pipeline = config.get("pipeline") or {}
    if not isinstance(pipeline, dict):
        print("The 'pipeline' config section must be a mapping.", file=sys.stderr)
        sys.exit(1)

    def cfg_str(key: str, default: str) -> str:
        value = pipeline.get(key)
        return default if value is None else str(value)

    def cfg_path(key: str, default: str) -> Path:
        path = Path(cfg_str(key, default))
        return path if path.is_absolute() else root / path

    def cfg_int(key: str, default: int) -> int:
        return parse_int(pipeline.get(key), default)

    def cfg_bool(key: str, default: bool) -> bool:
        value = pipeline.get(key)
        return default if value is None else parse_bool(value)

    dest = Path(destination or str(config.get("destination") or "_site"))
    if not dest.is_absolute():
        dest = root / dest

    breakpoints = dict(DEFAULT_BREAKPOINTS)
    for name, value in (pipeline.get("breakpoints") or {}).items():
        breakpoints[str(name)] = parse_int(value, breakpoints.get(str(name), 0))

    kramdown = config.get("kramdown") or {}
    markdown_options = {
        "kramdown": dict(kramdown) if isinstance(kramdown, dict) else {},
        "highlighter": config.get("highlighter", "rouge"),
        "warn_unknown_languages": cfg_bool("warn_unknown_languages", False),
    }

    level = max(0, min(7, cfg_int("optimization_level", 3)))
    return Settings(
        root=root,
        config_path=config_path,
        destination=dest,
        assets=cfg_path("assets", "assets"),
        styles=cfg_path("styles", "src/css"),
        scripts=cfg_path("scripts", "src/js"),
        images=cfg_path("images", "src/images"),
        posts=cfg_path("posts", "_posts"),
        drafts=cfg_path("drafts", "_drafts"),
        pages=cfg_path("pages", "pages"),
        layouts=cfg_path("layouts", "_layouts"),
        host=cfg_str("host", "localhost"),
        port=port if port is not None else cfg_int("port", 3000),
        reload_port=cfg_int("reload_port", 35729),
        style_bundle=cfg_str("style_bundle", "main.css"),
        script_bundle=cfg_str("script_bundle", "main.js"),
        compress=cfg_bool("compress", True),
        minify=cfg_bool("minify", True),
        breakpoints=breakpoints,
        optimization_level=level,
        preview_size=(cfg_int("preview_width", 1200), cfg_int("preview_height", 630)),
        engine=cfg_str("engine", "builtin").lower(),
        site_command=pipeline.get("site_command"),
        warn_unknown_languages=markdown_options["warn_unknown_languages"],
        watch=pipeline.get("watch"),
        markdown=markdown_options,
    )
