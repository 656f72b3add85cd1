from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path
from typing import Optional

from watchdog.observers import Observer

from .config import ConfigError, Settings, load_config, resolve_settings
from .converter import get_converter
from .posts import create_draft, create_post, promote_draft
from .render import render_site
from .server import DevServer
from .tasks import TaskRegistry, declare_tasks
from .watch import ChangeHandler, Orchestrator, default_bindings, load_bindings


def run_watch(settings: Settings, registry: TaskRegistry) -> int:
    server = DevServer(settings.destination, settings.port, settings.host, settings.reload_port)
    orchestrator = Orchestrator(
        registry,
        load_bindings(settings.watch, default_bindings(settings)),
        settings.root,
        notify=server.notify,
        ignore=[
            *registry.destinations(),
            settings.destination.with_name(f"{settings.destination.name}.staging"),
        ],
    )
    observer = Observer()
    observer.schedule(ChangeHandler(orchestrator), str(settings.root), recursive=True)

    server.start()
    orchestrator.start()
    observer.start()
    print("[watch] Watching for changes. Press Ctrl+C to stop.")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        print("\n[watch] Stopping...")
    finally:
        observer.stop()
        observer.join()
        orchestrator.stop()
        server.stop()
    return 0


def run_post(settings: Settings, args: argparse.Namespace) -> int:
    try:
        if args.create:
            path = create_post(" ".join(args.create), settings.posts)
        elif args.draft:
            path = create_draft(" ".join(args.draft), settings.drafts)
        else:
            path = promote_draft(" ".join(args.promote), settings.drafts, settings.posts)
    except (FileExistsError, FileNotFoundError) as exc:
        print(exc, file=sys.stderr)
        return 1
    print(f"Created {path}")
    return 0


def run_task(args: argparse.Namespace, settings: Settings) -> int:
    if args.task == "post":
        return run_post(settings, args)
    if args.task == "render":
        converter = get_converter("kramdown", settings.markdown)
        return 0 if render_site(settings, converter) else 1

    registry = declare_tasks(settings)
    if args.task == "watch":
        return run_watch(settings, registry)
    if args.task == "default":
        # Fail on a bad watch config before spending time on the initial build.
        Orchestrator(registry, load_bindings(settings.watch, default_bindings(settings)), settings.root)
        registry.run(["default"])
        return run_watch(settings, registry)
    return 0 if registry.run([args.task]) else 1


def main(argv: Optional[list[str]] = None) -> int:
    pre_parser = argparse.ArgumentParser(add_help=False)
    pre_parser.add_argument("--config", default="_config.yml", help="Path to site config file (TOML/YAML/JSON).")
    pre_args, _ = pre_parser.parse_known_args(argv)
    project_root = Path.cwd()
    config_path = Path(pre_args.config)
    if not config_path.is_absolute():
        config_path = (project_root / config_path).resolve()
    config = load_config(config_path)

    parser = argparse.ArgumentParser(description="Blog asset pipeline, site build and live-reload dev server.")
    parser.add_argument("--config", default=pre_args.config, help="Path to site config file (TOML/YAML/JSON).")
    parser.add_argument("--destination", default=None, help="Build output directory (overrides config).")
    parser.add_argument("--port", default=None, type=int, help="Dev server port (overrides config).")
    subparsers = parser.add_subparsers(dest="task", metavar="TASK")
    subparsers.add_parser("build", help="Run the site builder once.")
    subparsers.add_parser("render", help="Render content with the built-in engine.")
    subparsers.add_parser("style", help="Compile stylesheets.")
    subparsers.add_parser("script", help="Bundle and minify scripts.")
    subparsers.add_parser("images", help="Optimize images.")
    subparsers.add_parser("preview-images", help="Crop social preview images.")
    subparsers.add_parser("watch", help="Watch sources and serve the site with live reload.")
    subparsers.add_parser("default", help="Run every compiler and the site build, then watch.")
    post_parser = subparsers.add_parser("post", help="Scaffold, draft or promote a post.")
    group = post_parser.add_mutually_exclusive_group(required=True)
    group.add_argument("-c", "--create", nargs="+", metavar="TITLE", help="Create a dated post.")
    group.add_argument("-d", "--draft", nargs="+", metavar="TITLE", help="Create a draft.")
    group.add_argument("-p", "--promote", nargs="+", metavar="TITLE", help="Promote a draft to a post.")
    args = parser.parse_args(argv)
    if args.task is None:
        args.task = "default"

    settings = resolve_settings(config, project_root, config_path, args.destination, args.port)
    start = time.perf_counter()
    try:
        status = run_task(args, settings)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1
    if args.task not in {"watch", "default", "post"}:
        elapsed = time.perf_counter() - start
        print(f"Task '{args.task}' finished in {elapsed:.2f}s.")
    return status


if __name__ == "__main__":
    sys.exit(main())
