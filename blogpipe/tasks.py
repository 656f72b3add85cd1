from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional

from .config import ConfigError, Settings
from .images import IMAGE_PATTERNS, PREVIEW_PATTERNS, optimize_images, resize_previews
from .scripts import compile_scripts
from .site_builder import SiteBuilder, site_command
from .styles import compile_styles
from .utils import rel_posix

FULL_RELOAD = "full"
CSS_RELOAD = "css"


@dataclass(frozen=True)
class BuildTask:
    """A named step. ``sources`` are root-relative globs it reads, ``destinations`` the directories it writes."""

    name: str
    runner: Optional[Callable[[], object]] = None
    requires: tuple[str, ...] = ()
    reload: str = ""
    sources: tuple[str, ...] = ()
    destinations: tuple[Path, ...] = ()

    def run(self) -> bool:
        if self.runner is None:
            return True
        return self.runner() is not False


class TaskRegistry:
    def __init__(self, tasks: Iterable[BuildTask] = ()):
        self._tasks: dict[str, BuildTask] = {}
        for task in tasks:
            self.add(task)

    def add(self, task: BuildTask) -> BuildTask:
        if task.name in self._tasks:
            raise ConfigError(f"Task {task.name!r} is declared twice")
        self._tasks[task.name] = task
        return task

    def __contains__(self, name: str) -> bool:
        return name in self._tasks

    def names(self) -> list[str]:
        return list(self._tasks)

    def get(self, name: str) -> BuildTask:
        try:
            return self._tasks[name]
        except KeyError:
            raise ConfigError(f"Unknown task {name!r}") from None

    def validate(self) -> None:
        for task in self._tasks.values():
            for name in task.requires:
                if name not in self._tasks:
                    raise ConfigError(f"Task {task.name!r} requires unknown task {name!r}")
        self.resolve(self._tasks)

    def resolve(self, names: Iterable[str]) -> list[BuildTask]:
        """Order ``names`` and their prerequisites so every task follows what it requires."""
        ordered: list[BuildTask] = []
        done: set[str] = set()
        visiting: list[str] = []

        def visit(name: str) -> None:
            if name in done:
                return
            if name in visiting:
                cycle = " -> ".join(visiting[visiting.index(name):] + [name])
                raise ConfigError(f"Task dependency cycle: {cycle}")
            task = self.get(name)
            visiting.append(name)
            for required in task.requires:
                visit(required)
            visiting.pop()
            done.add(name)
            ordered.append(task)

        for name in names:
            visit(name)
        return ordered

    def run(self, names: Iterable[str]) -> bool:
        tasks = self.resolve(names)
        for index, task in enumerate(tasks):
            try:
                ok = task.run()
            except Exception as exc:
                print(f"[{task.name}] Task failed: {exc}", file=sys.stderr)
                ok = False
            if not ok:
                skipped = [later.name for later in tasks[index + 1:]]
                if skipped:
                    print(f"[{task.name}] Skipping: {', '.join(skipped)}", file=sys.stderr)
                return False
        return True

    def destinations(self) -> list[Path]:
        return sorted({path for task in self._tasks.values() for path in task.destinations})


def declare_tasks(settings: Settings, builder: Optional[SiteBuilder] = None) -> TaskRegistry:
    if builder is None:
        command = site_command(
            settings.engine, settings.config_path, settings.site_command, destination=settings.destination
        )
        builder = SiteBuilder(command, cwd=settings.root)

    def globs(directory: Path, patterns: list[str]) -> tuple[str, ...]:
        base = rel_posix(directory, settings.root)
        return tuple(f"{base}/{pattern}" for pattern in patterns)

    def outputs(subdir: str) -> tuple[Path, ...]:
        return tuple(root / subdir for root in settings.asset_roots)

    registry = TaskRegistry(
        [
            BuildTask(
                "style",
                lambda: compile_styles(settings),
                reload=CSS_RELOAD,
                sources=globs(settings.styles, ["**/*.css"]),
                destinations=outputs("css"),
            ),
            BuildTask(
                "script",
                lambda: compile_scripts(settings),
                reload=FULL_RELOAD,
                sources=globs(settings.scripts, ["**/*.js"]),
                destinations=outputs("js"),
            ),
            BuildTask(
                "images",
                lambda: optimize_images(settings),
                reload=FULL_RELOAD,
                sources=globs(settings.images, IMAGE_PATTERNS),
                destinations=outputs("images"),
            ),
            BuildTask(
                "preview-images",
                lambda: resize_previews(settings),
                reload=FULL_RELOAD,
                sources=globs(settings.images, PREVIEW_PATTERNS),
                destinations=outputs("images"),
            ),
            BuildTask("build", builder.run, reload=FULL_RELOAD, destinations=(settings.destination,)),
            BuildTask("rebuild", requires=("build",), reload=FULL_RELOAD),
            BuildTask("assets", requires=("script", "style", "images", "preview-images")),
            BuildTask("default", requires=("assets", "build")),
        ]
    )
    registry.validate()
    return registry
