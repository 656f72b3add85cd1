from __future__ import annotations

import queue
import sys
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler

from .config import ConfigError, Settings
from .server import ReloadNotification
from .tasks import CSS_RELOAD, FULL_RELOAD, TaskRegistry
from .utils import glob_to_regex, rel_posix

IDLE = "idle"
TRIGGERED = "triggered"
RUNNING = "running"


def default_bindings(settings: Settings) -> list[dict]:
    """The standard bindings, following any relocated source directories."""
    styles = rel_posix(settings.styles, settings.root)
    scripts = rel_posix(settings.scripts, settings.root)
    images = rel_posix(settings.images, settings.root)
    posts = rel_posix(settings.posts, settings.root)
    pages = rel_posix(settings.pages, settings.root)
    layouts = rel_posix(settings.layouts, settings.root)
    return [
        {"patterns": [f"{styles}/**/*.css"], "tasks": ["style"]},
        {"patterns": [f"{scripts}/**/*.js"], "tasks": ["script"]},
        {"patterns": [f"{images}/**/*.{{jpg,jpeg,png,gif}}"], "tasks": ["images", "preview-images"]},
        {
            "patterns": [
                "*.html",
                "_includes/*.html",
                f"{layouts}/*.html",
                f"{posts}/*",
                "_data/*",
                "_plugins/*",
                f"{pages}/*",
            ],
            "tasks": ["rebuild"],
        },
    ]


@dataclass
class WatchBinding:
    patterns: tuple[str, ...]
    tasks: tuple[str, ...]
    state: str = IDLE
    pending: bool = False
    _regexes: list = field(default_factory=list, init=False, repr=False)

    def __post_init__(self):
        self._regexes = [glob_to_regex(pattern) for pattern in self.patterns]

    def matches(self, rel_path: str) -> bool:
        return any(regex.match(rel_path) for regex in self._regexes)


def load_bindings(entries: Optional[list], defaults: Optional[list] = None) -> list[WatchBinding]:
    bindings = []
    for entry in entries or defaults or []:
        if not isinstance(entry, dict):
            raise ConfigError(f"Watch binding must be a mapping, got {entry!r}")
        patterns = entry.get("patterns") or []
        tasks = entry.get("tasks") or []
        if isinstance(patterns, str):
            patterns = [patterns]
        if isinstance(tasks, str):
            tasks = [tasks]
        if not patterns or not tasks:
            raise ConfigError(f"Watch binding needs patterns and tasks: {entry!r}")
        bindings.append(WatchBinding(tuple(patterns), tuple(tasks)))
    return bindings


class Orchestrator:
    """Maps changed paths to watch bindings and runs their tasks one binding at a time.

    Each binding moves idle -> triggered -> running -> idle. A change that
    arrives while a binding runs sets a single pending flag, so any number of
    such changes cause exactly one more run once the current one finishes.
    """

    def __init__(
        self,
        registry: TaskRegistry,
        bindings: list[WatchBinding],
        root: Path,
        notify: Optional[Callable[[ReloadNotification], None]] = None,
        ignore: Iterable[Path] = (),
    ):
        for binding in bindings:
            for name in binding.tasks:
                if name not in registry:
                    raise ConfigError(f"Watch binding {list(binding.patterns)} references unknown task {name!r}")
            registry.resolve(binding.tasks)
        self.registry = registry
        self.bindings = bindings
        self.root = root
        self.notify = notify
        self.ignore = [rel_posix(path, root) for path in ignore]
        self._lock = threading.Lock()
        self._queue: queue.Queue[int] = queue.Queue()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def is_ignored(self, rel_path: str) -> bool:
        parts = rel_path.split("/")
        if ".git" in parts:
            return True
        return any(rel_path == prefix or rel_path.startswith(prefix + "/") for prefix in self.ignore)

    def dispatch(self, path: Path) -> list[WatchBinding]:
        rel_path = rel_posix(path, self.root)
        if self.is_ignored(rel_path):
            return []
        triggered = []
        with self._lock:
            for index, binding in enumerate(self.bindings):
                if not binding.matches(rel_path):
                    continue
                triggered.append(binding)
                if binding.state == IDLE:
                    binding.state = TRIGGERED
                    self._queue.put(index)
                elif binding.state == RUNNING:
                    binding.pending = True
        return triggered

    def run_next(self, timeout: Optional[float] = None) -> WatchBinding:
        """Run the next triggered binding. Raises ``queue.Empty`` when none arrives in time."""
        index = self._queue.get(timeout=timeout) if timeout else self._queue.get_nowait()
        binding = self.bindings[index]
        with self._lock:
            binding.state = RUNNING
            binding.pending = False
        try:
            tasks = self.registry.resolve(binding.tasks)
            print(f"[watch] Running {', '.join(task.name for task in tasks)}")
            ok = self.registry.run(binding.tasks)
        finally:
            with self._lock:
                if binding.pending:
                    binding.pending = False
                    binding.state = TRIGGERED
                    self._queue.put(index)
                else:
                    binding.state = IDLE
        if ok:
            self.send_reload({task.reload for task in tasks})
        return binding

    def send_reload(self, kinds: set[str]) -> None:
        if self.notify is None:
            return
        if FULL_RELOAD in kinds:
            self.notify(ReloadNotification(FULL_RELOAD))
        elif CSS_RELOAD in kinds:
            self.notify(ReloadNotification(CSS_RELOAD))

    def drain(self) -> int:
        runs = 0
        while True:
            try:
                self.run_next()
            except queue.Empty:
                return runs
            runs += 1

    def loop(self) -> None:
        while not self._stop.is_set():
            try:
                self.run_next(timeout=0.2)
            except queue.Empty:
                continue
            except Exception as exc:
                print(f"[watch] Unexpected error: {exc}", file=sys.stderr)

    def start(self) -> None:
        self._thread = threading.Thread(target=self.loop, name="orchestrator", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join()


class ChangeHandler(FileSystemEventHandler):
    def __init__(self, orchestrator: Orchestrator):
        super().__init__()
        self.orchestrator = orchestrator

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in {"created", "modified", "moved", "deleted"}:
            return
        self.orchestrator.dispatch(Path(str(event.src_path)))
        dest_path = getattr(event, "dest_path", "")
        if dest_path:
            self.orchestrator.dispatch(Path(str(dest_path)))
