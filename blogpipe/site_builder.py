from __future__ import annotations

import shlex
import subprocess
import sys
import threading
from pathlib import Path
from typing import Callable, Optional

IS_WINDOWS = sys.platform.startswith("win")
MISSING_COMMAND = 127


def site_command(
    engine: str = "builtin",
    config_path: Optional[Path] = None,
    override: object = None,
    destination: Optional[Path] = None,
    is_windows: bool = IS_WINDOWS,
) -> list[str]:
    """Command line for the site engine, writing into ``destination`` when given."""
    if override:
        if isinstance(override, (list, tuple)):
            return [str(part) for part in override]
        return shlex.split(str(override), posix=not is_windows)
    target = ["--destination", str(destination)] if destination is not None else []
    if engine == "jekyll":
        command = ["jekyll.bat", "build"] if is_windows else ["bundle", "exec", "jekyll", "build"]
        return command + target
    command = [sys.executable, "-m", "blogpipe.cli"]
    if config_path is not None:
        command += ["--config", str(config_path)]
    return command + target + ["render"]


class SiteBuilder:
    """Runs the site engine as a subprocess whose output streams to this console."""

    def __init__(self, command: list[str], cwd: Optional[Path] = None):
        self.command = command
        self.cwd = cwd

    def start(self, on_done: Callable[[int], None]) -> Optional[subprocess.Popen]:
        print(f"Running: $ {shlex.join(self.command)}")
        try:
            process = subprocess.Popen(self.command, cwd=self.cwd)
        except OSError as exc:
            print(f"[build] Could not start {self.command[0]}: {exc}", file=sys.stderr)
            on_done(MISSING_COMMAND)
            return None

        def wait() -> None:
            on_done(process.wait())

        threading.Thread(target=wait, name="site-builder", daemon=True).start()
        return process

    def run(self) -> bool:
        done = threading.Event()
        result = {}

        def on_done(returncode: int) -> None:
            result["returncode"] = returncode
            done.set()

        self.start(on_done)
        done.wait()
        returncode = result["returncode"]
        if returncode != 0:
            print(f"[build] Site build failed with exit code {returncode}", file=sys.stderr)
            return False
        return True
