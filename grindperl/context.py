"""
Console and environment context for grindperl.
"""
from __future__ import annotations

import os
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Mapping

APP_NAME = "grindperl"
CONFIG_FILENAME = "grindperl.conf"


class Console:
    """Simple console output handler with configurable log level.

    Levels: none < error < info < debug
    Default: 'error'
    """

    LEVELS = {
        "none": 0,
        "error": 1,
        "info": 2,
        "debug": 3,
    }

    def __init__(self, level: str = "error", dry_run: bool = False):
        self.level_name = level
        self.level = self.LEVELS.get(level, 1)
        self.dry_run = dry_run

    def info(self, message: str) -> None:
        if self.level >= self.LEVELS["info"]:
            print(f"[INFO] {message}")

    def error(self, message: str) -> None:
        if self.level >= self.LEVELS["error"]:
            print(f"[ERROR] {message}", file=sys.stderr)

    def dry(self, message: str) -> None:
        if self.dry_run:
            print(f"[DRY] {message}")

    def debug(self, message: str) -> None:
        if self.level >= self.LEVELS["debug"]:
            print(f"[DEBUG] {message}")


def _xdg_dir(env: Mapping[str, str], variable: str, fallback: str) -> Path:
    base = env.get(variable)
    if base:
        return Path(base) / APP_NAME
    home = env.get("HOME")
    root = Path(home) if home else Path.home()
    return root / fallback / APP_NAME


@dataclass(frozen=True)
class Environment:
    """Filesystem locations and process state a run depends on."""

    workdir: Path
    config_dir: Path
    cache_dir: Path
    env: Mapping[str, str] = field(default_factory=dict)
    clock: Callable[[], float] = time.time

    @classmethod
    def from_process(
        cls,
        *,
        workdir: Path | None = None,
        env: Mapping[str, str] | None = None,
        config_dir: Path | None = None,
    ) -> "Environment":
        """Build the context from the current process: CLI > env > XDG default."""
        environ = dict(env) if env is not None else dict(os.environ)
        if config_dir is None:
            override = environ.get("GRINDPERL_CONFIG_DIR")
            config_dir = Path(override) if override else _xdg_dir(environ, "XDG_CONFIG_HOME", ".config")
        cache_override = environ.get("GRINDPERL_CACHE_DIR")
        cache_dir = Path(cache_override) if cache_override else _xdg_dir(environ, "XDG_CACHE_HOME", ".cache")
        return cls(
            workdir=(workdir or Path.cwd()).resolve(),
            config_dir=config_dir.expanduser(),
            cache_dir=cache_dir.expanduser(),
            env=environ,
        )

    @property
    def config_file(self) -> Path:
        return self.config_dir / CONFIG_FILENAME

    @property
    def editor(self) -> str | None:
        value = self.env.get("EDITOR", "").strip()
        return value or None

    @property
    def is_git(self) -> bool:
        return (self.workdir / ".git").exists()
