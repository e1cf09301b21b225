"""Reuse of ``config.sh`` and ``Policy.sh`` across runs."""
from __future__ import annotations

from pathlib import Path
from typing import Sequence
import shutil

from .context import Console

CACHE_ARTIFACTS = ("config.sh", "Policy.sh")


class ConfigureCache:
    """Restores cached Configure output before a run and saves fresher copies after.

    Copy failures are reported through the console and never raised: Configure
    regenerates both files when they are missing.
    """

    def __init__(
        self,
        cache_dir: Path,
        workdir: Path,
        console: Console,
        *,
        artifacts: Sequence[str] = CACHE_ARTIFACTS,
        dry_run: bool = False,
    ) -> None:
        self.cache_dir = cache_dir
        self.workdir = workdir
        self._console = console
        self._artifacts = tuple(artifacts)
        self._dry_run = dry_run

    def cache_file(self, name: str) -> Path:
        if not name:
            raise ValueError("No filename given to cache_file()")
        return self.cache_dir / name

    def restore(self, *, enabled: bool) -> None:
        """Copy cached artifacts into the tree, or drop them when caching is off."""
        for name in self._artifacts:
            cached = self.cache_file(name)
            if not cached.is_file():
                continue
            local = self.workdir / name
            if not enabled:
                self._discard(cached)
                continue
            if self._dry_run:
                self._console.dry(f"Would copy {cached} to {local}")
                continue
            try:
                shutil.copy2(cached, local)
            except OSError as exc:
                self._console.debug(f"Failed to copy {name} from cache: {exc}")
                continue
            self._console.debug(f"Copied {name} from cache")

    def save(self) -> None:
        """Store artifacts that are missing from the cache or newer than their cached copy."""
        if self._dry_run:
            self._console.dry(f"Would update cache in {self.cache_dir}")
            return
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            self._console.error(f"Cannot create cache directory {self.cache_dir}: {exc}")
            return

        for name in self._artifacts:
            local = self.workdir / name
            cached = self.cache_file(name)
            if not local.is_file():
                continue
            if not self.is_stale(local, cached):
                self._console.debug(f"Cached {name} is up to date")
                continue
            try:
                shutil.copy2(local, cached)
            except OSError as exc:
                self._console.error(f"Failed to save {name} to cache: {exc}")
                continue
            self._console.debug(f"Saved {name} to cache")

    @staticmethod
    def is_stale(local: Path, cached: Path) -> bool:
        """True when ``cached`` is missing or strictly older than ``local``."""
        if not cached.is_file():
            return True
        return local.stat().st_mtime_ns > cached.stat().st_mtime_ns

    def _discard(self, cached: Path) -> None:
        if self._dry_run:
            self._console.dry(f"Would remove stale cache entry {cached}")
            return
        try:
            cached.unlink()
        except OSError as exc:
            self._console.error(f"Failed to remove stale cache entry {cached}: {exc}")
            return
        self._console.debug(f"Removed {cached.name} from cache")
