"""Git access integrating pygit2 for reads and the CLI for writes."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import pygit2

from .command_runner import (
    CommandResult,
    CommandRunner,
    SubprocessCommandRunner,
)


class GitRepository:
    """
    High-level API for the git operations a build driver needs.

    - READ operations use pygit2 for structured data.
    - WRITE operations use the Git CLI so hooks and config are respected.
    """

    def __init__(
        self, path: Path | str, runner: Optional[CommandRunner] = None
    ) -> None:
        self.path = Path(path).resolve()
        self._repo: Optional[pygit2.Repository] = None
        self._runner = runner or SubprocessCommandRunner()

    # --- Core & Properties (pygit2) ---

    def open(self) -> None:
        """Opens the repository. Raises exception if not found."""
        try:
            self._repo = pygit2.Repository(str(self.path))
        except pygit2.GitError as e:
            raise RuntimeError(f"Failed to open repository at {self.path}: {e}")

    @property
    def repo(self) -> pygit2.Repository:
        if self._repo is None:
            self.open()
        return self._repo  # type: ignore

    # --- CLI Helper ---

    def _run_git(self, args: List[str], note: Optional[str] = None) -> CommandResult:
        """Internal helper to run git CLI commands in this repo."""
        return self._runner.run(["git"] + args, cwd=self.path, note=note)

    # --- Inspection (pygit2) ---

    def get_head_symbolic_ref(self) -> Optional[str]:
        """
        Returns the full reference HEAD points to (e.g. ``refs/heads/main``),
        or None when HEAD is detached or cannot be read.
        """
        try:
            head = self.repo.lookup_reference("HEAD")
        except (KeyError, pygit2.GitError):
            return None
        target = head.target
        # target is str for a symbolic ref, an Oid when detached
        if isinstance(target, str):
            return target
        return None

    def describe(self) -> Optional[str]:
        """
        Tag-relative description of HEAD, as ``git describe`` prints it.
        Returns None when no description exists (no tags, unborn HEAD).

        The commit id is abbreviated the way ``git`` abbreviates HEAD, so
        ``core.abbrev`` and the length needed for a unique id both apply.
        """
        try:
            abbrev = len(self.repo.revparse_single("HEAD").short_id)
            return self.repo.describe(abbreviated_size=abbrev)
        except (KeyError, ValueError, pygit2.GitError):
            return None

    # --- Write operations (CLI) ---

    def clean(self, *, directories: bool = True, ignored: bool = True) -> CommandResult:
        """Forcibly remove untracked (and by default ignored) files."""
        flags = "-" + ("d" if directories else "") + ("x" if ignored else "") + "f"
        return self._run_git(["clean", flags], note="clean")
