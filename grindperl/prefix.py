"""Installation prefix derivation."""
from __future__ import annotations

from pathlib import Path
from typing import Callable

from core.git_api import GitRepository

from .context import Console, Environment
from .options import ResolvedOptions

DETACHED_BRANCH = "fromgit"
BRANCH_NAMESPACE = "refs/heads/"


def sanitize_branch(ref: str) -> str:
    """Turn ``refs/heads/feature/x`` into ``feature-x``."""
    if ref.startswith(BRANCH_NAMESPACE):
        ref = ref[len(BRANCH_NAMESPACE):]
    return ref.replace("/", "-")


class PrefixDeriver:
    """Computes where a build is installed."""

    def __init__(
        self,
        environment: Environment,
        *,
        is_git: bool,
        console: Console | None = None,
        repository_factory: Callable[[Path], GitRepository] = GitRepository,
    ) -> None:
        self._environment = environment
        self._is_git = is_git
        self._console = console or Console()
        self._repository_factory = repository_factory

    def derive(self, options: ResolvedOptions) -> str:
        if options.prefix:
            return options.prefix

        root = options.install_root
        if self._is_git:
            branch, describe = self._git_labels()
            return f"{root}/{branch}-{describe}"

        basename = self._environment.workdir.name
        return f"{root}/{basename}-{int(self._environment.clock())}"

    def _git_labels(self) -> tuple[str, str]:
        repository = self._repository_factory(self._environment.workdir)
        try:
            ref = repository.get_head_symbolic_ref()
            describe = repository.describe()
        except RuntimeError as exc:
            self._console.debug(f"Could not read repository state: {exc}")
            ref, describe = None, None

        if ref is None:
            self._console.debug(f"HEAD is not a symbolic ref, using '{DETACHED_BRANCH}'")
            branch = DETACHED_BRANCH
        else:
            branch = sanitize_branch(ref)
        if describe is None:
            self._console.debug("git describe found no label for HEAD")
            describe = ""
        return branch, describe
