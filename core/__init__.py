"""Shared core utilities for process execution and git access."""

from .command_runner import (
    CommandResult,
    CommandRunner,
    RecordingCommandRunner,
    SubprocessCommandRunner,
)
from .git_api import GitRepository

__all__ = [
    "CommandResult",
    "CommandRunner",
    "RecordingCommandRunner",
    "SubprocessCommandRunner",
    "GitRepository",
]
