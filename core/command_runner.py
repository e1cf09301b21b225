"""Utilities for executing external commands with optional dry-run support."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Sequence
import os
import shlex
import subprocess


@dataclass
class CommandResult:
    """Represents the outcome of an executed command."""

    command: Sequence[str]
    returncode: int

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """Abstract command runner interface."""

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        note: str | None = None,
    ) -> CommandResult:
        raise NotImplementedError

    def format_command(self, command: Sequence[str]) -> str:
        return " ".join(shlex.quote(part) for part in command)


class SubprocessCommandRunner(CommandRunner):
    """Command runner that executes commands via :mod:`subprocess`.

    Children inherit ``base_env`` (the process environment when omitted)
    overlaid with the per-command ``env``.

    When ``log_path`` is given the file is truncated once, then every command
    appends its stdout and stderr to it. The file is reopened for each command
    so it survives steps that delete it, such as ``git clean -dxf``.
    """

    def __init__(
        self,
        *,
        base_env: Mapping[str, str] | None = None,
        log_path: Path | None = None,
    ) -> None:
        self._base_env = dict(os.environ if base_env is None else base_env)
        self._log_path = log_path
        if log_path is not None:
            log_path.write_text("", encoding="utf-8")

    def _merge_environment(self, env: Mapping[str, str] | None) -> Dict[str, str]:
        merged = dict(self._base_env)
        if env:
            merged.update(env)
        return merged

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        note: str | None = None,
    ) -> CommandResult:
        merged_env = self._merge_environment(env)
        if self._log_path is None:
            process = subprocess.run(
                command,
                cwd=str(cwd) if cwd else None,
                env=merged_env,
                check=False,
            )
        else:
            with self._log_path.open("a", encoding="utf-8") as handle:
                process = subprocess.run(
                    command,
                    cwd=str(cwd) if cwd else None,
                    env=merged_env,
                    stdout=handle,
                    stderr=subprocess.STDOUT,
                    check=False,
                )
        return CommandResult(command=list(command), returncode=process.returncode)


@dataclass(slots=True)
class RecordedCommand:
    command: List[str]
    cwd: str | None
    env: Dict[str, str]
    note: str | None


class RecordingCommandRunner(CommandRunner):
    """Command runner that records commands instead of executing them."""

    def __init__(self) -> None:
        self.commands: List[RecordedCommand] = []

    @staticmethod
    def _record_entry(
        *,
        command: Sequence[str],
        cwd: Path | None,
        env: Mapping[str, str] | None,
        note: str | None,
    ) -> RecordedCommand:
        return RecordedCommand(
            command=list(command),
            cwd=str(cwd) if cwd else None,
            env=dict(env) if env else {},
            note=note,
        )

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        note: str | None = None,
    ) -> CommandResult:
        self.commands.append(self._record_entry(command=command, cwd=cwd, env=env, note=note))
        return CommandResult(command=list(command), returncode=0)

    def iter_commands(self) -> Iterable[RecordedCommand]:
        return iter(self.commands)

    def iter_formatted(self, *, workspace: Path | None = None) -> Iterable[str]:
        default_cwd = str(workspace) if workspace else None
        for record in self.commands:
            cmd = self.format_command(record.command)
            cwd = record.cwd or default_cwd
            parts: List[str] = ["[dry-run]"]
            if record.note:
                parts.append(record.note)
            if cwd:
                parts.append(f"(cwd={cwd})")
            if record.env:
                parts.append(" ".join(f"{key}={shlex.quote(value)}" for key, value in sorted(record.env.items())))
            parts.append(cmd)
            yield " ".join(parts)
