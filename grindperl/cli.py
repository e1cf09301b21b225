"""Command line interface for grindperl."""
from __future__ import annotations

from pathlib import Path
from typing import Iterable
import sys

from core.command_runner import CommandRunner, RecordingCommandRunner, SubprocessCommandRunner

from .context import Console, Environment
from .errors import ConfigurationError
from .options import OptionResolver, ResolvedOptions
from .run import RunOrchestrator, RunReport


def _emit_dry_run_output(runner: RecordingCommandRunner, *, workspace: Path) -> None:
    for line in runner.iter_formatted(workspace=workspace):
        print(line)


def _make_runner(options: ResolvedOptions, environment: Environment) -> CommandRunner:
    if options.dry_run:
        return RecordingCommandRunner()
    # the editor needs the terminal, never the log file
    if options.output is None or options.edit:
        return SubprocessCommandRunner(base_env=environment.env)
    return SubprocessCommandRunner(
        base_env=environment.env,
        log_path=environment.workdir / options.output,
    )


def run(argv: Iterable[str], environment: Environment) -> int:
    try:
        options = OptionResolver(environment.config_file).resolve(list(argv))
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    console = Console(level=options.log_level, dry_run=options.dry_run)
    console.debug(f"Config file: {environment.config_file}")
    console.debug(f"Cache directory: {environment.cache_dir}")

    try:
        runner = _make_runner(options, environment)
    except OSError as exc:
        print(f"Error: cannot open log file '{options.output}': {exc}", file=sys.stderr)
        return 1
    orchestrator = RunOrchestrator(
        options=options,
        environment=environment,
        runner=runner,
        console=console,
    )
    report: RunReport = orchestrator.run()

    if isinstance(runner, RecordingCommandRunner):
        _emit_dry_run_output(runner, workspace=environment.workdir)

    if not report.ok:
        print(f"Error: {report.failed_step}: {report.message}", file=sys.stderr)
        return 1
    console.info(f"Finished ({report.status.value}): {', '.join(report.completed)}")
    return 0


def main(argv: Iterable[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    return run(args, Environment.from_process())


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
