"""Step sequencing for a clean → configure → test → install run."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Sequence
import os
import shlex

from core.command_runner import CommandResult, CommandRunner
from core.git_api import GitRepository

from .cache import ConfigureCache
from .configure import configure_args
from .context import Console, Environment
from .errors import EnvironmentCheckError, GrindError, StepError
from .options import ResolvedOptions
from .prefix import PrefixDeriver

SOURCE_MARKER = "perl.c"
CONFIGURE_PROGRAM = "Configure"


class StepStatus(str, Enum):
    CONTINUE = "continue"
    STOP = "stop"


class RunStatus(str, Enum):
    DONE = "done"
    STOPPED = "stopped"
    FAILED = "failed"


@dataclass(slots=True)
class Step:
    name: str
    action: Callable[[], StepStatus]


@dataclass(slots=True)
class RunReport:
    status: RunStatus = RunStatus.DONE
    completed: List[str] = field(default_factory=list)
    failed_step: str | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is not RunStatus.FAILED


class RunOrchestrator:
    """Runs the named steps in order, stopping at the first failure or early stop."""

    def __init__(
        self,
        *,
        options: ResolvedOptions,
        environment: Environment,
        runner: CommandRunner,
        console: Console,
        prefix_deriver: PrefixDeriver | None = None,
        cache: ConfigureCache | None = None,
    ) -> None:
        self._options = options
        self._environment = environment
        self._runner = runner
        self._console = console
        self._is_git = environment.is_git
        self._prefix_deriver = prefix_deriver or PrefixDeriver(
            environment, is_git=self._is_git, console=console
        )
        self._cache = cache or ConfigureCache(
            environment.cache_dir,
            environment.workdir,
            console,
            dry_run=options.dry_run,
        )
        self._prefix: str | None = None

    @property
    def workdir(self) -> Path:
        return self._environment.workdir

    @property
    def prefix(self) -> str:
        if self._prefix is None:
            self._prefix = self._prefix_deriver.derive(self._options)
        return self._prefix

    def steps(self) -> List[Step]:
        opts = self._options
        if opts.edit:
            return [Step("edit", self._edit_config)]

        steps = [
            Step("check-source-tree", self._check_source_tree),
            Step("verify-prefix", self._verify_prefix),
            Step("clean", self._clean),
            Step("configure", self._configure),
        ]
        if opts.config:
            steps.append(Step("config-only", lambda: StepStatus.STOP))
        steps.append(Step("test", self._test))
        if opts.install:
            steps.append(Step("install", self._install))
        return steps

    def run(self) -> RunReport:
        report = RunReport()
        for step in self.steps():
            self._console.debug(f"Step '{step.name}'")
            try:
                status = step.action()
            except StepError as exc:
                return self._failed(report, step.name, exc.message)
            except (GrindError, OSError) as exc:
                return self._failed(report, step.name, str(exc))
            report.completed.append(step.name)
            if status is StepStatus.STOP:
                report.status = RunStatus.STOPPED
                return report
        return report

    def _failed(self, report: RunReport, step: str, message: str) -> RunReport:
        report.status = RunStatus.FAILED
        report.failed_step = step
        report.message = message
        return report

    # --- Steps ---

    def _edit_config(self) -> StepStatus:
        editor = self._environment.editor
        if editor is None:
            raise EnvironmentCheckError("EDITOR is not set")
        config_file = self._environment.config_file
        try:
            config_file.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise EnvironmentCheckError(f"Cannot create {config_file.parent}: {exc}") from exc
        result = self._spawn("edit", [*shlex.split(editor), str(config_file)], note="edit config")
        if not result.ok:
            raise StepError("edit", f"editor exited with status {result.returncode}")
        return StepStatus.STOP

    def _check_source_tree(self) -> StepStatus:
        if not (self.workdir / SOURCE_MARKER).is_file():
            raise EnvironmentCheckError(
                f"Doesn't look like a perl source directory (no {SOURCE_MARKER} in {self.workdir})"
            )
        return StepStatus.CONTINUE

    def _verify_prefix(self) -> StepStatus:
        parent = Path(self.prefix).parent
        if not os.access(parent, os.W_OK):
            raise EnvironmentCheckError(f"{self.prefix} does not appear to be writable")
        self._console.info(f"Installing into {self.prefix}")
        return StepStatus.CONTINUE

    def _clean(self) -> StepStatus:
        if self._is_git:
            self._console.info("Running 'git clean -dxf'")
            repository = GitRepository(self.workdir, runner=self._runner)
            try:
                result = repository.clean()
            except OSError as exc:
                raise StepError("clean", f"cannot run git: {exc.strerror or exc}") from exc
            self._check(result, "clean", "git clean")
        elif (self.workdir / "Makefile").is_file():
            self._make("clean", ["distclean"])
        return StepStatus.CONTINUE

    def _configure(self) -> StepStatus:
        program = self.workdir / CONFIGURE_PROGRAM
        if not (program.is_file() and os.access(program, os.X_OK)):
            raise EnvironmentCheckError("Executable Configure program not found")

        self._cache.restore(enabled=self._options.cache)
        args = configure_args(self._options, self.prefix)
        self._execute("configure", [f"./{CONFIGURE_PROGRAM}", *args], label="Configure")
        self._cache.save()
        return StepStatus.CONTINUE

    def _test(self) -> StepStatus:
        opts = self._options
        test_jobs = opts.testjobs
        if test_jobs <= 0:
            self._make("test", ["test_prep"], jobs=opts.jobs)
            return StepStatus.CONTINUE

        env: Dict[str, str] = {}
        if test_jobs > 1:
            env["TEST_JOBS"] = str(test_jobs)
        target = "test_porting" if opts.porting else "test_harness"
        self._console.info(f"Running '{target}' with {test_jobs} test jobs")
        self._make("test", [target], jobs=opts.jobs, env=env)
        return StepStatus.CONTINUE

    def _install(self) -> StepStatus:
        self._make("install", ["install"])
        return StepStatus.CONTINUE

    # --- Helpers ---

    def _make(
        self,
        step: str,
        targets: Sequence[str],
        *,
        jobs: int | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        command = ["make"]
        if jobs is not None:
            command.extend(["-j", str(jobs)])
        command.extend(targets)
        self._execute(step, command, label=" ".join(["make", *targets]), env=env)

    def _execute(
        self,
        step: str,
        command: Sequence[str],
        *,
        label: str,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._console.info(f"Running '{self._runner.format_command(command)}'")
        result = self._spawn(step, command, cwd=self.workdir, env=env or None, note=step)
        self._check(result, step, label)

    def _spawn(
        self,
        step: str,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        note: str | None = None,
    ) -> CommandResult:
        try:
            return self._runner.run(command, cwd=cwd, env=env, note=note)
        except OSError as exc:
            raise StepError(step, f"cannot run {command[0]}: {exc.strerror or exc}") from exc

    @staticmethod
    def _check(result: CommandResult, step: str, label: str) -> None:
        if not result.ok:
            raise StepError(step, f"{label} failed with exit code {result.returncode}")
