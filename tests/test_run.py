from __future__ import annotations

from pathlib import Path
import tempfile
import unittest

from core.command_runner import CommandResult, CommandRunner
from grindperl.context import Console, Environment
from grindperl.options import ResolvedOptions
from grindperl.run import RunOrchestrator, RunStatus


class FakeBuildRunner(CommandRunner):
    """Records commands; ``./Configure`` writes config.sh like the real script."""

    def __init__(self, *, failures: dict[str, int] | None = None, missing: set[str] | None = None) -> None:
        self.history: list[dict] = []
        self.failures = failures or {}
        self.missing = missing or set()

    def run(self, command, *, cwd=None, env=None, note=None):  # type: ignore[override]
        cmd_list = list(command)
        self.history.append({"command": cmd_list, "cwd": cwd, "env": env, "note": note})
        if cmd_list[0] in self.missing:
            raise FileNotFoundError(2, "No such file or directory", cmd_list[0])
        returncode = self.failures.get(" ".join(cmd_list), 0)
        if cmd_list[0] == "./Configure" and returncode == 0 and cwd is not None:
            (Path(cwd) / "config.sh").write_text("# generated\n")
            (Path(cwd) / "Policy.sh").write_text("# policy\n")
        return CommandResult(command=cmd_list, returncode=returncode)

    @property
    def commands(self) -> list[list[str]]:
        return [entry["command"] for entry in self.history]


class RunOrchestratorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        root = Path(self.temp_dir.name)
        self.workdir = root / "perl"
        self.workdir.mkdir()
        (self.workdir / "perl.c").write_text("/* perl */\n")
        configure = self.workdir / "Configure"
        configure.write_text("#!/bin/sh\n")
        configure.chmod(0o755)
        self.install_root = root / "installs"
        self.install_root.mkdir()
        self.environment = Environment(
            workdir=self.workdir,
            config_dir=root / "config",
            cache_dir=root / "cache",
            env={"EDITOR": "vim -f"},
            clock=lambda: 1700000000,
        )
        self.runner = FakeBuildRunner()

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def _run(self, **overrides):
        overrides.setdefault("install_root", str(self.install_root))
        options = ResolvedOptions(**overrides)
        orchestrator = RunOrchestrator(
            options=options,
            environment=self.environment,
            runner=self.runner,
            console=Console(level="none"),
        )
        return orchestrator, orchestrator.run()

    def test_full_sequence(self) -> None:
        orchestrator, report = self._run(install=True)
        self.assertEqual(report.status, RunStatus.DONE)
        self.assertEqual(report.completed, ["check-source-tree", "verify-prefix", "clean", "configure", "test", "install"])
        prefix = f"{self.install_root}/perl-1700000000"
        self.assertEqual(orchestrator.prefix, prefix)
        self.assertEqual(
            self.runner.commands,
            [
                ["./Configure", "-des", "-Dusedevel", "-Dcc=ccache gcc", "-Dcf_by=grindperl", "-Dusethreads",
                 "-DDEBUGGING", "-Dman1dir=none", "-Dman3dir=none", f"-Dprefix={prefix}"],
                ["make", "-j", "9", "test_harness"],
                ["make", "install"],
            ],
        )
        self.assertEqual(self.runner.history[1]["env"], {"TEST_JOBS": "9"})
        self.assertEqual(self.runner.history[0]["cwd"], self.workdir)

    def test_missing_source_marker_fails_first(self) -> None:
        (self.workdir / "perl.c").unlink()
        _, report = self._run(install=True)
        self.assertEqual(report.status, RunStatus.FAILED)
        self.assertEqual(report.failed_step, "check-source-tree")
        self.assertIn("perl.c", report.message)
        self.assertEqual(report.completed, [])
        self.assertEqual(self.runner.commands, [])

    def test_unwritable_prefix_parent_fails_before_clean(self) -> None:
        (self.workdir / "Makefile").write_text("all:\n")
        _, report = self._run(prefix="/nonexistent-grindperl-root/sub/perl")
        self.assertEqual(report.failed_step, "verify-prefix")
        self.assertIn("does not appear to be writable", report.message)
        self.assertEqual(self.runner.commands, [])

    def test_config_only_stops_after_configure(self) -> None:
        _, report = self._run(config=True, install=True)
        self.assertTrue(report.ok)
        self.assertEqual(report.status, RunStatus.STOPPED)
        self.assertEqual(report.completed[-2:], ["configure", "config-only"])
        self.assertEqual(len(self.runner.commands), 1)
        self.assertEqual(self.runner.commands[0][0], "./Configure")

    def test_zero_test_jobs_prepares_tests_only(self) -> None:
        self._run(testjobs=0, jobs=4)
        self.assertEqual(self.runner.commands[-1], ["make", "-j", "4", "test_prep"])
        self.assertIsNone(self.runner.history[-1]["env"])

    def test_single_test_job_does_not_export_test_jobs(self) -> None:
        self._run(testjobs=1, jobs=2)
        self.assertEqual(self.runner.commands[-1], ["make", "-j", "2", "test_harness"])
        self.assertIsNone(self.runner.history[-1]["env"])

    def test_parallel_porting_tests(self) -> None:
        self._run(testjobs=5, porting=True)
        self.assertEqual(self.runner.commands[-1], ["make", "-j", "9", "test_porting"])
        self.assertEqual(self.runner.history[-1]["env"], {"TEST_JOBS": "5"})

    def test_configure_failure_is_fatal(self) -> None:
        self.runner = FakeBuildRunner()
        prefix = str(self.install_root / "fixed")
        configure_line = " ".join(
            ["./Configure", "-des", "-Dusedevel", "-Dcc=ccache gcc", "-Dcf_by=grindperl", "-Dusethreads",
             "-DDEBUGGING", "-Dman1dir=none", "-Dman3dir=none", f"-Dprefix={prefix}"]
        )
        self.runner.failures[configure_line] = 1
        _, report = self._run(prefix=prefix)
        self.assertEqual(report.failed_step, "configure")
        self.assertIn("Configure failed", report.message)
        self.assertEqual(len(self.runner.commands), 1)
        self.assertFalse(self.environment.cache_dir.exists())

    def test_configure_saves_cache(self) -> None:
        self._run(config=True)
        self.assertEqual((self.environment.cache_dir / "config.sh").read_text(), "# generated\n")
        self.assertEqual((self.environment.cache_dir / "Policy.sh").read_text(), "# policy\n")

    def test_missing_configure_program(self) -> None:
        (self.workdir / "Configure").chmod(0o644)
        _, report = self._run()
        self.assertEqual(report.failed_step, "configure")
        self.assertIn("Executable Configure program not found", report.message)

    def test_test_failure_is_fatal(self) -> None:
        self.runner.failures["make -j 9 test_harness"] = 2
        _, report = self._run(install=True)
        self.assertEqual(report.failed_step, "test")
        self.assertIn("make test_harness failed with exit code 2", report.message)
        self.assertNotIn(["make", "install"], self.runner.commands)

    def test_install_failure_is_fatal(self) -> None:
        self.runner.failures["make install"] = 1
        _, report = self._run(install=True)
        self.assertEqual(report.failed_step, "install")

    def test_distclean_runs_when_makefile_exists(self) -> None:
        (self.workdir / "Makefile").write_text("all:\n")
        self._run(config=True)
        self.assertEqual(self.runner.commands[0], ["make", "distclean"])

    def test_distclean_failure_is_fatal(self) -> None:
        (self.workdir / "Makefile").write_text("all:\n")
        self.runner.failures["make distclean"] = 2
        _, report = self._run()
        self.assertEqual(report.failed_step, "clean")
        self.assertEqual(self.runner.commands, [["make", "distclean"]])

    def test_git_tree_is_cleaned_with_git(self) -> None:
        (self.workdir / ".git").mkdir()
        self._run(config=True, prefix=str(self.install_root / "blead"))
        self.assertEqual(self.runner.commands[0], ["git", "clean", "-dxf"])
        self.assertEqual(self.runner.history[0]["cwd"], self.workdir.resolve())

    def test_edit_runs_editor_and_skips_everything_else(self) -> None:
        (self.workdir / "perl.c").unlink()
        _, report = self._run(edit=True)
        self.assertEqual(report.status, RunStatus.STOPPED)
        self.assertEqual(report.completed, ["edit"])
        self.assertEqual(self.runner.commands, [["vim", "-f", str(self.environment.config_file)]])
        self.assertTrue(self.environment.config_dir.is_dir())

    def test_edit_failure_is_fatal(self) -> None:
        self.runner.failures[f"vim -f {self.environment.config_file}"] = 1
        _, report = self._run(edit=True)
        self.assertEqual(report.failed_step, "edit")

    def test_missing_make_is_reported_as_step_failure(self) -> None:
        self.runner.missing.add("make")
        _, report = self._run(install=True)
        self.assertEqual(report.status, RunStatus.FAILED)
        self.assertEqual(report.failed_step, "test")
        self.assertEqual(report.message, "cannot run make: No such file or directory")
        self.assertEqual(report.completed, ["check-source-tree", "verify-prefix", "clean", "configure"])

    def test_missing_git_is_reported_as_clean_failure(self) -> None:
        (self.workdir / ".git").mkdir()
        self.runner.missing.add("git")
        _, report = self._run(prefix=str(self.install_root / "blead"))
        self.assertEqual(report.failed_step, "clean")
        self.assertIn("cannot run git", report.message)

    def test_missing_editor_program_fails_edit(self) -> None:
        self.runner.missing.add("vim")
        _, report = self._run(edit=True)
        self.assertEqual(report.failed_step, "edit")
        self.assertEqual(report.message, "cannot run vim: No such file or directory")

    def test_edit_without_editor(self) -> None:
        self.environment = Environment(
            workdir=self.workdir,
            config_dir=self.environment.config_dir,
            cache_dir=self.environment.cache_dir,
            env={},
        )
        _, report = self._run(edit=True)
        self.assertEqual(report.failed_step, "edit")
        self.assertIn("EDITOR", report.message)
        self.assertEqual(self.runner.commands, [])


if __name__ == "__main__":
    unittest.main()
