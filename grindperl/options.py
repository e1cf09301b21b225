"""Option resolution: config-file tokens merged with command-line arguments."""
from __future__ import annotations

from argparse import ArgumentParser, BooleanOptionalAction, Namespace
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, List, Mapping, NoReturn, Sequence, Tuple
from .errors import ConfigurationError

DEFAULT_JOBS = 9
DEFAULT_TEST_JOBS = 9
DEFAULT_INSTALL_ROOT = "/tmp"
LOG_LEVELS = ("none", "error", "info", "debug")


@dataclass(frozen=True)
class ResolvedOptions:
    jobs: int = DEFAULT_JOBS
    testjobs: int = DEFAULT_TEST_JOBS
    output: Path | None = None
    prefix: str | None = None
    install_root: str = DEFAULT_INSTALL_ROOT
    debugging: bool = True
    threads: bool = True
    porting: bool = False
    install: bool = False
    config: bool = False
    cache: bool = False
    man: bool = False
    edit: bool = False
    verbose: bool = False
    dry_run: bool = False
    log: str | None = None
    defines: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    undefines: Tuple[str, ...] = ()

    @property
    def log_level(self) -> str:
        """Explicit --log wins, otherwise --verbose maps to debug."""
        if self.log:
            return self.log
        return "debug" if self.verbose else "error"


class _OptionParser(ArgumentParser):
    """ArgumentParser that reports problems as :class:`ConfigurationError`."""

    def error(self, message: str) -> NoReturn:
        raise ConfigurationError(message)


def _parse_define(value: str) -> Tuple[str, str]:
    key, sep, definition = value.partition("=")
    key = key.strip()
    if not sep or not key:
        raise ConfigurationError(f"Define '{value}' must have the form key=value")
    return key, definition


def build_parser() -> ArgumentParser:
    parser = _OptionParser(
        prog="grindperl",
        description="Clean, configure, test and install a Perl source tree",
        allow_abbrev=False,
    )
    parser.add_argument("-j", "--jobs", type=int, default=DEFAULT_JOBS, help="make parallelism")
    parser.add_argument("-t", "--testjobs", type=int, default=DEFAULT_TEST_JOBS, help="TEST_JOBS for the test harness; 0 only prepares tests")
    parser.add_argument("-o", "--output", type=Path, help="Redirect command output to this file")
    parser.add_argument("--prefix", help="Override the installation prefix")
    parser.add_argument("--install_root", "--install-root", dest="install_root", default=DEFAULT_INSTALL_ROOT, help="Directory holding derived prefixes")
    parser.add_argument("--debugging", action=BooleanOptionalAction, default=True, help="Configure with -DDEBUGGING")
    parser.add_argument("--threads", action=BooleanOptionalAction, default=True, help="Configure with -Dusethreads")
    parser.add_argument("-p", "--porting", action=BooleanOptionalAction, default=False, help="Run test_porting instead of test_harness")
    parser.add_argument("--install", action=BooleanOptionalAction, default=False, help="Run 'make install' after testing")
    parser.add_argument("--config", action=BooleanOptionalAction, default=False, help="Stop after Configure")
    parser.add_argument("--cache", action=BooleanOptionalAction, default=False, help="Reuse cached config.sh and Policy.sh")
    parser.add_argument("--man", action=BooleanOptionalAction, default=False, help="Install manual pages")
    parser.add_argument("--edit", action=BooleanOptionalAction, default=False, help="Edit the config file with $EDITOR and exit")
    parser.add_argument("-v", "--verbose", action=BooleanOptionalAction, default=False, help="Enable verbose output (maps to debug)")
    parser.add_argument("--log", choices=LOG_LEVELS, help="Set log level (default: error)")
    parser.add_argument("-n", "--dry-run", action=BooleanOptionalAction, default=False, help="Print commands without executing them")
    parser.add_argument(
        "-D",
        "--define",
        dest="defines",
        action="append",
        default=[],
        type=_parse_define,
        metavar="KEY=VALUE",
        help="Pass -DKEY=VALUE to Configure (repeatable)",
    )
    parser.add_argument(
        "-U",
        "--undefine",
        dest="undefines",
        action="append",
        default=[],
        metavar="NAME",
        help="Pass -UNAME to Configure (repeatable)",
    )
    return parser


def read_config_tokens(path: Path) -> List[str]:
    """Read the config file as argument tokens.

    Every non-blank line is exactly one token, stripped of surrounding
    whitespace, so ``-Doptimize=-O2 -g`` stays a single define. Lines whose
    first non-blank character is ``#`` are comments.
    """
    if not path.exists():
        return []
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigurationError(f"Cannot read config file '{path}': {exc}") from exc

    tokens: List[str] = []
    for line in text.splitlines():
        token = line.strip()
        if token and not token.startswith("#"):
            tokens.append(token)
    return tokens


def _to_options(namespace: Namespace) -> ResolvedOptions:
    defines = {}
    for key, value in namespace.defines:
        defines[key] = value
    return ResolvedOptions(
        jobs=namespace.jobs,
        testjobs=namespace.testjobs,
        output=namespace.output,
        prefix=namespace.prefix,
        install_root=namespace.install_root,
        debugging=namespace.debugging,
        threads=namespace.threads,
        porting=namespace.porting,
        install=namespace.install,
        config=namespace.config,
        cache=namespace.cache,
        man=namespace.man,
        edit=namespace.edit,
        verbose=namespace.verbose,
        dry_run=namespace.dry_run,
        log=namespace.log,
        defines=MappingProxyType(defines),
        undefines=tuple(namespace.undefines),
    )


class OptionResolver:
    """Merges the persisted config file with command-line arguments."""

    def __init__(self, config_file: Path) -> None:
        self._config_file = config_file

    def combined_arguments(self, argv: Iterable[str]) -> List[str]:
        return [*read_config_tokens(self._config_file), *argv]

    def resolve(self, argv: Sequence[str]) -> ResolvedOptions:
        parser = build_parser()
        namespace = parser.parse_args(self.combined_arguments(argv))
        return _to_options(namespace)
