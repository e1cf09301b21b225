"""Argument list for the Perl ``Configure`` script."""
from __future__ import annotations

from typing import List

from .options import ResolvedOptions

BASE_ARGS = (
    "-des",
    "-Dusedevel",
    "-Dcc=ccache gcc",
    "-Dcf_by=grindperl",
)
NO_MAN_ARGS = ("-Dman1dir=none", "-Dman3dir=none")


def configure_args(options: ResolvedOptions, prefix: str) -> List[str]:
    args: List[str] = list(BASE_ARGS)
    if options.threads:
        args.append("-Dusethreads")
    if options.debugging:
        args.append("-DDEBUGGING")
    if options.cache:
        args.append("-r")
    if not options.man:
        args.extend(NO_MAN_ARGS)
    args.extend(f"-D{key}={value}" for key, value in options.defines.items())
    args.extend(f"-U{name}" for name in options.undefines)
    args.append(f"-Dprefix={prefix}")
    return args
