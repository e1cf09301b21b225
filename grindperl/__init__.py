"""grindperl: clean, configure, test and install a Perl source tree."""

from .cli import main

__all__ = ["main"]
