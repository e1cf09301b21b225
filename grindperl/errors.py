"""Exception types raised by grindperl."""
from __future__ import annotations


class GrindError(RuntimeError):
    """Base class for fatal grindperl errors."""


class ConfigurationError(GrindError):
    """Raised when options or the config file cannot be resolved."""


class EnvironmentCheckError(GrindError):
    """Raised when the working environment is unfit for a run."""


class StepError(GrindError):
    """Raised when a run step fails."""

    def __init__(self, step: str, message: str) -> None:
        super().__init__(f"{step}: {message}")
        self.step = step
        self.message = message
