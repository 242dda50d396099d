"""Error taxonomy for layout invocations."""

from __future__ import annotations


class LayoutError(Exception):
    """Base class for every error a layout phase can raise."""


class InvalidOptionError(LayoutError, ValueError):
    """An option key is unknown or its value cannot be validated."""


class InvalidGraphError(LayoutError):
    """The graph holds a structural contradiction the pipeline cannot resolve."""


class UnsatisfiableConstraintError(LayoutError):
    """Port order or position constraints do not fit the node's size constraints."""


class ConvergenceWarning(UserWarning):
    """An iterative phase stopped at its iteration bound before converging."""

    def __init__(self, phase: str, message: str, unit: str | None = None) -> None:
        super().__init__(message)
        self.phase = phase
        self.message = message
        self.unit = unit

    def __str__(self) -> str:
        where = f" in {self.unit}" if self.unit else ""
        return f"{self.phase}{where}: {self.message}"
