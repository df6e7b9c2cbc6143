"""Exceptions raised while reading Maxent models and projecting them."""

from typing import Iterable, Optional


class MaxentProjectError(Exception):
    """Base class for all errors raised by maxent_project."""


class FormatError(MaxentProjectError, ValueError):
    """The lambdas text does not match the expected line grammar."""

    def __init__(self, message: str, line_no: Optional[int] = None):
        self.line_no = line_no
        if line_no is not None:
            message = f"line {line_no}: {message}"
        super().__init__(message)


class DomainError(MaxentProjectError, ValueError):
    """A predictor table is missing variables referenced by the model."""

    def __init__(self, missing: Iterable[str]):
        self.missing = list(missing)
        super().__init__(
            f"Predictor table is missing variables used by the model: {self.missing}"
        )
