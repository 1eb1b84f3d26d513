"""Error kinds and exceptions for allure-watcher."""
from __future__ import annotations
from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .core import Status


class ErrorKind(str, Enum):
    """Classification of a test failure, decided where the payload is decoded."""
    ASSERTION = "assertion"
    OTHER = "other"
    PENDING = "pending"

    @classmethod
    def from_type_name(cls, type_name: Optional[str]) -> "ErrorKind":
        """Map a runner error type name onto a kind.

        Examples
        --------
        >>> ErrorKind.from_type_name("AssertionError")
        <ErrorKind.ASSERTION: 'assertion'>
        >>> ErrorKind.from_type_name("TypeError")
        <ErrorKind.OTHER: 'other'>
        """
        return cls.ASSERTION if type_name == "AssertionError" else cls.OTHER

    @property
    def status(self) -> "Status":
        from .core import Status

        if self is ErrorKind.ASSERTION:
            return Status.FAILED
        if self is ErrorKind.PENDING:
            return Status.PENDING
        return Status.BROKEN


class ReporterError(Exception):
    """Base error for report-state misuse."""


class StepAlreadyClosedError(ReporterError):
    """Raised when a closed step or test would receive a second status."""


class NoCurrentTestError(ReporterError):
    """Raised when an operation needs a current test and there is none."""
