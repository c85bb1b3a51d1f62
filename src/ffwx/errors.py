"""ffwx exception hierarchy.

Keep this module small and dependency-free: it is imported broadly across the
project and by tests.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from ffwx.context import ContextWindow
    from ffwx.engine import DiffEntry


class FfwxError(Exception):
    """Base exception for all ffwx errors."""


class FfwxConfigError(FfwxError):
    """Raised for invalid user configuration or option values."""


class FfwxIOError(FfwxError):
    """Raised when an input file cannot be read or an output cannot be written."""

    def __init__(self, message: str, *, path: Path | str, role: str) -> None:
        super().__init__(message)
        self.path = Path(path)
        self.role = role


class EncodeError(FfwxError):
    """Raised when a line cannot be represented in the compact format."""


class DecodeError(FfwxError):
    """Raised when a compact ffwx stream is malformed."""

    def __init__(self, message: str, *, record_number: int | None, record: str) -> None:
        if record_number is not None:
            message = f"record {record_number}: {message}"
        super().__init__(message)
        self.record_number = record_number
        self.record = record


class ContextMismatchError(FfwxError):
    """Raised when a script entry no longer matches the file it is applied to."""

    def __init__(
        self,
        message: str,
        *,
        entry: DiffEntry,
        expected: ContextWindow | None = None,
        actual: ContextWindow | None = None,
    ) -> None:
        super().__init__(message)
        self.entry = entry
        self.expected = expected
        self.actual = actual
