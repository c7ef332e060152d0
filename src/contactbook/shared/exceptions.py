"""
Shared exceptions.

Each error maps to one HTTP status in ``contactbook.main``:
ValidationError/FileFormatError -> 400, NotFoundError -> 404,
StoreError (QueryError, ExecutionError) -> 500.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(eq=False)
class AppError(Exception):
    message: str = "Application error"
    details: Optional[dict[str, Any]] = None

    def __str__(self) -> str:
        return self.message


class NotFoundError(AppError):
    pass


class ValidationError(AppError):
    pass


class FileFormatError(AppError):
    """Uploaded spreadsheet is unreadable, has no usable header or no rows."""


class StoreError(AppError):
    """Base class for failures raised by the data-access layer."""


class QueryError(StoreError):
    """A read statement failed (malformed SQL or store I/O)."""


class ExecutionError(StoreError):
    """A write statement failed, including constraint violations."""
