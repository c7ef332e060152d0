"""
Spreadsheet parsing for contact imports.

Only the first sheet is read. Columns are matched by header name: one name
column, optional notes and bookmark columns, and any number of recognized
method columns whose header becomes the method type.
"""

import os
import re
import tempfile
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import pandas as pd
from fastapi import UploadFile

from contactbook.contacts.schemas import ContactIn, ContactMethodIn
from contactbook.shared.exceptions import FileFormatError, ValidationError
from contactbook.shared.logging import get_logger

logger = get_logger(__name__)

UPLOAD_CHUNK_SIZE = 1024 * 1024

# Semicolon, comma, full-width comma, full-width semicolon
VALUE_SEPARATORS = re.compile(r"[;,，；]")

# Header aliases for the scalar fields
HEADER_ALIASES: dict[str, str] = {
    "姓名": "name",
    "name": "name",
    "full_name": "name",
    "contact_name": "name",
    "备注": "notes",
    "notes": "notes",
    "note": "notes",
    "是否收藏": "bookmarked",
    "bookmarked": "bookmarked",
    "bookmark": "bookmarked",
    "favorite": "bookmarked",
}

# Columns whose cells hold contact methods
METHOD_HEADERS = {
    "手机号码",
    "邮箱地址",
    "联系地址",
    "社交账号",
    "phone",
    "email",
    "address",
    "social",
}

TRUTHY_VALUES = {"是", "true", "1", "yes", "y", "t"}


def normalize_header(header: Any) -> str:
    """Normalize a header cell for matching.

    Args:
        header: Raw header value.

    Returns:
        Lower-cased header with spaces and hyphens turned into underscores.
    """
    h = str(header).strip().lower()
    h = h.replace(" ", "_").replace("-", "_")
    return re.sub(r"__+", "_", h)


def parse_boolean(value: str | None) -> bool:
    if not value:
        return False
    return value.strip().lower() in TRUTHY_VALUES


def split_values(cell: str | None) -> list[str]:
    """Split a method cell into its individual values."""
    if not cell:
        return []
    return [piece.strip() for piece in VALUE_SEPARATORS.split(cell) if piece.strip()]


def excel_engine(path: Path) -> str:
    """Pick the pandas reader engine for a workbook file."""
    if path.suffix.lower() == ".xls":
        return "xlrd"
    return "openpyxl"


class SpreadsheetReader:
    """Reads contact candidates from the first sheet of a workbook or a CSV."""

    def read_frame(self, path: Path) -> pd.DataFrame:
        """Load the first sheet as strings, empty cells as ''.

        Raises:
            FileFormatError: If the file is empty or cannot be parsed.
        """
        if not path.exists() or path.stat().st_size == 0:
            raise FileFormatError("Uploaded file is empty")

        # Cell texts such as "NA" or "null" are data, not missing values.
        # Blank lines are kept so that row numbers match the sheet.
        try:
            if path.suffix.lower() == ".csv":
                frame = pd.read_csv(
                    path,
                    dtype=str,
                    keep_default_na=False,
                    skip_blank_lines=False,
                    encoding="utf-8-sig",
                )
            else:
                frame = pd.read_excel(
                    path,
                    sheet_name=0,
                    dtype=str,
                    keep_default_na=False,
                    na_filter=False,
                    engine=excel_engine(path),
                )
        except Exception as e:
            logger.warning(
                "Spreadsheet could not be read",
                extra={"upload_path": str(path), "error": str(e)},
            )
            raise FileFormatError(f"Unreadable spreadsheet: {e}") from e

        return frame.fillna("")

    def parse(self, path: Path) -> list[ContactIn]:
        """Parse a spreadsheet into contacts.

        Rows where every cell is blank are skipped.

        Args:
            path: Spreadsheet file on disk.

        Returns:
            One contact per data row.

        Raises:
            FileFormatError: Unreadable file, no name column or no data rows.
            ValidationError: A data row has an empty name; the message names
                the spreadsheet row (header is row 1).
        """
        frame = self.read_frame(path)

        field_columns: dict[str, str] = {}
        method_columns: list[str] = []
        for column in frame.columns:
            normalized = normalize_header(column)
            if normalized in METHOD_HEADERS:
                method_columns.append(column)
            elif normalized in HEADER_ALIASES:
                field_columns.setdefault(HEADER_ALIASES[normalized], column)

        if "name" not in field_columns:
            raise FileFormatError("Spreadsheet has no name column")

        logger.debug(
            "Spreadsheet headers parsed",
            extra={
                "original_headers": [str(c) for c in frame.columns],
                "method_columns": [str(c) for c in method_columns],
            },
        )

        contacts: list[ContactIn] = []
        for index, record in enumerate(frame.to_dict("records")):
            cells = {column: str(value).strip() for column, value in record.items()}
            if not any(cells.values()):
                continue

            row_number = index + 2
            name = cells.get(field_columns["name"], "")
            if not name:
                raise ValidationError(f"Row {row_number}: name is required")

            methods = [
                ContactMethodIn(type=str(column).strip(), value=value)
                for column in method_columns
                for value in split_values(cells.get(column))
            ]
            contacts.append(
                ContactIn(
                    name=name,
                    notes=cells.get(field_columns.get("notes", ""), ""),
                    bookmarked=parse_boolean(cells.get(field_columns.get("bookmarked", ""))),
                    methods=methods,
                )
            )

        if not contacts:
            raise FileFormatError("Spreadsheet contains no data rows")

        return contacts


@asynccontextmanager
async def stored_upload(upload: UploadFile, directory: str | Path) -> AsyncIterator[Path]:
    """Write an upload to a temporary file and delete it on exit.

    The file is removed on every exit path, including errors raised while
    the caller processes it.
    """
    target_dir = Path(directory)
    target_dir.mkdir(parents=True, exist_ok=True)
    suffix = Path(upload.filename or "").suffix.lower()

    fd, name = tempfile.mkstemp(prefix="contacts-", suffix=suffix, dir=target_dir)
    path = Path(name)
    try:
        with os.fdopen(fd, "wb") as fh:
            while True:
                chunk = await upload.read(UPLOAD_CHUNK_SIZE)
                if not chunk:
                    break
                fh.write(chunk)
        yield path
    finally:
        path.unlink(missing_ok=True)
        logger.debug("Temporary upload removed", extra={"upload_path": str(path)})
