"""
Contact service for business logic.
"""

import math
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import anyio
from pydantic import ValidationError as SchemaValidationError

from contactbook.contacts.models import new_contact_id, utcnow
from contactbook.contacts.repository import ContactRepository
from contactbook.contacts.schemas import (
    BulkImportResult,
    ContactIn,
    ContactMethodOut,
    ContactOut,
    ContactPage,
    ContactRef,
    Pagination,
    SpreadsheetImportResult,
)
from contactbook.contacts.spreadsheet import SpreadsheetReader
from contactbook.shared.database import StoreConnection
from contactbook.shared.exceptions import NotFoundError, StoreError, ValidationError
from contactbook.shared.logging import get_logger

logger = get_logger(__name__)

# Page size sentinel meaning "every matching row"
UNLIMITED = -1

MAX_REPORTED_IMPORT_ERRORS = 10


def _require_name(name: str | None, *, prefix: str = "") -> str:
    if not name or not name.strip():
        raise ValidationError(f"{prefix}name is required")
    return name


def _to_contact_out(row: Any, methods: Sequence[Any]) -> ContactOut:
    return ContactOut(
        id=row["id"],
        name=row["name"],
        notes=row["notes"] or "",
        bookmarked=bool(row["bookmarked"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        methods=[ContactMethodOut(type=m["type"], value=m["value"]) for m in methods],
    )


class ContactService:
    """Service for contact management operations."""

    def __init__(
        self,
        connection: StoreConnection,
        contact_repository: ContactRepository | None = None,
        spreadsheet_reader: SpreadsheetReader | None = None,
    ) -> None:
        """Initialize contact service.

        Args:
            connection: Store connection for this logical operation.
            contact_repository: Optional contact repository (for DI).
            spreadsheet_reader: Optional spreadsheet reader (for DI).
        """
        self._conn = connection
        self._contact_repo = contact_repository or ContactRepository(connection)
        self._reader = spreadsheet_reader or SpreadsheetReader()

    async def list_contacts(
        self,
        page: int = 1,
        limit: int = 100,
        search: str = "",
        bookmarked_only: bool = False,
    ) -> ContactPage:
        """Get one page of contacts, most recently updated first.

        Args:
            page: Page number (1-indexed).
            limit: Page size, or ``UNLIMITED`` for every matching row.
            search: Case-insensitive substring of name, notes or a method value.
            bookmarked_only: Only bookmarked contacts.

        Returns:
            Contacts with their methods, plus pagination metadata.
        """
        if page < 1:
            raise ValidationError("page must be >= 1")
        if limit != UNLIMITED and limit < 1:
            raise ValidationError(f"limit must be >= 1 or {UNLIMITED}")

        unlimited = limit == UNLIMITED

        rows = await self._contact_repo.list_page(
            search=search,
            bookmarked_only=bookmarked_only,
            limit=None if unlimited else limit,
            offset=0 if unlimited else (page - 1) * limit,
        )
        methods = await self._contact_repo.get_methods_for([row["id"] for row in rows])
        total = await self._contact_repo.count(search=search, bookmarked_only=bookmarked_only)

        if unlimited:
            pages = 1 if total > 0 else 0
        else:
            pages = math.ceil(total / limit)

        return ContactPage(
            items=[_to_contact_out(row, methods[row["id"]]) for row in rows],
            pagination=Pagination(page=page, limit=limit, total=total, pages=pages),
        )

    async def get_contact(self, contact_id: str) -> ContactOut:
        """Get a single contact with its methods ordered by type.

        Raises:
            NotFoundError: If contact not found.
        """
        row = await self._contact_repo.get_by_id(contact_id)
        if row is None:
            raise NotFoundError(f"Contact {contact_id} not found")

        methods = await self._contact_repo.get_methods(contact_id)
        return _to_contact_out(row, methods)

    async def create_contact(self, data: ContactIn) -> ContactRef:
        """Create a contact and its methods in one transaction.

        Method entries missing a type or a value are skipped.

        Raises:
            ValidationError: If the name is missing or blank.
        """
        name = _require_name(data.name)

        async with self._conn.transaction():
            contact_id = await self._insert_contact(data)

        logger.info("Contact created", extra={"contact_id": contact_id, "contact_name": name})
        return ContactRef(id=contact_id, name=name)

    async def update_contact(self, contact_id: str, data: ContactIn) -> ContactRef:
        """Replace a contact's fields and its whole method set.

        Omitting ``methods`` clears every method of the contact.

        Raises:
            ValidationError: If the name is missing or blank.
            NotFoundError: If contact not found.
        """
        name = _require_name(data.name)

        existing = await self._contact_repo.get_by_id(contact_id)
        if existing is None:
            raise NotFoundError(f"Contact {contact_id} not found")

        async with self._conn.transaction():
            await self._contact_repo.update(
                contact_id,
                name=name,
                notes=data.notes or "",
                bookmarked=bool(data.bookmarked),
                updated_at=utcnow(),
            )
            await self._contact_repo.delete_methods(contact_id)
            written = await self._contact_repo.insert_methods(contact_id, data.valid_methods())

        logger.info(
            "Contact updated",
            extra={"contact_id": contact_id, "contact_name": name, "methods": written},
        )
        return ContactRef(id=contact_id, name=name)

    async def delete_contact(self, contact_id: str) -> str:
        """Delete a contact and its methods.

        Returns:
            The deleted contact's name.

        Raises:
            NotFoundError: If contact not found.
        """
        existing = await self._contact_repo.get_by_id(contact_id)
        if existing is None:
            raise NotFoundError(f"Contact {contact_id} not found")

        async with self._conn.transaction():
            await self._contact_repo.delete_methods(contact_id)
            await self._contact_repo.delete(contact_id)

        logger.info(
            "Contact deleted",
            extra={"contact_id": contact_id, "contact_name": existing["name"]},
        )
        return existing["name"]

    async def import_contacts(self, rows: Any) -> BulkImportResult:
        """Import contacts row by row inside one transaction.

        A row without a name, or whose insert fails, is recorded as failed
        and the batch continues; the transaction commits once at the end.

        Args:
            rows: The submitted list of contact-shaped objects.

        Returns:
            Counts and at most the first 10 error messages.

        Raises:
            ValidationError: If rows is not a non-empty list.
        """
        if not isinstance(rows, list) or not rows:
            raise ValidationError("contacts must be a non-empty list")

        success = 0
        errors: list[str] = []

        async with self._conn.transaction():
            for row_number, raw in enumerate(rows, start=1):
                try:
                    data = ContactIn.model_validate(raw)
                except SchemaValidationError as e:
                    errors.append(f"Row {row_number}: {_first_schema_error(e)}")
                    continue

                if not data.name or not data.name.strip():
                    errors.append(f"Row {row_number}: name is required")
                    continue

                try:
                    async with self._conn.savepoint():
                        await self._insert_contact(data)
                except StoreError as e:
                    logger.warning(
                        "Import row failed",
                        extra={"row": row_number, "error": str(e)},
                    )
                    errors.append(f'Row {row_number} "{data.name}": {e}')
                    continue

                success += 1

        result = BulkImportResult(
            total=len(rows),
            success=success,
            failed=len(errors),
            errors=errors[:MAX_REPORTED_IMPORT_ERRORS],
        )
        logger.info(
            "Bulk import completed",
            extra={"total": result.total, "success": result.success, "failed": result.failed},
        )
        return result

    async def import_spreadsheet(self, path: Path) -> SpreadsheetImportResult:
        """Import every row of a spreadsheet, all or nothing.

        Unlike ``import_contacts``, a row with an empty name aborts the whole
        import before anything is written.

        Raises:
            FileFormatError: If the file cannot be read or holds no rows.
            ValidationError: If a row has an empty name.
        """
        contacts = await anyio.to_thread.run_sync(self._reader.parse, path)

        logger.info("Spreadsheet parsed", extra={"rows": len(contacts)})

        async with self._conn.transaction():
            for data in contacts:
                await self._insert_contact(data)

        logger.info("Spreadsheet import completed", extra={"success": len(contacts)})
        return SpreadsheetImportResult(total=len(contacts), success=len(contacts))

    async def _insert_contact(self, data: ContactIn) -> str:
        contact_id = new_contact_id()
        now = utcnow()
        await self._contact_repo.insert(
            contact_id=contact_id,
            name=data.name or "",
            notes=data.notes or "",
            bookmarked=bool(data.bookmarked),
            created_at=now,
            updated_at=now,
        )
        await self._contact_repo.insert_methods(contact_id, data.valid_methods())
        return contact_id


def _first_schema_error(exc: SchemaValidationError) -> str:
    error = exc.errors()[0]
    field = ".".join(str(loc) for loc in error["loc"]) or "row"
    return f"{field}: {error['msg']}"
