"""
Contact repository: parameterized statements over the contacts and
contact_methods tables.
"""

from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import ColumnElement, delete, func, insert, or_, select, update
from sqlalchemy.engine import RowMapping

from contactbook.contacts.models import (
    Contact,
    ContactMethod,
    contact_methods_table,
    contacts_table,
)
from contactbook.contacts.schemas import ContactMethodIn
from contactbook.shared.database import ExecutionResult, StoreConnection

CONTACT_COLUMNS = (
    Contact.id,
    Contact.name,
    Contact.notes,
    Contact.bookmarked,
    Contact.created_at,
    Contact.updated_at,
)


def contact_filters(search: str, bookmarked_only: bool) -> list[ColumnElement[bool]]:
    """Build the WHERE predicate shared by the page and count queries."""
    conditions: list[ColumnElement[bool]] = []
    if search:
        method_match = (
            select(ContactMethod.id)
            .where(
                ContactMethod.contact_id == Contact.id,
                ContactMethod.value.icontains(search, autoescape=True),
            )
            .exists()
        )
        conditions.append(
            or_(
                Contact.name.icontains(search, autoescape=True),
                Contact.notes.icontains(search, autoescape=True),
                method_match,
            )
        )
    if bookmarked_only:
        conditions.append(Contact.bookmarked.is_(True))
    return conditions


class ContactRepository:
    """Repository for contact database operations."""

    def __init__(self, connection: StoreConnection) -> None:
        """Initialize repository with a store connection.

        Args:
            connection: Store connection used for every statement.
        """
        self._conn = connection

    async def get_by_id(self, contact_id: str) -> RowMapping | None:
        stmt = select(*CONTACT_COLUMNS).where(Contact.id == contact_id)
        return await self._conn.query_one(stmt)

    async def list_page(
        self,
        *,
        search: str = "",
        bookmarked_only: bool = False,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[RowMapping]:
        """Get contacts matching the filter, most recently updated first.

        Args:
            search: Case-insensitive substring matched against name, notes
                and method values.
            bookmarked_only: Restrict to bookmarked contacts.
            limit: Page size, or None for every matching row.
            offset: Rows to skip.
        """
        stmt = (
            select(*CONTACT_COLUMNS)
            .where(*contact_filters(search, bookmarked_only))
            .order_by(Contact.updated_at.desc(), Contact.id)
        )
        if limit is not None:
            stmt = stmt.limit(limit).offset(offset)
        return await self._conn.query_all(stmt)

    async def count(self, *, search: str = "", bookmarked_only: bool = False) -> int:
        stmt = (
            select(func.count().label("total"))
            .select_from(Contact)
            .where(*contact_filters(search, bookmarked_only))
        )
        row = await self._conn.query_one(stmt)
        return int(row["total"]) if row else 0

    async def count_all(self) -> int:
        return await self.count()

    async def get_methods(self, contact_id: str) -> list[RowMapping]:
        """Get one contact's methods ordered by type."""
        stmt = (
            select(ContactMethod.type, ContactMethod.value)
            .where(ContactMethod.contact_id == contact_id)
            .order_by(ContactMethod.type, ContactMethod.id)
        )
        return await self._conn.query_all(stmt)

    async def get_methods_for(self, contact_ids: Sequence[str]) -> dict[str, list[RowMapping]]:
        """Get the methods of several contacts, grouped by contact id.

        Every requested id is present in the result, with an empty list for
        contacts that have no methods.
        """
        grouped: dict[str, list[RowMapping]] = {cid: [] for cid in contact_ids}
        if not contact_ids:
            return grouped

        stmt = (
            select(ContactMethod.contact_id, ContactMethod.type, ContactMethod.value)
            .where(ContactMethod.contact_id.in_(list(contact_ids)))
            .order_by(ContactMethod.id)
        )
        for row in await self._conn.query_all(stmt):
            grouped[row["contact_id"]].append(row)
        return grouped

    async def insert(
        self,
        *,
        contact_id: str,
        name: str,
        notes: str,
        bookmarked: bool,
        created_at: datetime,
        updated_at: datetime,
    ) -> ExecutionResult:
        stmt = insert(contacts_table).values(
            id=contact_id,
            name=name,
            notes=notes,
            bookmarked=bookmarked,
            created_at=created_at,
            updated_at=updated_at,
        )
        return await self._conn.execute(stmt)

    async def insert_methods(
        self,
        contact_id: str,
        methods: Sequence[ContactMethodIn],
    ) -> int:
        """Insert methods in a single multi-row statement.

        Returns:
            Number of rows written.
        """
        if not methods:
            return 0
        rows = [
            {"contact_id": contact_id, "type": m.type, "value": m.value}
            for m in methods
        ]
        await self._conn.execute(insert(contact_methods_table), rows)
        return len(rows)

    async def update(
        self,
        contact_id: str,
        *,
        name: str,
        notes: str,
        bookmarked: bool,
        updated_at: datetime,
    ) -> ExecutionResult:
        stmt = (
            update(contacts_table)
            .where(contacts_table.c.id == contact_id)
            .values(name=name, notes=notes, bookmarked=bookmarked, updated_at=updated_at)
        )
        return await self._conn.execute(stmt)

    async def delete_methods(self, contact_id: str) -> ExecutionResult:
        stmt = delete(contact_methods_table).where(
            contact_methods_table.c.contact_id == contact_id
        )
        return await self._conn.execute(stmt)

    async def delete(self, contact_id: str) -> ExecutionResult:
        stmt = delete(contacts_table).where(contacts_table.c.id == contact_id)
        return await self._conn.execute(stmt)
