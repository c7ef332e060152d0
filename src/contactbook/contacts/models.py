"""
SQLAlchemy models for contacts and their contact methods.
"""

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TypeDecorator,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from contactbook.shared.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_contact_id() -> str:
    return str(uuid4())


class UTCDateTime(TypeDecorator):
    """Timestamp stored in UTC and always read back timezone-aware.

    SQLite keeps no offset, so naive values coming out of the store are
    tagged as UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


class Contact(Base):
    """A person in the address book."""

    __tablename__ = "contacts"
    __table_args__ = (
        Index("idx_contacts_name", "name"),
        Index("idx_contacts_bookmarked", "bookmarked"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=new_contact_id,
    )
    name: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    notes: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
    )
    bookmarked: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utcnow,
    )

    # Relationships
    methods: Mapped[list["ContactMethod"]] = relationship(
        "ContactMethod",
        back_populates="contact",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Contact(id={self.id}, name={self.name}, bookmarked={self.bookmarked})>"


class ContactMethod(Base):
    """One way of reaching a contact: a free-text type label and a value."""

    __tablename__ = "contact_methods"
    __table_args__ = (
        Index("idx_methods_contact_id", "contact_id"),
        Index("idx_methods_type", "type"),
    )

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    contact_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("contacts.id", ondelete="CASCADE"),
        nullable=False,
    )
    type: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    value: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    contact: Mapped[Contact] = relationship(
        "Contact",
        back_populates="methods",
    )

    def __repr__(self) -> str:
        return f"<ContactMethod(contact_id={self.contact_id}, type={self.type})>"


contacts_table = Contact.__table__
contact_methods_table = ContactMethod.__table__
