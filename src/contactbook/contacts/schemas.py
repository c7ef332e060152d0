"""
Pydantic schemas for contact management.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ContactMethodIn(BaseModel):
    """A contact method as submitted by a client.

    Both fields are optional here; entries missing either one are skipped
    when the contact is written.
    """

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    type: str | None = Field(default=None, description="Free-text category, e.g. phone or email")
    value: str | None = Field(default=None, description="Method content")

    @property
    def is_complete(self) -> bool:
        return bool(self.type) and bool(self.value)


class ContactIn(BaseModel):
    """Body of create/update requests and of each bulk import row.

    ``name`` is validated by the service so that a missing name is reported
    as a 400 rather than a request-shape error.
    """

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    name: str | None = Field(default=None, description="Display name (required)")
    notes: str | None = Field(default=None, description="Free-form notes")
    bookmarked: bool | None = Field(default=None, description="Bookmark flag")
    methods: list[ContactMethodIn] | None = Field(
        default=None,
        description="Full method set; omitted means no methods",
    )

    def valid_methods(self) -> list[ContactMethodIn]:
        return [m for m in self.methods or [] if m.is_complete]


class ContactMethodOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    type: str
    value: str


class ContactOut(BaseModel):
    """Contact as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    notes: str
    bookmarked: bool
    created_at: datetime
    updated_at: datetime
    methods: list[ContactMethodOut] = Field(default_factory=list)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class ContactPage(BaseModel):
    """One page of contacts plus pagination metadata."""

    items: list[ContactOut]
    pagination: Pagination


class ContactRef(BaseModel):
    id: str
    name: str


class BulkImportResult(BaseModel):
    """Outcome of a structured bulk import."""

    total: int = Field(..., description="Rows submitted")
    success: int = Field(..., description="Rows imported")
    failed: int = Field(..., description="Rows rejected")
    errors: list[str] = Field(
        default_factory=list,
        description="First error messages (at most 10)",
    )


class SpreadsheetImportResult(BaseModel):
    total: int
    success: int


# Response envelopes


class ContactListResponse(BaseModel):
    success: bool = True
    data: list[ContactOut]
    pagination: Pagination
    timestamp: datetime = Field(default_factory=_now)


class ContactDetailResponse(BaseModel):
    success: bool = True
    data: ContactOut


class ContactMutationResponse(BaseModel):
    success: bool = True
    message: str
    data: ContactRef


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class BulkImportResponse(BaseModel):
    success: bool = True
    message: str
    data: BulkImportResult


class SpreadsheetImportResponse(BaseModel):
    success: bool = True
    message: str
    data: SpreadsheetImportResult


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    message: str | None = None
