"""
Contact API router.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, File, Query, Request, UploadFile, status

from contactbook.config import Settings
from contactbook.contacts.schemas import (
    BulkImportResponse,
    ContactDetailResponse,
    ContactIn,
    ContactListResponse,
    ContactMutationResponse,
    MessageResponse,
    SpreadsheetImportResponse,
)
from contactbook.contacts.service import ContactService
from contactbook.contacts.spreadsheet import stored_upload
from contactbook.shared.database import StoreConnection, get_store_connection
from contactbook.shared.exceptions import ValidationError
from contactbook.shared.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/contacts", tags=["contacts"])


def get_app_settings(request: Request) -> Settings:
    """Dependency for the settings the application was created with."""
    return request.app.state.settings


def get_contact_service(
    connection: Annotated[StoreConnection, Depends(get_store_connection)],
) -> ContactService:
    """Dependency for contact service."""
    return ContactService(connection=connection)


@router.get(
    "",
    response_model=ContactListResponse,
    summary="List contacts",
    description="Paginated contacts, most recently updated first.",
)
@router.get("/", response_model=ContactListResponse, include_in_schema=False)
async def list_contacts(
    service: Annotated[ContactService, Depends(get_contact_service)],
    settings: Annotated[Settings, Depends(get_app_settings)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int | None, Query(ge=-1, description="Page size; -1 returns every row")] = None,
    search: Annotated[str, Query(description="Substring of name, notes or a method value")] = "",
    bookmarked: Annotated[bool, Query(description="Only bookmarked contacts")] = False,
) -> ContactListResponse:
    """List contacts.

    Args:
        service: Contact service.
        settings: Application settings (default page size).
        page: Page number (1-indexed).
        limit: Page size; 0 or missing uses the default, -1 disables paging.
        search: Substring of name, notes or any method value.
        bookmarked: Restrict to bookmarked contacts.
    """
    result = await service.list_contacts(
        page=page,
        limit=limit or settings.default_page_limit,
        search=search,
        bookmarked_only=bookmarked,
    )
    return ContactListResponse(data=result.items, pagination=result.pagination)


@router.get(
    "/{contact_id}",
    response_model=ContactDetailResponse,
    summary="Get contact details",
)
async def get_contact(
    contact_id: str,
    service: Annotated[ContactService, Depends(get_contact_service)],
) -> ContactDetailResponse:
    contact = await service.get_contact(contact_id)
    return ContactDetailResponse(data=contact)


@router.post(
    "",
    response_model=ContactMutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create contact",
)
@router.post(
    "/",
    response_model=ContactMutationResponse,
    status_code=status.HTTP_201_CREATED,
    include_in_schema=False,
)
async def create_contact(
    data: ContactIn,
    service: Annotated[ContactService, Depends(get_contact_service)],
) -> ContactMutationResponse:
    ref = await service.create_contact(data)
    return ContactMutationResponse(message="Contact created", data=ref)


@router.put(
    "/{contact_id}",
    response_model=ContactMutationResponse,
    summary="Update contact",
    description="Replaces every field and the whole method set of the contact.",
)
async def update_contact(
    contact_id: str,
    data: ContactIn,
    service: Annotated[ContactService, Depends(get_contact_service)],
) -> ContactMutationResponse:
    ref = await service.update_contact(contact_id, data)
    return ContactMutationResponse(message="Contact updated", data=ref)


@router.delete(
    "/{contact_id}",
    response_model=MessageResponse,
    summary="Delete contact",
)
async def delete_contact(
    contact_id: str,
    service: Annotated[ContactService, Depends(get_contact_service)],
) -> MessageResponse:
    name = await service.delete_contact(contact_id)
    return MessageResponse(message=f"Contact {name} deleted")


@router.post(
    "/import",
    response_model=BulkImportResponse,
    summary="Bulk import contacts",
    description="Rows without a name or failing to insert are reported; valid rows are kept.",
)
async def import_contacts(
    service: Annotated[ContactService, Depends(get_contact_service)],
    payload: Annotated[Any, Body(description="{\"contacts\": [...]} or a bare list")] = None,
) -> BulkImportResponse:
    rows = payload.get("contacts") if isinstance(payload, dict) else payload
    result = await service.import_contacts(rows)
    return BulkImportResponse(message="Bulk import completed", data=result)


@router.post(
    "/import/excel",
    response_model=SpreadsheetImportResponse,
    summary="Import contacts from a spreadsheet",
    description="First sheet only. Any row with an empty name aborts the whole import.",
)
async def import_spreadsheet(
    service: Annotated[ContactService, Depends(get_contact_service)],
    settings: Annotated[Settings, Depends(get_app_settings)],
    file: Annotated[UploadFile | None, File(description="Spreadsheet (.xlsx, .xls or .csv)")] = None,
) -> SpreadsheetImportResponse:
    """Import contacts from an uploaded spreadsheet.

    The upload is stored in a temporary file that is removed once the
    import finishes, whether it succeeded or not.
    """
    if file is None:
        raise ValidationError("No file uploaded")

    logger.info(
        "Spreadsheet import started",
        extra={"upload_filename": file.filename, "content_type": file.content_type},
    )

    async with stored_upload(file, settings.upload_dir) as path:
        result = await service.import_spreadsheet(path)

    return SpreadsheetImportResponse(message="Spreadsheet imported", data=result)
