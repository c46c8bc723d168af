"""Request and response bodies for the session API."""

from typing import Optional

from pydantic import BaseModel, Field, model_validator

from fieldsign.models.document import (
    DocumentField,
    FieldType,
    PageSize,
    RecipientRole,
    SignedDataKind,
)


class CreateSessionRequest(BaseModel):
    title: str = Field(default="", max_length=200)
    file_url: Optional[str] = Field(default=None, description="URL of an existing PDF")
    content: Optional[str] = Field(default=None, description="Plain text to typeset instead")
    probe_pages: bool = Field(
        default=True,
        description="Read page sizes from the PDF instead of waiting for viewer reports",
    )

    @model_validator(mode="after")
    def check_single_source(self) -> "CreateSessionRequest":
        if (self.file_url is None) == (self.content is None):
            raise ValueError("Provide exactly one of 'file_url' or 'content'")
        return self


class SessionSummary(BaseModel):
    session_id: str
    title: str
    total_pages: int
    ready: bool
    field_count: int = 0
    recipient_count: int = 0


class PageReport(BaseModel):
    width: float
    height: float
    total_pages: Optional[int] = Field(
        default=None, description="Starts a fresh geometry table when it differs from the current page count"
    )


class PageReportResponse(BaseModel):
    page_number: int
    ready: bool
    known_pages: list[int]


class ViewportUpdate(BaseModel):
    scale: Optional[float] = Field(default=None, gt=0)
    scroll_offset: Optional[float] = None
    sidebar_open: Optional[bool] = None
    rendered_pages: Optional[dict[int, PageSize]] = None


class RecipientCreate(BaseModel):
    name: str = Field(default="", max_length=200)
    email: str = Field(default="", max_length=200)
    role: RecipientRole = RecipientRole.SIGNER


class PlaceFieldRequest(BaseModel):
    type: FieldType
    client_x: float
    client_y: float
    origin_x: float = 0.0
    origin_y: float = 0.0
    scroll_offset: Optional[float] = None
    scale: Optional[float] = Field(default=None, gt=0)


class MoveFieldRequest(BaseModel):
    dx: float = 0.0
    dy: float = 0.0
    scale: Optional[float] = Field(default=None, gt=0)


class SignatureRequest(BaseModel):
    kind: SignedDataKind
    payload: str = Field(..., min_length=1)
    name: Optional[str] = None


class DuplicateResponse(BaseModel):
    duplicated_count: int
    message: str
    fields: list[DocumentField]


class ValidationResponse(BaseModel):
    valid: bool
    errors: list[str]
