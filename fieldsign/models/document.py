"""Document field, signature and recipient models."""

import base64
import binascii
import json
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fieldsign.utils.validators import validate_email


class FieldType(str, Enum):
    """Kinds of fields a sender can place on a document."""

    SIGNATURE = "signature"
    DATE = "date"
    TEXT = "text"
    CHECKBOX = "checkbox"


class SignedDataKind(str, Enum):
    """How a signed value was captured."""

    DRAWN_IMAGE = "drawn-image"
    TYPED_TEXT = "typed-text"
    UPLOADED_IMAGE = "uploaded-image"

    @property
    def is_image(self) -> bool:
        return self in (SignedDataKind.DRAWN_IMAGE, SignedDataKind.UPLOADED_IMAGE)


class RecipientRole(str, Enum):
    SIGNER = "signer"
    VIEWER = "viewer"


# Width x height in document-space units
FIELD_DEFAULT_SIZES: dict[FieldType, tuple[float, float]] = {
    FieldType.SIGNATURE: (200.0, 60.0),
    FieldType.CHECKBOX: (20.0, 20.0),
    FieldType.TEXT: (150.0, 30.0),
    FieldType.DATE: (150.0, 30.0),
}


def _new_id() -> str:
    return str(uuid4())


class PageSize(BaseModel):
    """Natural (unscaled) size of a single page."""

    width: float = Field(..., gt=0)
    height: float = Field(..., gt=0)


class SignedData(BaseModel):
    """Captured value fulfilling a field.

    Image payloads are either a ``data:image/...;base64,`` URL, bare base64,
    or an http(s) URL. Typed payloads are JSON ``{"text": ..., "font": ...}``;
    a bare string is accepted as the text itself.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    kind: SignedDataKind
    payload: str = Field(..., min_length=1)
    name: Optional[str] = Field(default=None, max_length=200)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def typed(cls, text: str, font: str | None = None, name: str | None = None) -> "SignedData":
        """Build a typed-text signature record."""
        return cls(
            kind=SignedDataKind.TYPED_TEXT,
            payload=json.dumps({"text": text, "font": font}),
            name=name,
        )

    @property
    def is_remote_image(self) -> bool:
        return self.kind.is_image and self.payload.startswith(("http://", "https://"))

    def image_bytes(self) -> bytes:
        """Decode an inline image payload.

        Raises:
            ValueError: If the payload is not an image or is not valid base64
        """
        if not self.kind.is_image:
            raise ValueError(f"Signed data {self.id} is not an image")
        data = self.payload
        if data.startswith("data:"):
            _, _, data = data.partition(",")
        try:
            return base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"Invalid base64 image payload: {e}") from e

    def typed_text(self) -> str:
        """Return the text of a typed signature."""
        if self.kind != SignedDataKind.TYPED_TEXT:
            raise ValueError(f"Signed data {self.id} is not typed text")
        try:
            decoded = json.loads(self.payload)
        except json.JSONDecodeError:
            return self.payload
        if isinstance(decoded, dict):
            text = decoded.get("text")
            if not isinstance(text, str) or not text.strip():
                raise ValueError("Typed signature has no text")
            return text
        return str(decoded)


class Recipient(BaseModel):
    """Person a document is sent to."""

    id: str = Field(default_factory=_new_id)
    name: str = Field(default="", max_length=200)
    email: str = Field(default="", max_length=200)
    role: RecipientRole = RecipientRole.SIGNER

    @property
    def has_valid_email(self) -> bool:
        return validate_email(self.email)


class DocumentField(BaseModel):
    """A positioned, typed placeholder for signer-entered content.

    ``x`` and ``y`` are absolute document-space coordinates: ``y`` runs from
    the top of page 1 down across all pages. ``page_number`` is derived from
    ``y`` by the field store and is never set independently.
    """

    id: str = Field(default_factory=_new_id)
    type: FieldType
    x: float
    y: float
    width: float = Field(..., gt=0)
    height: float = Field(..., gt=0)
    recipient_id: str = ""
    required: bool = True
    page_number: int = Field(default=1, ge=1)
    signed_data: Optional[SignedData] = None

    @property
    def is_signed(self) -> bool:
        return self.signed_data is not None

    @classmethod
    def with_default_size(cls, field_type: FieldType, **kwargs) -> "DocumentField":
        width, height = FIELD_DEFAULT_SIZES[field_type]
        return cls(type=field_type, width=width, height=height, **kwargs)


class PointerEvent(BaseModel):
    """Raw pointer event plus the container state read at the same instant."""

    client_x: float
    client_y: float
    origin_x: float = 0.0
    origin_y: float = 0.0
    scroll_offset: float = 0.0
    scale: float = Field(default=1.0, gt=0)

    @property
    def pointer_x(self) -> float:
        return self.client_x - self.origin_x

    @property
    def pointer_y(self) -> float:
        return self.client_y - self.origin_y


class PointerDelta(BaseModel):
    """Pointer movement in viewport pixels."""

    dx: float = 0.0
    dy: float = 0.0
    scale: float = Field(default=1.0, gt=0)


class ViewportState(BaseModel):
    """Zoom, scroll and layout state of the viewer around the document."""

    scale: float = Field(default=1.0, gt=0)
    scroll_offset: float = Field(default=0.0, ge=0)
    sidebar_open: bool = False
    rendered_pages: dict[int, PageSize] = Field(
        default_factory=dict,
        description="On-screen page sizes at export time, keyed by page number",
    )


class SourceDocument(BaseModel):
    """Source supplied by the document collaborator: PDF bytes or text."""

    title: str = Field(default="Untitled Document")
    pdf_bytes: Optional[bytes] = None
    text: Optional[str] = None

    @property
    def is_pdf(self) -> bool:
        return self.pdf_bytes is not None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return v.strip() or "Untitled Document"


class ExportOutcome(BaseModel):
    """Status of an export for presentation by the surrounding UI."""

    success: bool
    message: str
    warnings: list[str] = Field(default_factory=list)
    content: Optional[bytes] = None
    filename: Optional[str] = None
