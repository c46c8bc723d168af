"""Document editing data models."""

from fieldsign.models.document import (
    FIELD_DEFAULT_SIZES,
    DocumentField,
    ExportOutcome,
    FieldType,
    PageSize,
    PointerDelta,
    PointerEvent,
    Recipient,
    RecipientRole,
    SignedData,
    SignedDataKind,
    SourceDocument,
    ViewportState,
)

__all__ = [
    "FIELD_DEFAULT_SIZES",
    "DocumentField",
    "ExportOutcome",
    "FieldType",
    "PageSize",
    "PointerDelta",
    "PointerEvent",
    "Recipient",
    "RecipientRole",
    "SignedData",
    "SignedDataKind",
    "SourceDocument",
    "ViewportState",
]
