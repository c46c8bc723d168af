"""API routes: editing sessions for field placement, signing and export."""

import re

from fastapi import APIRouter, File, Form, HTTPException, Response, UploadFile, status

from fieldsign.api.schemas import (
    CreateSessionRequest,
    DuplicateResponse,
    MoveFieldRequest,
    PageReport,
    PageReportResponse,
    PlaceFieldRequest,
    RecipientCreate,
    SessionSummary,
    SignatureRequest,
    ValidationResponse,
    ViewportUpdate,
)
from fieldsign.core.field_store import FieldNotFoundError
from fieldsign.core.geometry import GeometryUnavailableError
from fieldsign.core.placement import PlacementStateError
from fieldsign.models import (
    DocumentField,
    PointerDelta,
    Recipient,
    SignedData,
)
from fieldsign.services.compositor import ExportError
from fieldsign.services.editor import (
    DocumentEditor,
    ExportInProgressError,
    RecipientNotFoundError,
)
from fieldsign.services.page_probe import PageProbeError
from fieldsign.sources.abstractions import DocumentSourceError
from fieldsign.sources.local_sources import (
    PdfBytesSource,
    PdfRenderingSurface,
    TextDocumentSource,
    TextRenderingSurface,
)
from fieldsign.sources.url_source import UrlDocumentSource
from fieldsign.utils.logger import logger
from fieldsign.utils.validators import SendValidationError

router = APIRouter(tags=["sessions"])

# ---------------------------------------------------------------------------
# Session registry
# ---------------------------------------------------------------------------

_sessions: dict[str, DocumentEditor] = {}


class SessionNotFoundError(Exception):
    """Raised when a session id is unknown."""

    pass


def get_session(session_id: str) -> DocumentEditor:
    editor = _sessions.get(session_id)
    if editor is None:
        raise SessionNotFoundError(f"Session {session_id} not found")
    return editor


def clear_sessions() -> None:
    """Drop all sessions (for testing)."""
    _sessions.clear()


def _summary(editor: DocumentEditor) -> SessionSummary:
    return SessionSummary(
        session_id=editor.session_id,
        title=editor.title,
        total_pages=editor.geometry.total_pages,
        ready=editor.is_ready,
        field_count=len(editor.store),
        recipient_count=len(editor.recipients),
    )


def _http_error(exc: Exception) -> HTTPException:
    """Translate engine exceptions into HTTP errors."""
    if isinstance(exc, (SessionNotFoundError, FieldNotFoundError, RecipientNotFoundError)):
        return HTTPException(status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, (PlacementStateError, ExportInProgressError, GeometryUnavailableError)):
        return HTTPException(status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, SendValidationError):
        return HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, detail={"errors": exc.errors})
    if isinstance(exc, DocumentSourceError):
        return HTTPException(status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    if isinstance(exc, (ExportError, PageProbeError)):
        return HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    if isinstance(exc, ValueError):
        return HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc))
    logger.error(f"Unexpected error: {exc}", exc_info=True)
    return HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Unexpected error: {exc}")


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

@router.post("/sessions", status_code=status.HTTP_201_CREATED, response_model=SessionSummary)
async def create_session(request: CreateSessionRequest) -> SessionSummary:
    """Open an editing session on a PDF URL or on plain text content."""
    try:
        if request.file_url is not None:
            source = UrlDocumentSource(request.file_url, title=request.title)
            editor = DocumentEditor(source, title=request.title)
            if request.probe_pages:
                document = await source.load()
                editor.title = editor.title or document.title
                await editor.load_document(PdfRenderingSurface(document.pdf_bytes))
        else:
            source = TextDocumentSource(request.title, request.content)
            editor = DocumentEditor(source, title=request.title)
            await editor.load_document(TextRenderingSurface())
    except (DocumentSourceError, PageProbeError) as exc:
        raise _http_error(exc) from exc

    _sessions[editor.session_id] = editor
    logger.info(f"Session {editor.session_id} created ({editor.geometry.total_pages} page(s))")
    return _summary(editor)


@router.post("/sessions/upload", status_code=status.HTTP_201_CREATED, response_model=SessionSummary)
async def create_session_from_upload(
        file: UploadFile = File(..., description="PDF document to prepare"),
        title: str | None = Form(None, description="Document title"),
) -> SessionSummary:
    """Open an editing session on an uploaded PDF."""
    content = await _read_upload(file)
    doc_title = (title or "").strip() or _title_from_filename(file.filename)
    try:
        editor = DocumentEditor(PdfBytesSource(content, title=doc_title), title=doc_title)
        await editor.load_document(PdfRenderingSurface(content))
    except (DocumentSourceError, PageProbeError) as exc:
        raise _http_error(exc) from exc

    _sessions[editor.session_id] = editor
    logger.info(f"Session {editor.session_id} created from upload '{file.filename}'")
    return _summary(editor)


@router.get("/sessions/{session_id}", response_model=SessionSummary)
async def read_session(session_id: str) -> SessionSummary:
    try:
        return _summary(get_session(session_id))
    except SessionNotFoundError as exc:
        raise _http_error(exc) from exc


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def close_session(session_id: str) -> Response:
    if _sessions.pop(session_id, None) is None:
        raise _http_error(SessionNotFoundError(f"Session {session_id} not found"))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/sessions/{session_id}/pages/{page_number}", response_model=PageReportResponse)
async def report_page(session_id: str, page_number: int, report: PageReport) -> PageReportResponse:
    """Record a page size reported by the client's viewer."""
    try:
        editor = get_session(session_id)
        if report.total_pages is not None and report.total_pages != editor.geometry.total_pages:
            editor.begin_page_loading(report.total_pages)
        ready = editor.report_page_size(page_number, report.width, report.height)
    except (SessionNotFoundError, GeometryUnavailableError, ValueError) as exc:
        raise _http_error(exc) from exc
    return PageReportResponse(
        page_number=page_number, ready=ready, known_pages=editor.geometry.known_pages
    )


@router.put("/sessions/{session_id}/viewport")
async def update_viewport(session_id: str, update: ViewportUpdate) -> dict:
    try:
        editor = get_session(session_id)
        viewport = editor.set_viewport(
            scale=update.scale,
            scroll_offset=update.scroll_offset,
            sidebar_open=update.sidebar_open,
            rendered_pages=update.rendered_pages,
        )
    except (SessionNotFoundError, ValueError) as exc:
        raise _http_error(exc) from exc
    return viewport.model_dump()


# ---------------------------------------------------------------------------
# Recipients
# ---------------------------------------------------------------------------

@router.post("/sessions/{session_id}/recipients", status_code=status.HTTP_201_CREATED)
async def add_recipient(session_id: str, body: RecipientCreate) -> Recipient:
    try:
        editor = get_session(session_id)
    except SessionNotFoundError as exc:
        raise _http_error(exc) from exc
    return editor.add_recipient(Recipient(name=body.name, email=body.email, role=body.role))


@router.delete("/sessions/{session_id}/recipients/{recipient_id}")
async def remove_recipient(session_id: str, recipient_id: str) -> dict:
    """Remove a recipient together with every field assigned to it."""
    try:
        removed = get_session(session_id).remove_recipient(recipient_id)
    except (SessionNotFoundError, RecipientNotFoundError) as exc:
        raise _http_error(exc) from exc
    return {"recipient_id": recipient_id, "removed_fields": removed}


# ---------------------------------------------------------------------------
# Fields
# ---------------------------------------------------------------------------

@router.get("/sessions/{session_id}/fields")
async def list_fields(session_id: str, page: int | None = None) -> list[DocumentField]:
    try:
        editor = get_session(session_id)
    except SessionNotFoundError as exc:
        raise _http_error(exc) from exc
    return editor.store.on_page(page) if page is not None else list(editor.store)


@router.post("/sessions/{session_id}/fields", status_code=status.HTTP_201_CREATED)
async def place_field(session_id: str, body: PlaceFieldRequest) -> DocumentField:
    """Place a field where the user clicked."""
    try:
        editor = get_session(session_id)
        event = editor.pointer_event(
            body.client_x,
            body.client_y,
            origin_x=body.origin_x,
            origin_y=body.origin_y,
            scroll_offset=body.scroll_offset,
            scale=body.scale,
        )
        field = editor.place_field(body.type, event)
    except (SessionNotFoundError, PlacementStateError) as exc:
        raise _http_error(exc) from exc

    if field is None:
        raise HTTPException(
            status.HTTP_409_CONFLICT, detail="Page geometry is not loaded yet, field not placed"
        )
    return field


@router.patch("/sessions/{session_id}/fields/{field_id}/position")
async def move_field(session_id: str, field_id: str, body: MoveFieldRequest) -> DocumentField:
    try:
        editor = get_session(session_id)
        delta = PointerDelta(dx=body.dx, dy=body.dy, scale=body.scale or editor.viewport.scale)
        return editor.move_field(field_id, delta)
    except (SessionNotFoundError, FieldNotFoundError, PlacementStateError, GeometryUnavailableError) as exc:
        raise _http_error(exc) from exc


@router.post("/sessions/{session_id}/fields/{field_id}/duplicate", response_model=DuplicateResponse)
async def duplicate_field(session_id: str, field_id: str) -> DuplicateResponse:
    """Copy a field to every other page at the same distance from the page bottom."""
    try:
        result = get_session(session_id).duplicate_to_all_pages(field_id)
    except (SessionNotFoundError, FieldNotFoundError, GeometryUnavailableError) as exc:
        raise _http_error(exc) from exc
    return DuplicateResponse(
        duplicated_count=result.duplicated_count, message=result.message, fields=result.fields
    )


@router.put("/sessions/{session_id}/fields/{field_id}/signature")
async def attach_signature(session_id: str, field_id: str, body: SignatureRequest) -> DocumentField:
    try:
        editor = get_session(session_id)
        signed_data = SignedData(kind=body.kind, payload=body.payload, name=body.name)
        return editor.attach_signature(field_id, signed_data)
    except (SessionNotFoundError, FieldNotFoundError) as exc:
        raise _http_error(exc) from exc


@router.delete("/sessions/{session_id}/fields/{field_id}/signature")
async def clear_signature(session_id: str, field_id: str) -> DocumentField:
    try:
        return get_session(session_id).clear_signature(field_id)
    except (SessionNotFoundError, FieldNotFoundError) as exc:
        raise _http_error(exc) from exc


@router.delete("/sessions/{session_id}/fields/{field_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_field(session_id: str, field_id: str) -> Response:
    try:
        get_session(session_id).remove_field(field_id)
    except (SessionNotFoundError, FieldNotFoundError) as exc:
        raise _http_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Validation, submission and export
# ---------------------------------------------------------------------------

@router.get("/sessions/{session_id}/validation", response_model=ValidationResponse)
async def validate_session(session_id: str) -> ValidationResponse:
    """List every problem that would block sending the document."""
    try:
        errors = get_session(session_id).validate_for_send()
    except SessionNotFoundError as exc:
        raise _http_error(exc) from exc
    return ValidationResponse(valid=not errors, errors=errors)


@router.post("/sessions/{session_id}/submit")
async def submit_signatures(session_id: str, recipient_id: str | None = None) -> dict:
    """A signer confirms they completed every required field."""
    try:
        get_session(session_id).submit(recipient_id)
    except (SessionNotFoundError, RecipientNotFoundError, SendValidationError) as exc:
        raise _http_error(exc) from exc
    return {"status": "submitted", "recipient_id": recipient_id}


@router.post("/sessions/{session_id}/export")
async def export_document(session_id: str) -> Response:
    """Return the final PDF with every signed field burned in."""
    try:
        editor = get_session(session_id)
        content, warnings = await editor.export_signed_bytes()
    except Exception as exc:
        raise _http_error(exc) from exc

    filename = _safe_filename(f"{editor.title or 'document'}_signed.pdf")
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    if warnings:
        headers["X-Export-Warnings"] = " | ".join(warnings)
    return Response(content=content, media_type="application/pdf", headers=headers)


# ---------------------------------------------------------------------------
# Shared private helpers
# ---------------------------------------------------------------------------

async def _read_upload(file: UploadFile) -> bytes:
    """Read file bytes, raising appropriate HTTP errors on failure."""
    if not file.filename:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="File must have a filename")
    try:
        content = await file.read()
    except Exception as exc:
        logger.error(f"Failed to read upload: {exc}")
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to read uploaded file") from exc

    if not content:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty")

    return content


def _title_from_filename(filename: str | None) -> str:
    cleaned = (filename or "").strip()
    return cleaned.rsplit(".", 1)[0] if "." in cleaned else cleaned


def _safe_filename(name: str) -> str:
    """Keep header-safe ASCII characters only."""
    return re.sub(r"[^\w.\-]", "_", name.encode("ascii", "replace").decode("ascii")) or "document.pdf"
