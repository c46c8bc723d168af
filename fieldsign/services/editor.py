"""Document editing session: recipients, fields, geometry and export."""

import asyncio
import functools
from collections.abc import Callable
from typing import Optional
from uuid import uuid4

from fieldsign.config import settings
from fieldsign.core.duplication import DuplicationResult, duplicate_to_all_pages
from fieldsign.core.field_store import FieldStore
from fieldsign.core.geometry import PageGeometryTable
from fieldsign.core.placement import PlacementController
from fieldsign.models.document import (
    DocumentField,
    ExportOutcome,
    FieldType,
    PageSize,
    PointerDelta,
    PointerEvent,
    Recipient,
    SignedData,
    ViewportState,
)
from fieldsign.services.compositor import ExportCompositor, ExportError
from fieldsign.services.page_probe import load_geometry
from fieldsign.sources.abstractions import (
    DocumentSourceError,
    IDocumentSource,
    IRenderingSurface,
)
from fieldsign.utils.audit import log_operation
from fieldsign.utils.logger import logger
from fieldsign.utils.validators import (
    SendValidationError,
    validate_recipient_references,
    validate_send_request,
    validate_submission,
)


class RecipientNotFoundError(Exception):
    """Raised when a recipient id is not part of the session."""

    pass


class ExportInProgressError(ExportError):
    """Raised when an export is requested while another is still running."""

    pass


class DocumentEditor:
    """One document being prepared for signature.

    Owns the page geometry, the field store and the placement controller,
    and is the only place they are mutated from. Geometry is rebuilt, never
    merged, whenever a document is loaded.
    """

    def __init__(
        self,
        source: IDocumentSource,
        title: str = "",
        recipients: Optional[list[Recipient]] = None,
        compositor: Optional[ExportCompositor] = None,
        on_sign_request: Optional[Callable[[str], None]] = None,
        session_id: Optional[str] = None,
    ):
        self.session_id = session_id or str(uuid4())
        self.source = source
        self.title = title
        self.recipients: list[Recipient] = list(recipients or [])
        self.compositor = compositor or ExportCompositor()

        self.geometry = PageGeometryTable()
        self.store = FieldStore(self.geometry)
        self.controller = PlacementController(
            self.store,
            is_geometry_ready=lambda: self.geometry.is_complete,
            on_sign_request=on_sign_request,
        )

        self.viewport = ViewportState()
        self._export_in_flight = False

    # Geometry -------------------------------------------------------------

    @property
    def is_ready(self) -> bool:
        return self.geometry.is_complete

    async def load_document(
        self, surface: IRenderingSurface, default_height: Optional[float] = None
    ) -> PageGeometryTable:
        """Rebuild page geometry from a rendering surface."""
        geometry = await load_geometry(surface, default_height=default_height)
        self._replace_geometry(geometry)
        return geometry

    def begin_page_loading(self, total_pages: int, default_height: Optional[float] = None) -> None:
        """Start a fresh geometry table that a client viewer will fill page by page."""
        self._replace_geometry(PageGeometryTable(total_pages, default_height=default_height))
        logger.info(f"Session {self.session_id}: expecting {total_pages} page size report(s)")

    def report_page_size(self, page_number: int, width: float, height: float) -> bool:
        """Record one page size reported by the viewer. Returns True once all pages are in."""
        complete = self.geometry.record_page(page_number, width, height)
        if complete:
            self.store.refresh_pages()
            logger.info(f"Session {self.session_id}: page geometry complete")
        return complete

    def _replace_geometry(self, geometry: PageGeometryTable) -> None:
        self.geometry = geometry
        self.store.replace_geometry(geometry)
        self.viewport.rendered_pages = {}

    # Viewport -------------------------------------------------------------

    def set_viewport(
        self,
        scale: Optional[float] = None,
        scroll_offset: Optional[float] = None,
        sidebar_open: Optional[bool] = None,
        rendered_pages: Optional[dict[int, PageSize]] = None,
    ) -> ViewportState:
        """Update the parts of the viewer state that changed."""
        changes = {
            "scale": scale,
            "scroll_offset": max(0.0, scroll_offset) if scroll_offset is not None else None,
            "sidebar_open": sidebar_open,
            "rendered_pages": dict(rendered_pages) if rendered_pages is not None else None,
        }
        merged = self.viewport.model_dump()
        merged.update({k: v for k, v in changes.items() if v is not None})
        self.viewport = ViewportState.model_validate(merged)
        return self.viewport

    def pointer_event(self, client_x: float, client_y: float, **overrides) -> PointerEvent:
        """Pointer event carrying the current scroll and scale unless overridden."""
        values = {"scroll_offset": self.viewport.scroll_offset, "scale": self.viewport.scale}
        values.update({k: v for k, v in overrides.items() if v is not None})
        return PointerEvent(client_x=client_x, client_y=client_y, **values)

    @property
    def horizontal_offset(self) -> float:
        """Sidebar correction applied to field x at export."""
        return settings.sidebar_offset if self.viewport.sidebar_open else 0.0

    # Recipients -----------------------------------------------------------

    @property
    def default_recipient_id(self) -> str:
        return self.recipients[0].id if self.recipients else ""

    def get_recipient(self, recipient_id: str) -> Recipient:
        for recipient in self.recipients:
            if recipient.id == recipient_id:
                return recipient
        raise RecipientNotFoundError(f"Recipient {recipient_id} not found")

    def add_recipient(self, recipient: Recipient) -> Recipient:
        self.recipients.append(recipient)
        return recipient

    def update_recipient(self, recipient_id: str, **changes) -> Recipient:
        recipient = self.get_recipient(recipient_id)
        updated = recipient.model_copy(update=changes)
        self.recipients[self.recipients.index(recipient)] = updated
        return updated

    def remove_recipient(self, recipient_id: str) -> int:
        """Remove a recipient and every field assigned to it."""
        recipient = self.get_recipient(recipient_id)
        self.recipients.remove(recipient)
        return self.store.remove_for_recipient(recipient_id)

    # Fields ---------------------------------------------------------------

    def place_field(self, field_type: FieldType, event: PointerEvent) -> Optional[DocumentField]:
        """Place a field of ``field_type`` at a pointer event.

        Returns None when page geometry has not finished loading.
        """
        if self.controller.armed_type != field_type:
            self.controller.arm(field_type)
        return self.controller.click(event, recipient_id=self.default_recipient_id)

    def move_field(self, field_id: str, delta: PointerDelta) -> DocumentField:
        return self.controller.nudge(field_id, delta)

    def resize_field(self, field_id: str, width: float, height: float) -> DocumentField:
        return self.store.resize(field_id, width, height)

    def assign_recipient(self, field_id: str, recipient_id: str) -> DocumentField:
        self.get_recipient(recipient_id)
        return self.store.assign_recipient(field_id, recipient_id)

    def remove_field(self, field_id: str) -> DocumentField:
        return self.store.remove(field_id)

    def duplicate_to_all_pages(self, field_id: str) -> DuplicationResult:
        result = duplicate_to_all_pages(self.store, field_id)
        log_operation(
            operation="duplicate",
            session_id=self.session_id,
            field_id=field_id,
            metadata={"duplicated_count": result.duplicated_count},
        )
        return result

    def request_signature(self, field_id: str) -> bool:
        """Hand an unsigned signature field to the signing collaborator."""
        return self.controller.click_field(field_id)

    def attach_signature(self, field_id: str, signed_data: SignedData) -> DocumentField:
        return self.store.attach_signed_data(field_id, signed_data)

    def clear_signature(self, field_id: str) -> DocumentField:
        return self.store.clear_signed_data(field_id)

    # Validation -----------------------------------------------------------

    def validate_for_send(self) -> list[str]:
        return validate_send_request(self.recipients, self.store)

    def ensure_ready_to_send(self) -> None:
        errors = self.validate_for_send()
        if errors:
            raise SendValidationError(errors)

    def submit(self, recipient_id: Optional[str] = None) -> None:
        """Confirm a signer has completed every required field."""
        if recipient_id is not None:
            self.get_recipient(recipient_id)
        errors = validate_submission(self.recipients, self.store, recipient_id)
        if errors:
            raise SendValidationError(errors)
        log_operation(operation="submit", session_id=self.session_id, recipient=recipient_id)

    # Export ---------------------------------------------------------------

    async def export_signed_bytes(self) -> tuple[bytes, list[str]]:
        """Produce the signed PDF and any per-field warnings.

        Raises:
            ExportInProgressError: If another export is still running
            SendValidationError: If signed fields reference unknown recipients
            DocumentSourceError: If the source document cannot be loaded
            ExportError: If the source document is unreadable
        """
        if self._export_in_flight:
            raise ExportInProgressError("Export already in progress")
        self._export_in_flight = True
        try:
            errors = validate_recipient_references(self.recipients, self.store)
            if errors:
                raise SendValidationError(errors)

            source = await self.source.load()
            # Snapshot so edits made while the export runs cannot leak into it
            fields = [f.model_copy(deep=True) for f in self.store.signed_fields()]
            remote_images = await self.compositor.fetch_remote_images(fields)

            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(
                None,
                functools.partial(
                    self.compositor.compose,
                    fields,
                    source,
                    self.geometry,
                    dict(self.viewport.rendered_pages),
                    self.horizontal_offset,
                    remote_images,
                ),
            )
        finally:
            self._export_in_flight = False

        log_operation(
            operation="export",
            session_id=self.session_id,
            metadata={
                "embedded": result.embedded_count,
                "placeholders": result.placeholder_count,
                "skipped": result.skipped_field_ids,
            },
        )
        return result.content, result.warnings

    async def export_signed_document(self) -> ExportOutcome:
        """Export and report the outcome for presentation instead of raising."""
        try:
            content, warnings = await self.export_signed_bytes()
        except ExportInProgressError as e:
            return ExportOutcome(success=False, message=str(e))
        except SendValidationError as e:
            return ExportOutcome(
                success=False, message="Export blocked by validation errors", warnings=e.errors
            )
        except (DocumentSourceError, ExportError) as e:
            logger.error(f"Export failed for session {self.session_id}: {e}")
            return ExportOutcome(success=False, message=f"Failed to export document: {e}")

        if warnings:
            message = f"Document exported with {len(warnings)} warning(s)"
        else:
            message = "Document exported successfully with signatures"
        return ExportOutcome(
            success=True,
            message=message,
            warnings=warnings,
            content=content,
            filename=f"{self.title or 'document'}_signed.pdf",
        )
