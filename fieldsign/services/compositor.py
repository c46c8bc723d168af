"""Export compositor: burns signed field content into the final PDF."""

import io
from collections.abc import Iterable, Mapping
from typing import Optional

import fitz
import httpx
from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel, Field

from fieldsign.config import settings
from fieldsign.core.coordinates import relative_y
from fieldsign.core.geometry import PageGeometryTable
from fieldsign.models.document import (
    DocumentField,
    PageSize,
    SignedData,
    SignedDataKind,
    SourceDocument,
)
from fieldsign.utils.logger import logger

# Offsets from the top of a synthesized text page, in points
TITLE_BASELINE_OFFSET = 22.0
BODY_START_OFFSET = 52.0


class ExportError(Exception):
    """Raised when the export cannot produce a document at all."""

    pass


class ImageDecodeError(Exception):
    """Raised when a signature image payload cannot be embedded."""

    pass


class PdfPlacement(BaseModel):
    """Field rectangle in PDF space (points, origin bottom-left)."""

    x: float
    y: float
    width: float
    height: float

    def to_rect(self, page_height: float) -> fitz.Rect:
        """Same rectangle in PyMuPDF's top-left-origin page coordinates."""
        top = page_height - self.y - self.height
        return fitz.Rect(self.x, top, self.x + self.width, top + self.height)


class CompositionResult(BaseModel):
    content: bytes
    page_count: int
    embedded_count: int = 0
    placeholder_count: int = 0
    skipped_field_ids: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


def wrap_text(text: str, fontsize: float, max_width: float, fontname: str = "helv") -> list[str]:
    """Greedy word wrap: extend the line while it still fits, flush on overflow.

    A single word wider than ``max_width`` gets a line of its own.
    """
    lines = []
    current = ""
    for word in text.split(" "):
        candidate = f"{current} {word}" if current else word
        if fitz.get_text_length(candidate, fontname=fontname, fontsize=fontsize) < max_width:
            current = candidate
        else:
            if current:
                lines.append(current)
            current = word
    if current:
        lines.append(current)
    return lines


def project_field(
    field: DocumentField,
    page_relative_y: float,
    pdf_size: PageSize,
    rendered_size: PageSize,
    horizontal_offset: float = 0.0,
) -> PdfPlacement:
    """Reproject a field from viewer space onto a PDF page.

    Coordinates are scaled by PDF size over rendered size per axis, flipped to
    a bottom-left origin and clamped so the whole rectangle stays on the page.
    """
    scale_x = pdf_size.width / rendered_size.width
    scale_y = pdf_size.height / rendered_size.height

    width = min(field.width * scale_x, pdf_size.width)
    height = min(field.height * scale_y, pdf_size.height)
    x = (field.x - horizontal_offset) * scale_x
    y = pdf_size.height - page_relative_y * scale_y - height

    x = max(0.0, min(x, pdf_size.width - width))
    y = max(0.0, min(y, pdf_size.height - height))
    return PdfPlacement(x=x, y=y, width=width, height=height)


class ExportCompositor:
    """Produces final PDF bytes with every signed field drawn in place.

    Fields are embedded one at a time against a single document handle.
    Per-field failures degrade to a placeholder label; only an unreadable
    source document aborts the export.
    """

    def __init__(self, fontname: str | None = None, placeholder_label: str | None = None):
        self.fontname = fontname or settings.export_font
        self.placeholder_label = placeholder_label or settings.placeholder_label

    async def fetch_remote_images(self, fields: Iterable[DocumentField]) -> dict[str, bytes]:
        """Download image payloads given as URLs, keyed by signed data id.

        Failed downloads are left out; the field then gets a placeholder.
        """
        remote = [
            f.signed_data for f in fields if f.signed_data is not None and f.signed_data.is_remote_image
        ]
        images: dict[str, bytes] = {}
        if not remote:
            return images

        async with httpx.AsyncClient(follow_redirects=True) as client:
            for signed_data in remote:
                try:
                    response = await client.get(
                        signed_data.payload, timeout=settings.document_fetch_timeout
                    )
                    response.raise_for_status()
                    images[signed_data.id] = response.content
                except httpx.HTTPError as e:
                    logger.warning(f"Could not fetch signature image {signed_data.id}: {e}")
        return images

    def compose(
        self,
        fields: Iterable[DocumentField],
        source: SourceDocument,
        geometry: PageGeometryTable,
        rendered_pages: Optional[Mapping[int, PageSize]] = None,
        horizontal_offset: float = 0.0,
        remote_images: Optional[Mapping[str, bytes]] = None,
    ) -> CompositionResult:
        """Composite signed fields onto the source and return the PDF bytes.

        Raises:
            ExportError: If the source PDF cannot be opened or has no pages
        """
        rendered_pages = rendered_pages or {}
        remote_images = remote_images or {}
        signed = [f for f in fields if f.signed_data is not None]

        if source.is_pdf:
            doc = self._open_source(source.pdf_bytes)
        else:
            doc = self.synthesize_text_document(source.title, source.text or "")

        result = CompositionResult(content=b"", page_count=doc.page_count)
        try:
            for page_number, page_fields in self._group_fields(signed, source.is_pdf).items():
                if page_number > doc.page_count:
                    message = f"Page {page_number} not found in document, skipped {len(page_fields)} field(s)"
                    logger.warning(message)
                    result.warnings.append(message)
                    result.skipped_field_ids.extend(f.id for f in page_fields)
                    continue

                page = doc[page_number - 1]
                pdf_size = PageSize(width=page.rect.width, height=page.rect.height)
                rendered_size = self._rendered_size(page_number, rendered_pages, geometry, pdf_size)
                logger.debug(
                    f"Page {page_number}: pdf {pdf_size.width}x{pdf_size.height}, "
                    f"rendered {rendered_size.width}x{rendered_size.height}"
                )

                for field in page_fields:
                    if source.is_pdf:
                        page_relative_y = relative_y(geometry, field.y, page_number)
                    else:
                        page_relative_y = field.y
                    placement = project_field(
                        field, page_relative_y, pdf_size, rendered_size, horizontal_offset
                    )
                    logger.debug(
                        f"Field {field.id}: viewer ({field.x}, {field.y}) -> "
                        f"pdf ({placement.x:.2f}, {placement.y:.2f}) on page {page_number}"
                    )
                    warning = self._embed_field(page, field, placement, remote_images)
                    result.embedded_count += 1
                    if warning:
                        result.placeholder_count += 1
                        result.warnings.append(warning)

            result.content = doc.tobytes(garbage=3, deflate=True)
        finally:
            doc.close()

        logger.info(
            f"Composited {result.embedded_count} field(s) onto {result.page_count} page(s), "
            f"{result.placeholder_count} placeholder(s), {len(result.skipped_field_ids)} skipped"
        )
        return result

    def synthesize_text_document(self, title: str, text: str) -> fitz.Document:
        """Typeset a title and word-wrapped body onto a single fixed-size page."""
        width = settings.text_page_width
        height = settings.text_page_height
        margin = settings.text_margin
        body_size = settings.body_font_size

        doc = fitz.open()
        page = doc.new_page(width=width, height=height)
        page.insert_text(
            (margin, TITLE_BASELINE_OFFSET),
            title or "Untitled Document",
            fontsize=settings.title_font_size,
            fontname=self.fontname,
        )

        baseline = BODY_START_OFFSET
        bottom_limit = height - margin
        truncated = False
        for source_line in text.split("\n"):
            for line in wrap_text(source_line, body_size, width - 2 * margin, self.fontname):
                if baseline > bottom_limit:
                    truncated = True
                    break
                page.insert_text((margin, baseline), line, fontsize=body_size, fontname=self.fontname)
                baseline += settings.body_line_height

        if truncated:
            logger.warning("Text document longer than one page, remaining lines were not drawn")
        return doc

    def _open_source(self, pdf_bytes: bytes) -> fitz.Document:
        try:
            doc = fitz.open(stream=pdf_bytes, filetype="pdf")
        except Exception as e:
            logger.error(f"Failed to open source PDF: {e}")
            raise ExportError(f"Source document is unreadable: {e}") from e
        if doc.page_count == 0:
            doc.close()
            raise ExportError("Source document has no pages")
        return doc

    def _group_fields(
        self, fields: list[DocumentField], is_pdf: bool
    ) -> dict[int, list[DocumentField]]:
        if not is_pdf:
            # Text documents render as a single page
            return {1: fields} if fields else {}
        groups: dict[int, list[DocumentField]] = {}
        for field in fields:
            groups.setdefault(field.page_number, []).append(field)
        return dict(sorted(groups.items()))

    def _rendered_size(
        self,
        page_number: int,
        rendered_pages: Mapping[int, PageSize],
        geometry: PageGeometryTable,
        pdf_size: PageSize,
    ) -> PageSize:
        if page_number in rendered_pages:
            return rendered_pages[page_number]
        natural = geometry.size(page_number)
        if natural is not None:
            return natural
        return pdf_size

    def _embed_field(
        self,
        page: fitz.Page,
        field: DocumentField,
        placement: PdfPlacement,
        remote_images: Mapping[str, bytes],
    ) -> Optional[str]:
        """Draw one field's signed content. Returns a warning when a placeholder was drawn."""
        signed_data = field.signed_data
        if signed_data.kind.is_image:
            try:
                image = self._load_image(signed_data, remote_images)
                page.insert_image(
                    self._page_rect(page, placement),
                    stream=image,
                    keep_proportion=False,
                    rotate=page.rotation,
                )
                return None
            except ImageDecodeError as e:
                error = e
            except (RuntimeError, ValueError) as e:
                error = ImageDecodeError(f"PDF rejected image: {e}")
            logger.warning(f"Signature image for field {field.id} could not be embedded: {error}")
            self._draw_placeholder(page, placement)
            return f"Field {field.id}: image could not be embedded, placeholder drawn"

        if signed_data.kind == SignedDataKind.TYPED_TEXT:
            try:
                text = signed_data.typed_text()
            except ValueError as e:
                logger.warning(f"Typed signature for field {field.id} is malformed: {e}")
                self._draw_placeholder(page, placement)
                return f"Field {field.id}: typed value is malformed, placeholder drawn"
            font_size = min(placement.height * 0.7, settings.max_typed_font_size)
            baseline_y = placement.y + (placement.height - font_size) / 2
            self._insert_text(page, placement.x, baseline_y, text, font_size)
            return None

        self._draw_placeholder(page, placement)
        return f"Field {field.id}: unsupported signed data kind, placeholder drawn"

    def _load_image(self, signed_data: SignedData, remote_images: Mapping[str, bytes]) -> bytes:
        """Decode an image payload and normalize it to PNG."""
        if signed_data.is_remote_image:
            raw = remote_images.get(signed_data.id)
            if raw is None:
                raise ImageDecodeError(f"Image at {signed_data.payload} was not fetched")
        else:
            try:
                raw = signed_data.image_bytes()
            except ValueError as e:
                raise ImageDecodeError(str(e)) from e

        try:
            with Image.open(io.BytesIO(raw)) as img:
                img.load()
                if img.mode not in ("RGB", "RGBA", "L", "LA"):
                    img = img.convert("RGBA")
                buffer = io.BytesIO()
                img.save(buffer, format="PNG")
                return buffer.getvalue()
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise ImageDecodeError(f"Unsupported or corrupt image: {e}") from e

    def _draw_placeholder(self, page: fitz.Page, placement: PdfPlacement) -> None:
        font_size = min(placement.height * 0.6, settings.max_placeholder_font_size)
        self._insert_text(
            page, placement.x, placement.y + placement.height / 2, self.placeholder_label, font_size
        )

    def _insert_text(
        self, page: fitz.Page, x: float, baseline_y: float, text: str, font_size: float
    ) -> None:
        """Insert text with its baseline at PDF-space (x, baseline_y)."""
        point = fitz.Point(x, page.rect.height - baseline_y)
        if page.rotation:
            point = point * page.derotation_matrix
        page.insert_text(
            point, text, fontsize=font_size, fontname=self.fontname, rotate=page.rotation
        )

    def _page_rect(self, page: fitz.Page, placement: PdfPlacement) -> fitz.Rect:
        rect = placement.to_rect(page.rect.height)
        if page.rotation:
            rect = rect * page.derotation_matrix
        return rect
