"""In-memory document sources and rendering surfaces."""

from fieldsign.config import settings
from fieldsign.models.document import PageSize, SourceDocument
from fieldsign.services.page_probe import PageProbe
from fieldsign.sources.abstractions import (
    DocumentSourceError,
    IDocumentSource,
    IRenderingSurface,
)


class PdfBytesSource(IDocumentSource):
    """PDF bytes already held in memory, e.g. from an upload."""

    def __init__(self, pdf_bytes: bytes, title: str = ""):
        if not pdf_bytes:
            raise DocumentSourceError("PDF content is empty")
        self._pdf_bytes = pdf_bytes
        self.title = title

    async def load(self) -> SourceDocument:
        return SourceDocument(title=self.title, pdf_bytes=self._pdf_bytes)


class TextDocumentSource(IDocumentSource):
    """Plain-text document that is typeset into a PDF at export."""

    def __init__(self, title: str, content: str):
        self.title = title
        self.content = content

    async def load(self) -> SourceDocument:
        return SourceDocument(title=self.title, text=self.content)


class PdfRenderingSurface(IRenderingSurface):
    """Page sizes read from PDF bytes, used when no client viewer reports them."""

    def __init__(self, pdf_bytes: bytes, probe: PageProbe | None = None):
        self._sizes = (probe or PageProbe()).read_sizes(pdf_bytes)

    @property
    def page_count(self) -> int:
        return len(self._sizes)

    async def page_size(self, page_number: int) -> PageSize:
        if not 1 <= page_number <= len(self._sizes):
            raise IndexError(f"Page {page_number} out of range")
        return self._sizes[page_number - 1]


class TextRenderingSurface(IRenderingSurface):
    """A text document renders as a single synthesized page."""

    @property
    def page_count(self) -> int:
        return 1

    async def page_size(self, page_number: int) -> PageSize:
        if page_number != 1:
            raise IndexError(f"Page {page_number} out of range")
        return PageSize(width=settings.text_page_width, height=settings.text_page_height)
