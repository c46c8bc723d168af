"""Document source and rendering surface collaborators."""

from fieldsign.sources.abstractions import (
    DocumentSourceError,
    IDocumentSource,
    IRenderingSurface,
)
from fieldsign.sources.local_sources import (
    PdfBytesSource,
    PdfRenderingSurface,
    TextDocumentSource,
    TextRenderingSurface,
)
from fieldsign.sources.url_source import UrlDocumentSource

__all__ = [
    "DocumentSourceError",
    "IDocumentSource",
    "IRenderingSurface",
    "PdfBytesSource",
    "PdfRenderingSurface",
    "TextDocumentSource",
    "TextRenderingSurface",
    "UrlDocumentSource",
]
