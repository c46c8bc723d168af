"""Unit tests for document sources and rendering surfaces."""

from unittest.mock import AsyncMock, MagicMock, patch

import fitz
import httpx
import pytest

from fieldsign.models.document import PageSize
from fieldsign.sources import (
    DocumentSourceError,
    PdfBytesSource,
    PdfRenderingSurface,
    TextDocumentSource,
    TextRenderingSurface,
    UrlDocumentSource,
)


def _pdf(pages: int = 1) -> bytes:
    doc = fitz.open()
    for _ in range(pages):
        doc.new_page(width=612, height=792)
    content = doc.tobytes()
    doc.close()
    return content


def _mock_get(mock_client, response=None, side_effect=None) -> AsyncMock:
    get = AsyncMock(return_value=response, side_effect=side_effect)
    mock_client.return_value.__aenter__.return_value.get = get
    return get


class TestUrlDocumentSource:
    """Test cases for UrlDocumentSource."""

    @patch("fieldsign.sources.url_source.httpx.AsyncClient")
    async def test_load_success(self, mock_client):
        """Test PDF bytes are fetched and titled from the URL."""
        mock_response = MagicMock()
        mock_response.content = b"%PDF-1.7 fake"
        mock_response.raise_for_status = MagicMock()
        get = _mock_get(mock_client, mock_response)

        source = UrlDocumentSource("https://files.example.com/docs/lease.pdf", timeout=5)
        document = await source.load()

        assert document.pdf_bytes == b"%PDF-1.7 fake"
        assert document.title == "lease"
        assert document.is_pdf is True
        get.assert_awaited_once_with("https://files.example.com/docs/lease.pdf", timeout=5)

    @patch("fieldsign.sources.url_source.httpx.AsyncClient")
    async def test_load_keeps_given_title(self, mock_client):
        """Test an explicit title wins over the URL name."""
        mock_response = MagicMock()
        mock_response.content = b"%PDF-1.4"
        _mock_get(mock_client, mock_response)

        document = await UrlDocumentSource("https://x.test/a.pdf", title="Lease").load()

        assert document.title == "Lease"

    @patch("fieldsign.sources.url_source.httpx.AsyncClient")
    async def test_load_not_a_pdf(self, mock_client):
        """Test non-PDF content is rejected."""
        mock_response = MagicMock()
        mock_response.content = b"<html>login</html>"
        _mock_get(mock_client, mock_response)

        with pytest.raises(DocumentSourceError, match="not a PDF"):
            await UrlDocumentSource("https://x.test/a.pdf").load()

    @patch("fieldsign.sources.url_source.httpx.AsyncClient")
    async def test_load_http_error(self, mock_client):
        """Test an error status becomes a DocumentSourceError."""
        request = httpx.Request("GET", "https://x.test/a.pdf")
        response = httpx.Response(404, request=request)
        mock_response = MagicMock()
        mock_response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "Not Found", request=request, response=response
        )
        _mock_get(mock_client, mock_response)

        with pytest.raises(DocumentSourceError, match="404"):
            await UrlDocumentSource("https://x.test/a.pdf").load()

    @patch("fieldsign.sources.url_source.httpx.AsyncClient")
    async def test_load_connection_error(self, mock_client):
        """Test a transport failure becomes a DocumentSourceError."""
        _mock_get(mock_client, side_effect=httpx.ConnectError("refused"))

        with pytest.raises(DocumentSourceError, match="request failed"):
            await UrlDocumentSource("https://x.test/a.pdf").load()


class TestLocalSources:
    """Test cases for in-memory sources and surfaces."""

    async def test_pdf_bytes_source(self):
        """Test in-memory PDF bytes are returned as is."""
        content = _pdf()
        document = await PdfBytesSource(content, title="Upload").load()
        assert document.pdf_bytes == content
        assert document.title == "Upload"

    def test_pdf_bytes_source_empty(self):
        """Test empty uploads are rejected."""
        with pytest.raises(DocumentSourceError):
            PdfBytesSource(b"")

    async def test_text_source(self):
        """Test text content and a blank title default."""
        document = await TextDocumentSource("  ", "Hello").load()
        assert document.is_pdf is False
        assert document.text == "Hello"
        assert document.title == "Untitled Document"

    async def test_pdf_rendering_surface(self):
        """Test page count and sizes come from the PDF."""
        surface = PdfRenderingSurface(_pdf(pages=2))
        assert surface.page_count == 2
        assert await surface.page_size(2) == PageSize(width=612, height=792)
        with pytest.raises(IndexError):
            await surface.page_size(3)

    async def test_text_rendering_surface(self):
        """Test a text document is one A4 page."""
        surface = TextRenderingSurface()
        assert surface.page_count == 1
        assert await surface.page_size(1) == PageSize(width=595, height=842)
        with pytest.raises(IndexError):
            await surface.page_size(2)
