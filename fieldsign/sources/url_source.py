"""Document source that downloads an existing PDF over HTTP."""

import httpx

from fieldsign.config import settings
from fieldsign.models.document import SourceDocument
from fieldsign.sources.abstractions import DocumentSourceError, IDocumentSource
from fieldsign.utils.logger import logger

PDF_MAGIC = b"%PDF"


class UrlDocumentSource(IDocumentSource):
    """Fetches PDF bytes from a URL on every load."""

    def __init__(self, url: str, title: str = "", timeout: float | None = None):
        self.url = url
        self.title = title
        self.timeout = timeout or settings.document_fetch_timeout

    async def load(self) -> SourceDocument:
        logger.info(f"Fetching source document from {self.url}")
        try:
            async with httpx.AsyncClient(follow_redirects=True) as client:
                response = await client.get(self.url, timeout=self.timeout)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Source document request failed: status {e.response.status_code}")
            raise DocumentSourceError(
                f"Source document request failed with status {e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            logger.error(f"Source document request failed: {e}")
            raise DocumentSourceError(f"Source document request failed: {e}") from e

        content = response.content
        if content.lstrip()[:4] != PDF_MAGIC:
            raise DocumentSourceError(f"Content at {self.url} is not a PDF document")

        logger.info(f"Fetched {len(content)} bytes from {self.url}")
        return SourceDocument(title=self.title or self._title_from_url(), pdf_bytes=content)

    def _title_from_url(self) -> str:
        name = httpx.URL(self.url).path.rsplit("/", 1)[-1]
        return name.rsplit(".", 1)[0] if "." in name else name
