"""Page size probing and asynchronous geometry loading."""

import asyncio
import io
from typing import TYPE_CHECKING, Optional

import pdfplumber
from PyPDF2 import PdfReader

from fieldsign.core.geometry import PageGeometryTable
from fieldsign.models.document import PageSize
from fieldsign.utils.logger import logger

if TYPE_CHECKING:
    from fieldsign.sources.abstractions import IRenderingSurface


class PageProbeError(Exception):
    """Raised when page sizes cannot be read from a PDF."""

    pass


class PageProbe:
    """Reads natural page sizes (PDF points, rotation applied) from PDF bytes.

    pdfplumber is tried first; PyPDF2 reads the media boxes directly when
    pdfplumber cannot parse the file.
    """

    def read_sizes(self, pdf_bytes: bytes) -> list[PageSize]:
        """Return page sizes in page order.

        Raises:
            PageProbeError: If neither reader can parse the document or it has no pages
        """
        if not pdf_bytes:
            raise PageProbeError("PDF content is empty")

        try:
            sizes = self._read_with_pdfplumber(pdf_bytes)
        except Exception as e:
            logger.warning(f"pdfplumber could not read page sizes: {e}, trying PyPDF2")
            sizes = self._read_with_pypdf2(pdf_bytes)

        if not sizes:
            raise PageProbeError("PDF has no pages")

        logger.info(f"Probed {len(sizes)} page size(s)")
        return sizes

    def _read_with_pdfplumber(self, pdf_bytes: bytes) -> list[PageSize]:
        sizes = []
        with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
            for page_num, page in enumerate(pdf.pages, 1):
                sizes.append(PageSize(width=float(page.width), height=float(page.height)))
                logger.debug(f"Page {page_num}: {page.width}x{page.height} (pdfplumber)")
        return sizes

    def _read_with_pypdf2(self, pdf_bytes: bytes) -> list[PageSize]:
        try:
            reader = PdfReader(io.BytesIO(pdf_bytes))
            sizes = []
            for page_num, page in enumerate(reader.pages, 1):
                width = float(page.mediabox.width)
                height = float(page.mediabox.height)
                if (page.rotation or 0) % 180 == 90:
                    width, height = height, width
                sizes.append(PageSize(width=width, height=height))
                logger.debug(f"Page {page_num}: {width}x{height} (PyPDF2)")
            return sizes
        except Exception as e:
            logger.error(f"PyPDF2 could not read page sizes: {e}")
            raise PageProbeError(f"Unable to read page sizes: {e}") from e


async def load_geometry(
    surface: "IRenderingSurface",
    default_height: Optional[float] = None,
    table: Optional[PageGeometryTable] = None,
) -> PageGeometryTable:
    """Query every page size concurrently and record results as they arrive.

    Pages may complete in any order; the table is considered stable once the
    number of recorded pages reaches the page count. An existing ``table`` is
    reset and refilled rather than merged into.
    """
    total = surface.page_count
    if table is None:
        table = PageGeometryTable(total_pages=total, default_height=default_height)
    else:
        table.reset(total)
        table.default_height = default_height
        table.default_width = None

    async def measure(page_number: int) -> tuple[int, PageSize]:
        return page_number, await surface.page_size(page_number)

    for completed in asyncio.as_completed([measure(n) for n in range(1, total + 1)]):
        page_number, size = await completed
        table.record_page(page_number, size.width, size.height)

    if table.is_complete:
        logger.info(f"Page geometry loaded for {total} page(s)")
    else:
        missing = sorted(set(range(1, total + 1)) - set(table.known_pages))
        logger.warning(f"Page geometry incomplete, no usable size for pages {missing}")
    return table
