"""Per-page natural size table populated as pages finish loading."""

from typing import Optional

from fieldsign.models.document import PageSize
from fieldsign.utils.logger import logger


class GeometryUnavailableError(Exception):
    """Raised when a coordinate operation runs before page sizes are known."""

    pass


class PageGeometryTable:
    """Natural width and height per 1-based page index.

    Pages may be recorded in any order. A page is known once its size has
    been recorded; unknown pages resolve to the default height. The table is
    complete when every page ``1..total_pages`` is known.
    """

    def __init__(
        self,
        total_pages: int = 0,
        default_height: Optional[float] = None,
        default_width: Optional[float] = None,
    ):
        self._pages: dict[int, PageSize] = {}
        self.total_pages = 0
        self.default_height = default_height
        self.default_width = default_width
        self.reset(total_pages)

    @classmethod
    def from_sizes(cls, sizes: list[PageSize]) -> "PageGeometryTable":
        """Build a complete table from sizes listed in page order."""
        table = cls(total_pages=len(sizes))
        for page_number, size in enumerate(sizes, 1):
            table.record_page(page_number, size.width, size.height)
        return table

    def reset(self, total_pages: int) -> None:
        """Forget all recorded pages and expect ``total_pages`` new ones."""
        if total_pages < 0:
            raise ValueError("Page count must not be negative")
        self._pages = {}
        self.total_pages = total_pages

    def record_page(self, page_number: int, width: float, height: float) -> bool:
        """Store a page's natural size. Returns True once the table is complete."""
        if not 1 <= page_number <= self.total_pages:
            raise ValueError(f"Page {page_number} is outside 1..{self.total_pages}")
        if width <= 0 or height <= 0:
            # Zero-height pages would collapse the cumulative walk; leave the
            # page unknown so it resolves to the default instead.
            logger.warning(
                f"Ignoring non-positive size {width}x{height} reported for page {page_number}"
            )
            return self.is_complete

        self._pages[page_number] = PageSize(width=width, height=height)
        if page_number == 1:
            if not self.default_height:
                self.default_height = height
            if not self.default_width:
                self.default_width = width

        logger.debug(f"Page {page_number} size recorded: {width}x{height}")
        return self.is_complete

    @property
    def is_complete(self) -> bool:
        return self.total_pages > 0 and len(self._pages) == self.total_pages

    @property
    def can_resolve(self) -> bool:
        """True when every page has a usable height, recorded or default."""
        if self.total_pages < 1:
            return False
        return self.is_complete or bool(self.default_height and self.default_height > 0)

    @property
    def known_pages(self) -> list[int]:
        return sorted(self._pages)

    def is_known(self, page_number: int) -> bool:
        return page_number in self._pages

    def size(self, page_number: int) -> Optional[PageSize]:
        return self._pages.get(page_number)

    def height(self, page_number: int) -> float:
        """Natural height of a page, falling back to the default height."""
        page = self._pages.get(page_number)
        if page is not None:
            return page.height
        if self.default_height and self.default_height > 0:
            return self.default_height
        raise GeometryUnavailableError(
            f"Height of page {page_number} is unknown and no default height is set"
        )

    def width(self, page_number: int) -> Optional[float]:
        """Natural width of a page, or the default width, or None if neither is known."""
        page = self._pages.get(page_number)
        if page is not None:
            return page.width
        if self.default_width and self.default_width > 0:
            return self.default_width
        return None

    def __len__(self) -> int:
        return self.total_pages

    def __repr__(self) -> str:
        return (
            f"PageGeometryTable(total_pages={self.total_pages}, "
            f"known={self.known_pages}, default_height={self.default_height})"
        )
