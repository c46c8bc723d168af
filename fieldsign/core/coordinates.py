"""Coordinate conversions between viewport, document and page space.

All functions are pure: they read a ``PageGeometryTable`` and never change
it. Document space is pixel units at scale 1.0; absolute Y treats all pages
as one vertical strip starting at the top of page 1.
"""

from fieldsign.core.geometry import GeometryUnavailableError, PageGeometryTable


def page_offset(table: PageGeometryTable, page_number: int) -> float:
    """Cumulative height of all pages strictly before ``page_number``."""
    return sum(table.height(page) for page in range(1, page_number))


def total_height(table: PageGeometryTable) -> float:
    return page_offset(table, table.total_pages + 1)


def page_for_absolute_y(table: PageGeometryTable, y: float) -> int:
    """Page whose cumulative height first meets or exceeds ``y``.

    Returns the last page when ``y`` lies beyond the end of the document.
    """
    if table.total_pages < 1:
        raise GeometryUnavailableError("Document has no pages yet")

    accumulated = 0.0
    for page_number in range(1, table.total_pages + 1):
        accumulated += table.height(page_number)
        if y <= accumulated:
            return page_number
    return table.total_pages


def page_for_field_top(table: PageGeometryTable, y: float) -> int:
    """Page owning a field whose top edge sits at ``y``.

    Same walk as :func:`page_for_absolute_y`, except that a top edge exactly
    on a page boundary belongs to the page below it, where the field's body is.
    """
    page_number = page_for_absolute_y(table, y)
    if page_number < table.total_pages and y >= page_offset(table, page_number + 1):
        return page_number + 1
    return page_number


def relative_y(table: PageGeometryTable, absolute_y: float, page_number: int) -> float:
    """Convert absolute document Y to Y measured from the top of ``page_number``."""
    return absolute_y - page_offset(table, page_number)


def absolute_y(table: PageGeometryTable, relative_y: float, page_number: int) -> float:
    """Inverse of :func:`relative_y`."""
    return page_offset(table, page_number) + relative_y


def viewport_to_document(
    pointer_x: float, pointer_y: float, scroll_offset: float, scale: float
) -> tuple[float, float]:
    """Normalize a pointer position in the scroll container to document space."""
    if scale <= 0:
        raise ValueError("Scale must be positive")
    return pointer_x / scale, (pointer_y + scroll_offset) / scale


def document_to_viewport(
    x: float, y: float, scroll_offset: float, scale: float
) -> tuple[float, float]:
    """Position of a document-space point inside the visible viewport."""
    if scale <= 0:
        raise ValueError("Scale must be positive")
    return x * scale, y * scale - scroll_offset
