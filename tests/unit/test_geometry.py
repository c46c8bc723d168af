"""Unit tests for page geometry and coordinate conversion."""

import pytest

from fieldsign.core.coordinates import (
    absolute_y,
    document_to_viewport,
    page_for_absolute_y,
    page_for_field_top,
    page_offset,
    relative_y,
    total_height,
    viewport_to_document,
)
from fieldsign.core.geometry import GeometryUnavailableError, PageGeometryTable
from fieldsign.models.document import PageSize


def _table(*heights: float, width: float = 600.0) -> PageGeometryTable:
    return PageGeometryTable.from_sizes([PageSize(width=width, height=h) for h in heights])


class TestPageGeometryTable:
    """Test cases for PageGeometryTable."""

    def test_from_sizes_is_complete(self):
        """Test a table built from sizes knows every page."""
        table = _table(800, 800, 800)
        assert table.is_complete is True
        assert table.known_pages == [1, 2, 3]
        assert len(table) == 3

    def test_records_pages_out_of_order(self):
        """Test pages may finish loading in any order."""
        table = PageGeometryTable(total_pages=3)
        assert table.record_page(3, 600, 900) is False
        assert table.record_page(1, 600, 800) is False
        assert table.record_page(2, 600, 700) is True
        assert table.height(2) == 700

    def test_page_one_sets_defaults(self):
        """Test the first page's size becomes the default."""
        table = PageGeometryTable(total_pages=2)
        table.record_page(1, 612, 792)
        assert table.default_height == 792
        assert table.default_width == 612
        assert table.height(2) == 792
        assert table.width(2) == 612

    def test_explicit_default_height_kept(self):
        """Test an explicit default height is not overwritten by page 1."""
        table = PageGeometryTable(total_pages=2, default_height=1000)
        table.record_page(1, 600, 800)
        assert table.height(2) == 1000

    def test_zero_height_is_ignored(self):
        """Test a zero-height report leaves the page unknown."""
        table = PageGeometryTable(total_pages=2, default_height=800)
        table.record_page(1, 600, 800)
        assert table.record_page(2, 600, 0) is False
        assert table.is_known(2) is False
        assert table.height(2) == 800

    def test_out_of_range_page(self):
        """Test recording a page outside the document."""
        table = PageGeometryTable(total_pages=2)
        with pytest.raises(ValueError, match="outside"):
            table.record_page(3, 600, 800)

    def test_height_unavailable(self):
        """Test a height lookup with no data and no default."""
        table = PageGeometryTable(total_pages=2)
        with pytest.raises(GeometryUnavailableError):
            table.height(1)

    def test_width_unknown_is_none(self):
        """Test width is None when nothing is known."""
        assert PageGeometryTable(total_pages=1).width(1) is None

    def test_reset_forgets_pages(self):
        """Test reset drops every recorded page."""
        table = _table(800, 800)
        table.reset(4)
        assert table.total_pages == 4
        assert table.known_pages == []
        assert table.is_complete is False

    def test_empty_table_is_not_complete(self):
        """Test a zero-page table is never complete."""
        assert PageGeometryTable().is_complete is False

    def test_can_resolve(self):
        """Test heights are resolvable once page 1 or every page is known."""
        table = PageGeometryTable(total_pages=3)
        assert table.can_resolve is False
        table.record_page(3, 600, 900)
        assert table.can_resolve is False
        table.record_page(1, 600, 800)
        assert table.can_resolve is True
        assert PageGeometryTable().can_resolve is False


class TestCoordinates:
    """Test cases for coordinate conversion functions."""

    def test_page_offset_mixed_heights(self):
        """Test cumulative offsets over pages of different heights."""
        table = _table(800, 600, 1000)
        assert page_offset(table, 1) == 0
        assert page_offset(table, 2) == 800
        assert page_offset(table, 3) == 1400
        assert total_height(table) == 2400

    def test_page_for_absolute_y(self):
        """Test page lookup inside each page."""
        table = _table(800, 600, 1000)
        assert page_for_absolute_y(table, 0) == 1
        assert page_for_absolute_y(table, 500) == 1
        assert page_for_absolute_y(table, 801) == 2
        assert page_for_absolute_y(table, 1500) == 3

    def test_boundary_belongs_to_earlier_page(self):
        """Test y exactly on a page boundary resolves to the page above it."""
        table = _table(800, 800)
        assert page_for_absolute_y(table, 800) == 1

    def test_field_top_on_boundary_belongs_to_lower_page(self):
        """Test a field whose top edge is on a boundary belongs to the page below."""
        table = _table(800, 800, 800)
        assert page_for_field_top(table, 0) == 1
        assert page_for_field_top(table, 799.5) == 1
        assert page_for_field_top(table, 800) == 2
        assert page_for_field_top(table, 1600) == 3
        assert page_for_field_top(table, 2400) == 3
        assert page_for_field_top(table, 5000) == 3

    def test_past_the_end_is_last_page(self):
        """Test y beyond the document resolves to the last page."""
        assert page_for_absolute_y(_table(800, 800), 5000) == 2

    def test_page_for_absolute_y_without_pages(self):
        """Test page lookup on a document with no pages."""
        with pytest.raises(GeometryUnavailableError):
            page_for_absolute_y(PageGeometryTable(), 10)

    def test_page_for_absolute_y_is_monotonic(self):
        """Test larger y never maps to an earlier page."""
        table = _table(800, 600, 1000, 700)
        pages = [page_for_absolute_y(table, y) for y in range(0, 3200, 25)]
        assert pages == sorted(pages)

    def test_relative_absolute_round_trip(self):
        """Test relative and absolute y invert each other on every page."""
        table = _table(800, 600, 1000)
        for page_number in (1, 2, 3):
            for rel in (0.0, 123.5, 599.0):
                assert relative_y(table, absolute_y(table, rel, page_number), page_number) == rel

    def test_unknown_page_uses_default_height(self):
        """Test offsets fall back to the default height for unloaded pages."""
        table = PageGeometryTable(total_pages=3)
        table.record_page(1, 600, 800)
        assert page_offset(table, 3) == 1600
        assert page_for_absolute_y(table, 1700) == 3

    def test_viewport_to_document(self):
        """Test pointer normalization divides out scale and adds scroll."""
        assert viewport_to_document(300, 200, 800, 2.0) == (150.0, 500.0)

    def test_document_to_viewport_inverts(self):
        """Test the document to viewport mapping inverts normalization."""
        x, y = viewport_to_document(300, 200, 800, 2.0)
        assert document_to_viewport(x, y, 800, 2.0) == (300.0, 200.0)

    def test_non_positive_scale(self):
        """Test conversions reject a zero scale."""
        with pytest.raises(ValueError, match="Scale"):
            viewport_to_document(1, 1, 0, 0)
        with pytest.raises(ValueError, match="Scale"):
            document_to_viewport(1, 1, 0, -1)
