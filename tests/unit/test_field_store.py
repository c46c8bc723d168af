"""Unit tests for the field store."""

import pytest

from fieldsign.core.field_store import (
    DuplicateFieldError,
    FieldNotFoundError,
    FieldStore,
    PageMembershipError,
)
from fieldsign.core.geometry import PageGeometryTable
from fieldsign.models.document import DocumentField, FieldType, PageSize, SignedData


def _store(*heights: float) -> FieldStore:
    return FieldStore(PageGeometryTable.from_sizes([PageSize(width=600, height=h) for h in heights]))


def _field(field_id: str, y: float, recipient_id: str = "r1", **kwargs) -> DocumentField:
    return DocumentField.with_default_size(
        kwargs.pop("type", FieldType.SIGNATURE), id=field_id, x=50, y=y, recipient_id=recipient_id, **kwargs
    )


class TestFieldStore:
    """Test cases for FieldStore."""

    def test_add_derives_page_number(self):
        """Test the page number is computed from y, ignoring the given value."""
        store = _store(800, 800, 800)
        field = store.add(_field("f1", 1700, page_number=1))
        assert field.page_number == 3

    def test_add_rejects_duplicate_id(self):
        """Test inserting the same id twice."""
        store = _store(800)
        store.add(_field("f1", 100))
        with pytest.raises(DuplicateFieldError):
            store.add(_field("f1", 200))

    def test_insertion_order_preserved(self):
        """Test iteration follows insertion order, not position."""
        store = _store(800, 800)
        store.add(_field("b", 1000))
        store.add(_field("a", 10))
        assert [f.id for f in store] == ["b", "a"]

    def test_move_recomputes_page(self):
        """Test moving a field across a boundary reassigns its page."""
        store = _store(800, 800)
        store.add(_field("f1", 100))
        moved = store.move("f1", 60, 900)
        assert moved.page_number == 2
        assert (moved.x, moved.y) == (60, 900)
        store.check_consistency()

    def test_get_missing(self):
        """Test looking up an unknown field id."""
        store = _store(800)
        with pytest.raises(FieldNotFoundError):
            store.get("missing")
        assert store.find("missing") is None

    def test_resize_rejects_non_positive(self):
        """Test a field cannot be resized to zero."""
        store = _store(800)
        store.add(_field("f1", 100))
        with pytest.raises(ValueError):
            store.resize("f1", 0, 10)

    def test_attach_replaces_signed_data(self):
        """Test attaching signed data replaces the previous value."""
        store = _store(800)
        store.add(_field("f1", 100))
        first = SignedData.typed("Jane")
        second = SignedData.typed("Jane Doe")
        store.attach_signed_data("f1", first)
        store.attach_signed_data("f1", second)
        assert store.get("f1").signed_data is second
        assert store.signed_fields() == [store.get("f1")]

        store.clear_signed_data("f1")
        assert store.signed_fields() == []

    def test_remove_for_recipient(self):
        """Test removing a recipient cascades to its fields only."""
        store = _store(800, 800)
        store.add(_field("a", 100, recipient_id="r1"))
        store.add(_field("b", 900, recipient_id="r2"))
        store.add(_field("c", 300, recipient_id="r1"))

        assert store.remove_for_recipient("r1") == 2
        assert [f.id for f in store] == ["b"]
        assert store.remove_for_recipient("r1") == 0

    def test_on_page_and_grouping(self):
        """Test page filtering and grouping by page."""
        store = _store(800, 800)
        store.add(_field("a", 900))
        store.add(_field("b", 100))
        store.attach_signed_data("a", SignedData.typed("x"))

        assert [f.id for f in store.on_page(1)] == ["b"]
        assert list(store.grouped_by_page()) == [1, 2]
        assert list(store.grouped_by_page(signed_only=True)) == [2]

    def test_replace_geometry_refreshes_pages(self):
        """Test rebuilt geometry re-derives every field's page."""
        store = _store(800, 800)
        store.add(_field("f1", 900))
        assert store.get("f1").page_number == 2

        store.replace_geometry(PageGeometryTable.from_sizes([PageSize(width=600, height=1000)] * 2))
        assert store.get("f1").page_number == 1

    def test_check_consistency_detects_drift(self):
        """Test a hand-edited page number is reported."""
        store = _store(800, 800)
        store.add(_field("f1", 900))
        store.get("f1").page_number = 1
        with pytest.raises(PageMembershipError, match="f1"):
            store.check_consistency()

    def test_empty_geometry_defaults_to_page_one(self):
        """Test fields added before any geometry land on page 1."""
        store = FieldStore(PageGeometryTable())
        assert store.add(_field("f1", 5000)).page_number == 1

    def test_contains_and_len(self):
        """Test membership by id and length."""
        store = _store(800)
        store.add(_field("f1", 100))
        assert "f1" in store
        assert "f2" not in store
        assert len(store) == 1

    def test_top_edge_on_boundary_belongs_to_lower_page(self):
        """Test a field starting exactly at a page's top is on that page."""
        store = _store(800, 800)
        assert store.add(_field("f1", 800)).page_number == 2
        assert store.move("f1", 50, 0).page_number == 1
        store.check_consistency()

    def test_unresolvable_geometry_keeps_pages(self):
        """Test swapping in a table without heights keeps membership until heights arrive."""
        store = _store(800, 800)
        store.add(_field("f1", 900))

        fresh = PageGeometryTable(total_pages=2)
        store.replace_geometry(fresh)
        assert store.get("f1").page_number == 2
        store.check_consistency()

        fresh.record_page(1, 600, 1000)
        store.refresh_pages()
        assert store.get("f1").page_number == 1
