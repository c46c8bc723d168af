"""Ordered collection of document fields with derived page membership."""

from collections.abc import Iterator
from typing import Optional

from fieldsign.core.coordinates import page_for_field_top
from fieldsign.core.geometry import PageGeometryTable
from fieldsign.models.document import DocumentField, SignedData
from fieldsign.utils.logger import logger


class FieldNotFoundError(Exception):
    """Raised when a field id is not in the store."""

    pass


class DuplicateFieldError(Exception):
    """Raised when inserting a field whose id is already taken."""

    pass


class PageMembershipError(Exception):
    """Raised when a field's cached page number disagrees with its position."""

    pass


class FieldStore:
    """Fields in insertion order.

    Every insert and move recomputes ``page_number`` from ``y`` against the
    current geometry, so membership is cached derived data and cannot drift.
    While the geometry cannot resolve page heights the cached value is kept
    and recomputed once it can.
    """

    def __init__(self, geometry: PageGeometryTable):
        self._geometry = geometry
        self._fields: list[DocumentField] = []

    @property
    def geometry(self) -> PageGeometryTable:
        return self._geometry

    def replace_geometry(self, geometry: PageGeometryTable) -> None:
        """Swap in a rebuilt geometry table and recompute page membership."""
        self._geometry = geometry
        if geometry.can_resolve:
            self.refresh_pages()
        else:
            logger.debug("Page membership refresh deferred until page heights are known")

    def _page_for(self, y: float) -> Optional[int]:
        if not self._geometry.can_resolve:
            return None
        return page_for_field_top(self._geometry, y)

    def add(self, field: DocumentField) -> DocumentField:
        if any(existing.id == field.id for existing in self._fields):
            raise DuplicateFieldError(f"Field {field.id} already exists")
        field.page_number = self._page_for(field.y) or field.page_number
        self._fields.append(field)
        logger.info(
            f"Field {field.id} ({field.type.value}) added on page {field.page_number} "
            f"at ({field.x:.1f}, {field.y:.1f})"
        )
        return field

    def extend(self, fields: list[DocumentField]) -> list[DocumentField]:
        return [self.add(field) for field in fields]

    def get(self, field_id: str) -> DocumentField:
        for field in self._fields:
            if field.id == field_id:
                return field
        raise FieldNotFoundError(f"Field {field_id} not found")

    def find(self, field_id: str) -> Optional[DocumentField]:
        try:
            return self.get(field_id)
        except FieldNotFoundError:
            return None

    def move(self, field_id: str, x: float, y: float) -> DocumentField:
        field = self.get(field_id)
        field.x = x
        field.y = y
        field.page_number = self._page_for(y) or field.page_number
        return field

    def resize(self, field_id: str, width: float, height: float) -> DocumentField:
        if width <= 0 or height <= 0:
            raise ValueError("Field size must be positive")
        field = self.get(field_id)
        field.width = width
        field.height = height
        return field

    def assign_recipient(self, field_id: str, recipient_id: str) -> DocumentField:
        field = self.get(field_id)
        field.recipient_id = recipient_id
        return field

    def set_required(self, field_id: str, required: bool) -> DocumentField:
        field = self.get(field_id)
        field.required = required
        return field

    def attach_signed_data(self, field_id: str, signed_data: SignedData) -> DocumentField:
        """Attach a signed value; any previous value is dropped, not shared."""
        field = self.get(field_id)
        field.signed_data = signed_data
        logger.info(f"Signed data {signed_data.id} ({signed_data.kind.value}) attached to {field_id}")
        return field

    def clear_signed_data(self, field_id: str) -> DocumentField:
        field = self.get(field_id)
        field.signed_data = None
        return field

    def remove(self, field_id: str) -> DocumentField:
        field = self.get(field_id)
        self._fields.remove(field)
        logger.info(f"Field {field_id} removed")
        return field

    def remove_for_recipient(self, recipient_id: str) -> int:
        """Delete every field assigned to a recipient. Returns the number removed."""
        kept = [f for f in self._fields if f.recipient_id != recipient_id]
        removed = len(self._fields) - len(kept)
        self._fields = kept
        if removed:
            logger.info(f"Removed {removed} field(s) of recipient {recipient_id}")
        return removed

    def on_page(self, page_number: int) -> list[DocumentField]:
        return [f for f in self._fields if f.page_number == page_number]

    def signed_fields(self) -> list[DocumentField]:
        return [f for f in self._fields if f.signed_data is not None]

    def grouped_by_page(self, signed_only: bool = False) -> dict[int, list[DocumentField]]:
        """Fields keyed by page number, pages in ascending order."""
        groups: dict[int, list[DocumentField]] = {}
        source = self.signed_fields() if signed_only else self._fields
        for field in source:
            groups.setdefault(field.page_number, []).append(field)
        return dict(sorted(groups.items()))

    def refresh_pages(self) -> None:
        for field in self._fields:
            field.page_number = self._page_for(field.y) or field.page_number

    def check_consistency(self) -> None:
        """Raise if any field's page number disagrees with its position."""
        if not self._geometry.can_resolve:
            return
        mismatched = [
            f"{f.id}: cached page {f.page_number}, position says {self._page_for(f.y)}"
            for f in self._fields
            if f.page_number != self._page_for(f.y)
        ]
        if mismatched:
            raise PageMembershipError("; ".join(mismatched))

    def __iter__(self) -> Iterator[DocumentField]:
        return iter(list(self._fields))

    def __len__(self) -> int:
        return len(self._fields)

    def __contains__(self, field_id: object) -> bool:
        return any(f.id == field_id for f in self._fields)
