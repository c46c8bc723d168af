"""Duplicate a field to every other page at the same distance from the page bottom."""

from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from fieldsign.config import settings
from fieldsign.core.coordinates import absolute_y, page_for_field_top, relative_y
from fieldsign.core.field_store import FieldStore
from fieldsign.models.document import DocumentField
from fieldsign.utils.logger import logger


class DuplicationResult(BaseModel):
    """Outcome of a duplication; zero duplicates is a valid result."""

    source_id: str
    duplicated_count: int = 0
    fields: list[DocumentField] = Field(default_factory=list)
    message: str = ""


def _has_equivalent(
    store: FieldStore,
    source: DocumentField,
    page_number: int,
    target_relative_y: float,
    tolerance: float,
) -> bool:
    geometry = store.geometry
    return any(
        existing.type == source.type
        and existing.recipient_id == source.recipient_id
        and abs(existing.x - source.x) < tolerance
        and abs(relative_y(geometry, existing.y, page_number) - target_relative_y) < tolerance
        for existing in store.on_page(page_number)
    )


def duplicate_to_all_pages(
    store: FieldStore, field_id: str, tolerance: Optional[float] = None
) -> DuplicationResult:
    """Copy a field onto every other page, anchored to the page bottom.

    Pages that already hold a field of the same type and recipient within
    ``tolerance`` of the target position are skipped, so running this twice
    adds nothing the second time.
    """
    tolerance = settings.duplicate_tolerance if tolerance is None else tolerance
    geometry = store.geometry
    source = store.get(field_id)

    if geometry.total_pages < 2:
        logger.info(f"Field {field_id} not duplicated: document has a single page")
        return DuplicationResult(
            source_id=field_id, message="Document has only one page, nothing to duplicate"
        )

    source_page = source.page_number
    source_relative_y = relative_y(geometry, source.y, source_page)
    distance_from_bottom = geometry.height(source_page) - (source_relative_y + source.height)
    logger.debug(
        f"Duplicating {field_id}: page {source_page}, relative y {source_relative_y}, "
        f"distance from bottom {distance_from_bottom}"
    )

    new_fields = []
    for page_number in range(1, geometry.total_pages + 1):
        if page_number == source_page:
            continue

        target_relative_y = geometry.height(page_number) - distance_from_bottom - source.height
        target_absolute_y = max(0.0, absolute_y(geometry, target_relative_y, page_number))
        # Clamping and tall fields can move the copy off the intended page
        placed_page = page_for_field_top(geometry, target_absolute_y)
        placed_relative_y = relative_y(geometry, target_absolute_y, placed_page)

        if _has_equivalent(store, source, placed_page, placed_relative_y, tolerance):
            logger.debug(f"Page {placed_page} already has an equivalent of {field_id}, skipping")
            continue

        new_fields.append(
            DocumentField(
                id=f"{source.id}-page-{page_number}-{uuid4().hex[:8]}",
                type=source.type,
                x=source.x,
                y=target_absolute_y,
                width=source.width,
                height=source.height,
                recipient_id=source.recipient_id,
                required=source.required,
                page_number=placed_page,
                signed_data=(
                    source.signed_data.model_copy(deep=True) if source.signed_data else None
                ),
            )
        )

    store.extend(new_fields)
    count = len(new_fields)
    if count:
        message = (
            f"Field duplicated to {count} page{'s' if count != 1 else ''} "
            f"at the same distance from bottom"
        )
    else:
        message = "No new pages to duplicate to (fields may already exist at this position)"
    logger.info(f"Duplication of {field_id}: {message}")

    return DuplicationResult(
        source_id=field_id, duplicated_count=count, fields=new_fields, message=message
    )
