"""Pointer-driven field placement and dragging as an explicit state machine."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Optional, Union

from fieldsign.core.coordinates import (
    page_for_absolute_y,
    total_height,
    viewport_to_document,
)
from fieldsign.core.field_store import FieldStore
from fieldsign.core.geometry import GeometryUnavailableError
from fieldsign.models.document import (
    DocumentField,
    FieldType,
    PointerDelta,
    PointerEvent,
)
from fieldsign.utils.logger import logger


class PlacementStateError(Exception):
    """Raised on a transition the current state does not allow."""

    pass


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class FieldTypeArmed:
    field_type: FieldType


@dataclass(frozen=True)
class Dragging:
    field_id: str
    grab_offset: tuple[float, float]
    origin: tuple[float, float]


PlacementState = Union[Idle, FieldTypeArmed, Dragging]


class PlacementController:
    """Turns pointer events into field placements and moves.

    Transitions::

        Idle --arm(type)--> FieldTypeArmed --click--> Idle
        Idle --begin_drag--> Dragging --drag_to--> Dragging --end_drag--> Idle

    A placement click consumes the armed type; the palette has to be used
    again for the next field.
    """

    def __init__(
        self,
        store: FieldStore,
        is_geometry_ready: Callable[[], bool] = lambda: True,
        on_sign_request: Optional[Callable[[str], None]] = None,
    ):
        self._store = store
        self._is_geometry_ready = is_geometry_ready
        self._on_sign_request = on_sign_request
        self.state: PlacementState = Idle()

    @property
    def armed_type(self) -> Optional[FieldType]:
        if isinstance(self.state, FieldTypeArmed):
            return self.state.field_type
        return None

    @property
    def is_dragging(self) -> bool:
        return isinstance(self.state, Dragging)

    def arm(self, field_type: FieldType) -> PlacementState:
        """Select a field type from the palette; selecting it again disarms."""
        if isinstance(self.state, Dragging):
            raise PlacementStateError("Cannot select a field type while dragging")
        if self.armed_type == field_type:
            self.state = Idle()
        else:
            self.state = FieldTypeArmed(field_type)
        return self.state

    def disarm(self) -> None:
        if isinstance(self.state, FieldTypeArmed):
            self.state = Idle()

    def click(self, event: PointerEvent, recipient_id: str = "") -> Optional[DocumentField]:
        """Place the armed field type at the pointer.

        Returns None when nothing is armed or page geometry is not ready yet;
        in the latter case the type stays armed.
        """
        if not isinstance(self.state, FieldTypeArmed):
            return None
        if not self._is_geometry_ready():
            logger.info("Page geometry not loaded yet, ignoring placement click")
            return None

        x, y = viewport_to_document(
            event.pointer_x, event.pointer_y, event.scroll_offset, event.scale
        )
        try:
            page_number = page_for_absolute_y(self._store.geometry, y)
        except GeometryUnavailableError as e:
            logger.info(f"Ignoring placement click: {e}")
            return None

        field = DocumentField.with_default_size(
            self.state.field_type,
            x=x,
            y=y,
            recipient_id=recipient_id,
            page_number=page_number,
        )
        logger.debug(
            f"Placement click at viewport ({event.pointer_x}, {event.pointer_y}) "
            f"scroll={event.scroll_offset} scale={event.scale} -> document ({x}, {y}) page {page_number}"
        )
        self._store.add(field)
        self.state = Idle()
        return field

    def click_field(self, field_id: str) -> bool:
        """Handle a click on an existing field.

        An unsigned signature field is handed to the signing collaborator.
        Returns True when that hand-off happened.
        """
        if isinstance(self.state, Dragging):
            return False
        field = self._store.get(field_id)
        if field.type != FieldType.SIGNATURE or field.signed_data is not None:
            return False
        if self._on_sign_request is None:
            logger.warning(f"No signing collaborator registered for field {field_id}")
            return False
        self._on_sign_request(field_id)
        return True

    def begin_drag(self, field_id: str, event: PointerEvent) -> Dragging:
        if not isinstance(self.state, Idle):
            raise PlacementStateError(
                f"Cannot start dragging from state {type(self.state).__name__}"
            )
        field = self._store.get(field_id)
        px, py = viewport_to_document(
            event.pointer_x, event.pointer_y, event.scroll_offset, event.scale
        )
        self.state = Dragging(
            field_id=field_id,
            grab_offset=(px - field.x, py - field.y),
            origin=(field.x, field.y),
        )
        return self.state

    def drag_to(self, event: PointerEvent) -> DocumentField:
        if not isinstance(self.state, Dragging):
            raise PlacementStateError("No field is being dragged")
        px, py = viewport_to_document(
            event.pointer_x, event.pointer_y, event.scroll_offset, event.scale
        )
        grab_x, grab_y = self.state.grab_offset
        return self._move_clamped(self.state.field_id, px - grab_x, py - grab_y)

    def end_drag(self) -> DocumentField:
        if not isinstance(self.state, Dragging):
            raise PlacementStateError("No field is being dragged")
        field = self._store.get(self.state.field_id)
        self.state = Idle()
        return field

    def cancel_drag(self) -> DocumentField:
        """Abort a drag and put the field back where it started."""
        if not isinstance(self.state, Dragging):
            raise PlacementStateError("No field is being dragged")
        origin_x, origin_y = self.state.origin
        field = self._store.move(self.state.field_id, origin_x, origin_y)
        self.state = Idle()
        return field

    def nudge(self, field_id: str, delta: PointerDelta) -> DocumentField:
        """Move a field by a viewport-pixel delta, outside of a drag."""
        if isinstance(self.state, Dragging):
            raise PlacementStateError("Cannot move a field while a drag is in progress")
        field = self._store.get(field_id)
        return self._move_clamped(
            field_id, field.x + delta.dx / delta.scale, field.y + delta.dy / delta.scale
        )

    def _move_clamped(self, field_id: str, x: float, y: float) -> DocumentField:
        field = self._store.get(field_id)
        geometry = self._store.geometry

        max_y = total_height(geometry) - field.height
        y = max(0.0, min(y, max_y))

        page_width = geometry.width(page_for_absolute_y(geometry, y))
        if page_width is not None:
            x = min(x, page_width - field.width)
        x = max(0.0, x)

        return self._store.move(field_id, x, y)
