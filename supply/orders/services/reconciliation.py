"""
Preparation reconciliation.

While preparing an approved order the warehouse works on a list of
``PreparedItem`` values: one per order item, carrying what was asked for and
what can actually be supplied. Nothing here touches the database; the list
is persisted in one go by ``PreparationService.commit_preparation``.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..exceptions import InvalidStateException, NotFoundException, ValidationException
from ..models import Order, OrderItem, OrderStatus, OrderUnit, canonicalize_item_name
from .order_service import parse_quantity


@dataclass
class PreparedItem:
    requested_quantity: int
    available_quantity: int
    name: str = ""
    unit: str = OrderUnit.PIECE
    item_id: Optional[str] = None
    is_unavailable: bool = False
    notes: str = ""

    @property
    def is_shortage(self) -> bool:
        """Partially available: more than nothing, less than asked."""
        return not self.is_unavailable and 0 < self.available_quantity < self.requested_quantity

    @classmethod
    def from_order_item(cls, item: OrderItem) -> "PreparedItem":
        return cls(
            item_id=str(item.id),
            name=item.name,
            unit=item.unit,
            requested_quantity=item.ordered_quantity,
            available_quantity=item.ordered_quantity,
            notes=item.notes,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any], requested: Optional[int] = None) -> "PreparedItem":
        """
        Build from submitted data; quantities are clamped, never rejected.

        ``requested`` takes precedence over a submitted ``requested_quantity``.
        When neither is known the available quantity is only floored at 0 and
        stands in for the request.
        """
        if requested is None:
            requested = parse_quantity(data.get('requested_quantity'))
            if requested is not None:
                requested = max(requested, 0)

        is_unavailable = bool(data.get('is_unavailable'))
        if is_unavailable:
            available = 0
        elif data.get('available_quantity') is None:
            available = requested or 0
        else:
            available = clamp_quantity(data.get('available_quantity'), requested)

        return cls(
            item_id=str(data['item_id']) if data.get('item_id') else None,
            name=canonicalize_item_name(data)[0],
            unit=data.get('unit') or OrderUnit.PIECE,
            requested_quantity=available if requested is None else requested,
            available_quantity=available,
            is_unavailable=is_unavailable,
            notes=data.get('notes') or '',
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'item_id': self.item_id,
            'name': self.name,
            'unit': self.unit,
            'requested_quantity': self.requested_quantity,
            'available_quantity': self.available_quantity,
            'is_unavailable': self.is_unavailable,
            'is_shortage': self.is_shortage,
            'notes': self.notes,
        }


def clamp_quantity(value, upper: Optional[int]) -> int:
    """Coerce an entered quantity into ``0..upper``; garbage becomes 0."""
    quantity = parse_quantity(value)
    if quantity is None:
        try:
            quantity = int(float(value))
        except (TypeError, ValueError, OverflowError):
            return 0
    quantity = max(quantity, 0)
    return quantity if upper is None else min(quantity, upper)


def begin_preparation(order: Order) -> List[PreparedItem]:
    """
    Start reconciling an approved order.

    Every item starts fully available. The order itself is not modified.

    Raises:
        InvalidStateException: If the order is not APPROVED
    """
    if order.status != OrderStatus.APPROVED:
        raise InvalidStateException(
            f"Order {order.order_number} must be APPROVED to prepare, not {order.status}",
            current_status=order.status,
            required_status=OrderStatus.APPROVED
        )
    return [PreparedItem.from_order_item(item) for item in order.items.all()]


def _item_at(items: List[PreparedItem], index: int) -> PreparedItem:
    if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(items):
        raise NotFoundException("Prepared item", index)
    return items[index]


def set_availability(items: List[PreparedItem], index: int, quantity) -> PreparedItem:
    """
    Record how many units of item ``index`` are available.

    Negative or unparsable input becomes 0 and amounts above the request
    are capped. An item marked unavailable stays at 0.
    """
    item = _item_at(items, index)
    if not item.is_unavailable:
        item.available_quantity = clamp_quantity(quantity, item.requested_quantity)
    return item


def mark_unavailable(items: List[PreparedItem], index: int, unavailable: bool = True) -> PreparedItem:
    """Flag item ``index`` as unavailable, or restore it to fully available."""
    item = _item_at(items, index)
    item.is_unavailable = bool(unavailable)
    item.available_quantity = 0 if item.is_unavailable else item.requested_quantity
    return item


def shortages(items: List[PreparedItem]) -> List[PreparedItem]:
    return [item for item in items if item.is_shortage]


def summarize(items: List[PreparedItem]) -> Dict[str, int]:
    """Counts recorded on the history entry of a committed preparation."""
    unavailable = sum(1 for item in items if item.is_unavailable)
    shortage = len(shortages(items))
    return {
        'total_items': len(items),
        'available_items': len(items) - unavailable,
        'unavailable_items': unavailable,
        'shortage_items': shortage,
        'fully_available_items': len(items) - unavailable - shortage,
    }


def validate_commit(items: List[PreparedItem]) -> None:
    """
    Raises:
        ValidationException: If there is nothing to commit or nothing available
    """
    if not items:
        raise ValidationException("Preparation must contain the order's items")
    if all(item.is_unavailable for item in items):
        raise ValidationException("At least one item must be available")
