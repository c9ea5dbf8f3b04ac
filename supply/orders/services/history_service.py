"""
History service: the append-only trail of everything that happens to an order.
"""

import logging
import uuid
from typing import Any, Dict, List

from ..exceptions import NotFoundException
from ..models import Order, OrderHistory

logger = logging.getLogger(__name__)


class HistoryService:
    """Writes and reads OrderHistory entries."""

    @staticmethod
    def append(order: Order, action: str, from_status: str, to_status: str,
               actor, note: str = "", metadata: Dict[str, Any] = None) -> OrderHistory:
        """
        Append one history entry.

        Must be called inside the transaction that applies the change it
        records; any database error propagates so that the change rolls back
        with it.
        """
        entry = OrderHistory.objects.create(
            order_id=order.id,
            order_number=order.order_number,
            action=action,
            from_status=from_status or "",
            to_status=to_status,
            actor=actor,
            actor_role=getattr(actor, 'role', ''),
            note=note or "",
            metadata=metadata or {},
        )
        logger.debug(f"History {action} appended for order {order.order_number}")
        return entry

    @staticmethod
    def history_for(order_id) -> List[OrderHistory]:
        """
        Return the order's history, oldest first.

        Entries outlive deleted orders, so an id is only unknown when there is
        neither an order nor any history for it.
        """
        try:
            order_id = uuid.UUID(str(order_id))
        except (TypeError, ValueError):
            raise NotFoundException("Order", order_id)

        entries = list(OrderHistory.objects.filter(order_id=order_id).select_related('actor'))
        if not entries and not Order.objects.filter(id=order_id).exists():
            raise NotFoundException("Order", order_id)
        return entries
