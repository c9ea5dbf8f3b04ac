"""
Order lifecycle models
"""

from .order import Order, OrderStatus, TERMINAL_STATUSES, EDITABLE_ITEM_STATUSES
from .order_item import OrderItem, OrderUnit, canonicalize_item_name
from .audit import OrderHistory, HistoryAction, PreparationLog, PreparationAction

__all__ = [
    # Order models
    'Order', 'OrderStatus', 'TERMINAL_STATUSES', 'EDITABLE_ITEM_STATUSES',
    'OrderItem', 'OrderUnit', 'canonicalize_item_name',

    # Audit
    'OrderHistory', 'HistoryAction',
    'PreparationLog', 'PreparationAction',
]
