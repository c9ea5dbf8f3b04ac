"""
Supply Order Services
"""

from .workflow import OrderWorkflow, validate_order_workflow
from .history_service import HistoryService
from .order_service import OrderService
from .query_service import OrderQueryService
from .reconciliation import PreparedItem
from .preparation_service import PreparationService

__all__ = [
    # Workflow
    'OrderWorkflow', 'validate_order_workflow',

    # Services
    'HistoryService', 'OrderService', 'OrderQueryService',
    'PreparedItem', 'PreparationService',
]
