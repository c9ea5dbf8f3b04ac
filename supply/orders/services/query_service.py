"""
Read side of the order lifecycle: filtered and role-scoped order listings.
"""

import logging
import uuid
from typing import Any, Dict, List

from django.db.models import Q, QuerySet

from users.models import UserRole

from ..exceptions import NotFoundException
from ..filters import OrderFilter
from ..models import Order, OrderStatus

logger = logging.getLogger(__name__)

DRIVER_STATUSES = (OrderStatus.READY, OrderStatus.DELIVERED)
COMPLETED_STATUSES = (OrderStatus.DELIVERED, OrderStatus.REJECTED)


def filter_data(filters) -> Dict[str, Any]:
    if not filters:
        return {}
    # QueryDict.items() yields the last value of each key
    return dict(filters.items())


class OrderQueryService:
    """Lists orders. Results are newest first, ties in insertion order."""

    @staticmethod
    def base_queryset() -> QuerySet:
        return Order.objects.select_related('created_by').prefetch_related('items')

    @staticmethod
    def scope_for(actor) -> QuerySet:
        """Orders the actor is allowed to see."""
        queryset = OrderQueryService.base_queryset()

        if actor.role == UserRole.ADMIN:
            return queryset
        if actor.role == UserRole.DEPARTMENT:
            return queryset.filter(department_id=actor.department_id)
        if actor.role == UserRole.WAREHOUSE:
            if actor.is_global_warehouse_supervisor:
                return queryset
            # Unrouted pending orders are visible to every warehouse until approved
            return queryset.filter(
                Q(warehouse_id__in=actor.get_warehouse_ids()) |
                Q(warehouse_id__isnull=True, status=OrderStatus.PENDING)
            )
        if actor.role == UserRole.DRIVER:
            return queryset.filter(status__in=DRIVER_STATUSES)

        logger.warning(f"User {actor} has unknown role {actor.role}, showing no orders")
        return queryset.none()

    @staticmethod
    def list_orders(filters=None, queryset: QuerySet = None) -> List[Order]:
        """
        List orders matching ``filters``.

        Supported keys: status, department_id, warehouse_id, created_by,
        date_from, date_to. Empty or invalid values are ignored.
        """
        if queryset is None:
            queryset = OrderQueryService.base_queryset()
        filterset = OrderFilter(data=filter_data(filters), queryset=queryset)
        if filterset.errors:
            logger.debug(f"Ignoring invalid order filters: {dict(filterset.errors)}")
        return list(filterset.qs)

    @staticmethod
    def list_by_role(actor, filters=None) -> List[Order]:
        """List the orders visible to ``actor``, narrowed by ``filters``."""
        return OrderQueryService.list_orders(filters, OrderQueryService.scope_for(actor))

    @staticmethod
    def list_completed(filters=None, actor=None) -> List[Order]:
        """
        DELIVERED and REJECTED orders merged into one newest-first list.

        A ``status`` in ``filters`` is overridden.
        """
        queryset = OrderQueryService.scope_for(actor) if actor is not None else None
        results = []
        for status in COMPLETED_STATUSES:
            data = filter_data(filters)
            data['status'] = status
            results.extend(OrderQueryService.list_orders(data, queryset))
        # sorted() is stable, so equal timestamps keep insertion order
        results.sort(key=lambda order: order.sequence)
        return sorted(results, key=lambda order: order.created_at, reverse=True)

    @staticmethod
    def get_order(order_id, actor=None) -> Order:
        """
        Fetch one order, scoped to what ``actor`` may see when given.

        Raises:
            NotFoundException: If the order does not exist or is out of scope
        """
        try:
            parsed = uuid.UUID(str(order_id))
        except (TypeError, ValueError):
            raise NotFoundException("Order", order_id)

        queryset = OrderQueryService.scope_for(actor) if actor is not None else OrderQueryService.base_queryset()
        try:
            return queryset.get(id=parsed)
        except Order.DoesNotExist:
            raise NotFoundException("Order", order_id)
