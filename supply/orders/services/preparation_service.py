"""
Preparation Service.

Persists what the reconciliation engine produces: committing a preparation,
marking the order ready, and the per-item preparation log with its
unavailable-items report.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from django.conf import settings
from django.core.paginator import Paginator
from django.db import transaction

from users.models import UserRole

from ..exceptions import AuthorizationException, InvalidStateException, ValidationException
from ..filters import PreparationLogFilter
from ..models import (
    Order, OrderStatus, HistoryAction, PreparationAction, PreparationLog, canonicalize_item_name
)
from . import reconciliation
from .order_service import OrderService, parse_quantity
from .query_service import OrderQueryService, filter_data
from .reconciliation import PreparedItem
from .workflow import OrderWorkflow

logger = logging.getLogger(__name__)

REPORT_SORT_FIELDS = {
    'date': 'timestamp',
    'item_name': 'item_name',
    'order_number': 'order_number',
}


class PreparationService:
    """Service class for order preparation."""

    @staticmethod
    def begin_preparation(order_id: str, actor) -> List[PreparedItem]:
        """
        Start preparing an approved order on behalf of ``actor``.

        Raises:
            NotFoundException: If the actor cannot see the order
            InvalidStateException: If the order is not APPROVED
            AuthorizationException: If the actor is not staff of its warehouse
        """
        order = PreparationService._load(order_id, actor)
        items = reconciliation.begin_preparation(order)
        OrderWorkflow.validate_actor(order, OrderStatus.PREPARING, actor)
        logger.info(f"Preparation of order {order.order_number} started by {actor}")
        return items

    @staticmethod
    def _load(order_id, actor=None) -> Order:
        return OrderQueryService.get_order(order_id, actor)

    @staticmethod
    def _submitted_id(item: Union[PreparedItem, Dict[str, Any]]) -> Optional[str]:
        if isinstance(item, PreparedItem):
            return item.item_id
        return str(item['item_id']) if item.get('item_id') else None

    @staticmethod
    def _match_items(order: Order, items: List[Union[PreparedItem, Dict[str, Any]]]) -> List[tuple]:
        """Pair each order item with its prepared counterpart, one-to-one."""
        order_items = list(order.items.all())
        if len(items) != len(order_items):
            raise ValidationException(
                f"Preparation has {len(items)} items but order {order.order_number} has {len(order_items)}",
                {'items': 'must match the order items one-to-one'}
            )

        submitted_ids = [PreparationService._submitted_id(item) for item in items]
        if all(submitted_ids):
            by_id = {str(item.id): item for item in order_items}
            if len(set(submitted_ids)) != len(submitted_ids) or set(submitted_ids) != set(by_id):
                raise ValidationException(
                    f"Prepared items do not match the items of order {order.order_number}",
                    {'items': 'unknown or duplicated item_id'}
                )
            return [(by_id[item_id], item) for item_id, item in zip(submitted_ids, items)]

        return list(zip(order_items, items))

    @staticmethod
    def _log_action(prepared: PreparedItem, previous_action: Optional[str] = None) -> str:
        if prepared.is_unavailable:
            return PreparationAction.ITEM_UNAVAILABLE
        if prepared.available_quantity < prepared.requested_quantity:
            return PreparationAction.QUANTITY_ADJUSTED
        if previous_action == PreparationAction.ITEM_UNAVAILABLE:
            return PreparationAction.ITEM_AVAILABLE
        return PreparationAction.ITEM_CHECKED

    @staticmethod
    def commit_preparation(order_id: str, items: List[Union[PreparedItem, Dict[str, Any]]], actor,
                           notes: str = "", expected_version: Optional[int] = None) -> Order:
        """
        Persist a reconciliation and move the order to PREPARING.

        Requested quantities are taken from the stored order; the submitted
        available quantities are clamped to ``0..requested``.

        Args:
            order_id: Order UUID
            items: One PreparedItem (or equivalent dict) per order item
            actor: Warehouse user committing the preparation
            notes: Stored on the history entry
            expected_version: Version the preparation was started from

        Returns:
            Updated Order instance

        Raises:
            ValidationException: If all items are unavailable or the items
                do not match the order
            InvalidStateException: If the order is no longer APPROVED
            AuthorizationException: If the actor cannot prepare this order
            ConflictException: If the order changed in the meantime
        """
        with transaction.atomic():
            order = OrderService.lock_order(order_id)
            OrderService.check_version(order, expected_version)

            if order.status != OrderStatus.APPROVED:
                raise InvalidStateException(
                    f"Order {order.order_number} must be APPROVED to commit a preparation, not {order.status}",
                    current_status=order.status,
                    required_status=OrderStatus.APPROVED
                )
            OrderWorkflow.validate_actor(order, OrderStatus.PREPARING, actor)

            pairs = PreparationService._match_items(order, items)
            reconciled = []
            for order_item, prepared in pairs:
                requested = order_item.ordered_quantity
                if not isinstance(prepared, PreparedItem):
                    prepared = PreparedItem.from_dict(prepared, requested=requested)
                available = 0 if prepared.is_unavailable else reconciliation.clamp_quantity(
                    prepared.available_quantity, requested
                )
                reconciled.append((order_item, PreparedItem(
                    item_id=str(order_item.id),
                    name=order_item.name,
                    unit=order_item.unit,
                    requested_quantity=requested,
                    available_quantity=available,
                    is_unavailable=prepared.is_unavailable,
                    notes=prepared.notes or order_item.notes,
                )))

            reconciliation.validate_commit([prepared for _, prepared in reconciled])

            for order_item, prepared in reconciled:
                order_item.requested_quantity = prepared.requested_quantity
                order_item.quantity = prepared.available_quantity
                order_item.is_unavailable = prepared.is_unavailable
                order_item.notes = prepared.notes
                order_item.save(update_fields=['requested_quantity', 'quantity', 'is_unavailable', 'notes'])

            summary = reconciliation.summarize([prepared for _, prepared in reconciled])
            OrderService.apply_transition(
                order,
                OrderStatus.PREPARING,
                actor,
                note=notes or "Preparation committed",
                action=HistoryAction.PREPARED,
                metadata=summary,
            )

            for _, prepared in reconciled:
                PreparationLog.objects.create(
                    order_id=order.id,
                    order_number=order.order_number,
                    warehouse_id=order.warehouse_id,
                    prepared_by=actor,
                    item_name=prepared.name,
                    action=PreparationService._log_action(prepared),
                    requested_qty=prepared.requested_quantity,
                    available_qty=prepared.available_quantity,
                    notes=prepared.notes,
                )

        if summary['shortage_items'] or summary['unavailable_items']:
            logger.warning(
                f"Order {order.order_number} prepared with {summary['shortage_items']} shortages "
                f"and {summary['unavailable_items']} unavailable items"
            )
        return order

    @staticmethod
    def mark_ready(order_id: str, actor, notes: str = "", expected_version: Optional[int] = None) -> Order:
        """
        Move a prepared order to READY.

        Raises:
            InvalidStateException: If the order is not PREPARING
        """
        with transaction.atomic():
            order = OrderService.lock_order(order_id)
            OrderService.check_version(order, expected_version)

            if order.status != OrderStatus.PREPARING or not order.is_prepared:
                raise InvalidStateException(
                    f"Order {order.order_number} must be PREPARING to be marked ready, not {order.status}",
                    current_status=order.status,
                    required_status=OrderStatus.PREPARING
                )
            OrderWorkflow.validate_actor(order, OrderStatus.READY, actor)

            OrderService.apply_transition(order, OrderStatus.READY, actor, note=notes or "Order ready for delivery")

            items = list(order.items.all())
            PreparationLog.objects.create(
                order_id=order.id,
                order_number=order.order_number,
                warehouse_id=order.warehouse_id,
                prepared_by=actor,
                item_name=f"{len(items)} items",
                action=PreparationAction.ORDER_COMPLETED,
                requested_qty=sum(item.ordered_quantity for item in items),
                available_qty=sum(item.quantity for item in items),
                notes=notes or '',
            )
        return order

    @staticmethod
    def log_item_preparation(order_id: str, actor, item_data: Dict[str, Any]) -> PreparationLog:
        """
        Record the check of a single item while the order is still APPROVED.

        Used by step-by-step preparation; the order itself does not change.

        Raises:
            InvalidStateException: If the order is not APPROVED
            ValidationException: If the item name is missing
        """
        order = PreparationService._load(order_id, actor)
        if order.status != OrderStatus.APPROVED:
            raise InvalidStateException(
                f"Items of order {order.order_number} can only be logged while APPROVED",
                current_status=order.status,
                required_status=OrderStatus.APPROVED
            )
        OrderWorkflow.validate_actor(order, OrderStatus.PREPARING, actor)

        item_name, name_missing = canonicalize_item_name(item_data)
        if name_missing:
            raise ValidationException("item_name is required", {'item_name': 'required'})

        requested = max(parse_quantity(item_data.get('requested_qty')) or 0, 0)
        is_unavailable = bool(item_data.get('is_unavailable'))
        if is_unavailable:
            available = 0
        elif item_data.get('available_qty') is None:
            available = requested
        else:
            available = reconciliation.clamp_quantity(item_data.get('available_qty'), requested)

        previous = (
            PreparationLog.objects
            .filter(order_id=order.id, item_name=item_name)
            .order_by('-timestamp', '-id')
            .values_list('action', flat=True)
            .first()
        )
        prepared = PreparedItem(
            name=item_name,
            requested_quantity=requested,
            available_quantity=available,
            is_unavailable=is_unavailable,
        )

        log = PreparationLog.objects.create(
            order_id=order.id,
            order_number=order.order_number,
            warehouse_id=order.warehouse_id,
            prepared_by=actor,
            item_name=item_name,
            action=PreparationService._log_action(prepared, previous),
            requested_qty=requested,
            available_qty=available,
            notes=item_data.get('notes') or '',
        )
        logger.info(f"Item '{item_name}' of order {order.order_number} logged as {log.action} by {actor}")
        return log

    @staticmethod
    def preparation_logs(order_id: str) -> List[PreparationLog]:
        """Preparation log of an order, oldest first."""
        order = PreparationService._load(order_id)
        return list(PreparationLog.objects.filter(order_id=order.id).select_related('prepared_by'))

    @staticmethod
    def preparation_progress(order: Order) -> Dict[str, Any]:
        """How many of the order's items already have a logged check."""
        total = order.items.count()
        logged = (
            PreparationLog.objects
            .filter(order_id=order.id)
            .exclude(action=PreparationAction.ORDER_COMPLETED)
            .values('item_name')
            .distinct()
            .count()
        )
        logged = min(logged, total)
        return {
            'total': total,
            'logged': logged,
            'has_partial_preparation': 0 < logged < total,
        }

    @staticmethod
    def unavailable_items_report(filters=None, actor=None) -> Dict[str, Any]:
        """
        Paginated report of items logged as unavailable.

        Filters: date_from, date_to, warehouse_id. Sorting: ``sort_by`` in
        date/item_name/order_number, ``sort_order`` asc/desc (default newest
        first). Paging: ``page`` (1-based) and ``limit``.
        """
        data = filter_data(filters)
        queryset = PreparationLog.objects.filter(action=PreparationAction.ITEM_UNAVAILABLE)

        if actor is not None and actor.role != UserRole.ADMIN:
            if actor.role != UserRole.WAREHOUSE:
                raise AuthorizationException(
                    f"Role {actor.role} cannot view the unavailable items report",
                    role=actor.role,
                    required_role=UserRole.WAREHOUSE
                )
            if not actor.is_global_warehouse_supervisor:
                queryset = queryset.filter(warehouse_id__in=actor.get_warehouse_ids())

        data.pop('action', None)
        queryset = PreparationLogFilter(data=data, queryset=queryset).qs

        sort_field = REPORT_SORT_FIELDS.get(data.get('sort_by'), 'timestamp')
        descending = data.get('sort_order', 'desc') != 'asc'
        queryset = queryset.select_related('prepared_by').order_by(
            f"-{sort_field}" if descending else sort_field, 'id'
        )

        limit = parse_quantity(data.get('limit'))
        if not limit or limit <= 0:
            limit = settings.SUPPLY_ORDERS['REPORT_PAGE_SIZE']
        paginator = Paginator(queryset, limit)
        page = paginator.get_page(data.get('page'))

        return {
            'logs': list(page.object_list),
            'total': paginator.count,
            'page': page.number,
            'total_pages': paginator.num_pages,
        }
