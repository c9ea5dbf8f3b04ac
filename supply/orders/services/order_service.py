"""
Order Service for the supply ordering lifecycle.

Handles order creation, status transitions, edits and deletion. Every
mutation runs in one database transaction together with the history entry
that records it.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from users.models import UserRole

from ..models import Order, OrderItem, OrderStatus, OrderUnit, HistoryAction, canonicalize_item_name
from ..exceptions import (
    AuthorizationException, ConflictException, InvalidStateException,
    NotFoundException, ValidationException
)
from .history_service import HistoryService
from .workflow import validate_order_workflow

logger = logging.getLogger(__name__)


def parse_uuid(value, field: str) -> Optional[uuid.UUID]:
    """Parse an optional UUID, raising ValidationException on garbage."""
    if value in (None, ""):
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise ValidationException(f"{field} must be a valid UUID", {field: str(value)})


def parse_quantity(value) -> Optional[int]:
    """Return ``value`` as an int when it is a whole number, else None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        quantity = int(value)
    except (TypeError, ValueError):
        return None
    if quantity != value and str(quantity) != str(value).strip():
        return None
    return quantity


class OrderService:
    """Service class for order operations."""

    @staticmethod
    def clean_items(items_data: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Validate and normalize incoming order items.

        Args:
            items_data: Raw items, each with ``name`` or ``itemName``,
                ``quantity`` and optionally ``unit`` and ``notes``

        Returns:
            Normalized item dicts ready to become OrderItem rows

        Raises:
            ValidationException: If the list is empty or an item is invalid
        """
        if not items_data:
            raise ValidationException("Order must contain at least one item")

        cleaned = []
        errors = {}
        for index, item_data in enumerate(items_data):
            if not isinstance(item_data, dict):
                errors[index] = "Item must be an object"
                continue

            quantity = parse_quantity(item_data.get('quantity'))
            if quantity is None or quantity <= 0:
                errors[index] = "Quantity must be a whole number greater than 0"
                continue

            unit = (item_data.get('unit') or OrderUnit.PIECE).strip().lower()
            if unit not in OrderUnit.values:
                errors[index] = f"Unit must be one of {', '.join(OrderUnit.values)}"
                continue

            name, name_missing = canonicalize_item_name(item_data)
            if name_missing:
                logger.warning(f"Item {index} has no name, using placeholder '{name}'")

            cleaned.append({
                'name': name,
                'name_missing': name_missing,
                'quantity': quantity,
                'unit': unit,
                'notes': item_data.get('notes') or '',
            })

        if errors:
            raise ValidationException("Order contains invalid items", {'items': errors})
        return cleaned

    @staticmethod
    def _create_items(order: Order, cleaned_items: List[Dict[str, Any]]) -> None:
        for position, item in enumerate(cleaned_items):
            OrderItem.objects.create(order=order, position=position, **item)

    @staticmethod
    def create_order(actor, order_data: Dict[str, Any]) -> Order:
        """
        Create a new order with items.

        Args:
            actor: User creating the order (department user or admin)
            order_data: ``items``, optional ``notes``, ``warehouse_id`` and,
                for admins, ``department_id``

        Returns:
            Created Order instance in PENDING

        Raises:
            AuthorizationException: If the actor may not create orders
            ValidationException: If order data is invalid
            ConflictException: If a concurrent creation took the same number
        """
        if actor.role not in (UserRole.DEPARTMENT, UserRole.ADMIN):
            raise AuthorizationException(
                f"Role {actor.role} cannot create orders",
                role=actor.role,
                required_role=UserRole.DEPARTMENT
            )

        requested_department = parse_uuid(order_data.get('department_id'), 'department_id')
        if actor.role == UserRole.DEPARTMENT:
            if actor.department_id is None:
                raise ValidationException("User is not attached to a department")
            if requested_department is not None and requested_department != actor.department_id:
                raise AuthorizationException(
                    "Department users can only order for their own department",
                    role=actor.role,
                    required_role=UserRole.ADMIN
                )
            department_id = actor.department_id
        else:
            if requested_department is None:
                raise ValidationException("department_id is required", {'department_id': 'required'})
            department_id = requested_department

        warehouse_id = parse_uuid(order_data.get('warehouse_id'), 'warehouse_id')
        cleaned_items = OrderService.clean_items(order_data.get('items') or [])

        try:
            with transaction.atomic():
                order = Order.objects.create(
                    department_id=department_id,
                    warehouse_id=warehouse_id,
                    notes=order_data.get('notes') or '',
                    created_by=actor,
                )
                OrderService._create_items(order, cleaned_items)

                HistoryService.append(
                    order=order,
                    action=HistoryAction.CREATED,
                    from_status='',
                    to_status=OrderStatus.PENDING,
                    actor=actor,
                    note=f"Order created with {len(cleaned_items)} items",
                )
        except IntegrityError as exc:
            logger.warning(f"Order number collision while creating order: {exc}")
            raise ConflictException("Another order was created at the same time, retry the request")

        logger.info(f"Order {order.order_number} created by {actor} for department {department_id}")
        return order

    @staticmethod
    def lock_order(order_id) -> Order:
        """
        Fetch an order and lock its row for the rest of the transaction.

        Raises:
            NotFoundException: If the order does not exist
        """
        try:
            parsed = uuid.UUID(str(order_id))
        except (TypeError, ValueError):
            raise NotFoundException("Order", order_id)
        try:
            return Order.objects.select_for_update().get(id=parsed)
        except Order.DoesNotExist:
            raise NotFoundException("Order", order_id)

    @staticmethod
    def check_version(order: Order, expected_version: Optional[int]) -> None:
        """Refuse to act on a snapshot older than the stored order."""
        if expected_version is None:
            return
        if int(expected_version) != order.version:
            logger.warning(
                f"Stale write on order {order.order_number}: "
                f"expected version {expected_version}, found {order.version}"
            )
            raise ConflictException(
                f"Order {order.order_number} was modified by someone else, reload and retry",
                {'expected_version': int(expected_version), 'current_version': order.version}
            )

    @staticmethod
    def save_order(order: Order, fields: List[str]) -> None:
        """
        Persist ``fields`` only if nobody changed the order since it was read.

        Bumps ``version`` and ``updated_at``.

        Raises:
            ConflictException: If the stored version moved on
        """
        now = timezone.now()
        values = {field: getattr(order, field) for field in fields}
        values['version'] = F('version') + 1
        values['updated_at'] = now

        updated = Order.objects.filter(pk=order.pk, version=order.version).update(**values)
        if not updated:
            logger.warning(f"Concurrent modification detected on order {order.order_number}")
            raise ConflictException(
                f"Order {order.order_number} was modified concurrently, reload and retry",
                {'version': order.version}
            )

        order.version += 1
        order.updated_at = now

    @staticmethod
    def apply_transition(order: Order, new_status: str, actor, note: str = "",
                         action: str = HistoryAction.STATUS_CHANGED,
                         metadata: Dict[str, Any] = None,
                         extra_fields: List[str] = None) -> Order:
        """
        Move a locked, validated order to ``new_status`` and record it.

        Callers run this inside ``transaction.atomic()`` after the workflow
        checks; the status write and the history entry commit together.
        """
        old_status = order.status
        now = timezone.now()
        fields = ['status'] + list(extra_fields or [])

        order.status = new_status
        if new_status == OrderStatus.APPROVED:
            order.approved_by = actor
            order.approved_at = now
            fields += ['approved_by', 'approved_at']
        elif new_status == OrderStatus.REJECTED:
            order.rejection_reason = note or ''
            fields += ['rejection_reason']
        elif new_status == OrderStatus.PREPARING:
            order.prepared_by = actor
            order.prepared_at = now
            fields += ['prepared_by', 'prepared_at']
        elif new_status == OrderStatus.DELIVERED:
            order.delivered_by = actor
            order.delivered_at = now
            fields += ['delivered_by', 'delivered_at']

        OrderService.save_order(order, fields)

        HistoryService.append(
            order=order,
            action=action,
            from_status=old_status,
            to_status=new_status,
            actor=actor,
            note=note,
            metadata=metadata,
        )

        logger.info(f"Order {order.order_number} moved {old_status} -> {new_status} by {actor}")
        return order

    @staticmethod
    def _route_for_approval(order: Order, actor, warehouse_id) -> List[str]:
        """Settle the warehouse an order is approved into. Returns changed fields."""
        requested = parse_uuid(warehouse_id, 'warehouse_id')

        if requested is None:
            if order.warehouse_id is not None:
                return []
            assigned = actor.get_warehouse_ids()
            if len(assigned) != 1:
                raise ValidationException(
                    "warehouse_id is required to approve an order that is not routed to a warehouse",
                    {'warehouse_id': 'required'}
                )
            requested = assigned[0]

        if requested == order.warehouse_id:
            return []
        if not actor.supervises_warehouse(requested):
            raise AuthorizationException(
                f"User {actor.username} does not supervise warehouse {requested}",
                role=actor.role,
                required_role=UserRole.WAREHOUSE
            )
        order.warehouse_id = requested
        return ['warehouse_id']

    @staticmethod
    def transition(order_id: str, new_status: str, actor, note: str = "",
                   expected_version: Optional[int] = None, warehouse_id=None) -> Order:
        """
        Apply one edge of the order workflow.

        Args:
            order_id: Order UUID
            new_status: Target status
            actor: User performing the transition
            note: Free text stored on the history entry (rejection reason
                for REJECTED)
            expected_version: Version the caller's snapshot was read at
            warehouse_id: Warehouse to route the order to on approval

        Returns:
            Updated Order instance

        Raises:
            InvalidTransitionException: If the edge does not exist
            AuthorizationException: If the actor cannot perform the edge
            InvalidStateException: If the edge needs another operation
            ConflictException: If the caller's snapshot is stale
        """
        with transaction.atomic():
            order = OrderService.lock_order(order_id)
            OrderService.check_version(order, expected_version)

            validate_order_workflow(order, new_status, actor)

            if new_status == OrderStatus.PREPARING:
                raise InvalidStateException(
                    f"Order {order.order_number} enters PREPARING only by committing a preparation",
                    current_status=order.status,
                    required_status=OrderStatus.APPROVED
                )
            if new_status == OrderStatus.READY and not order.is_prepared:
                raise InvalidStateException(
                    f"Order {order.order_number} has no recorded preparation",
                    current_status=order.status
                )

            extra_fields = []
            if new_status == OrderStatus.APPROVED:
                extra_fields = OrderService._route_for_approval(order, actor, warehouse_id)

            return OrderService.apply_transition(order, new_status, actor, note, extra_fields=extra_fields)

    @staticmethod
    def approve_order(order_id: str, approved_by, note: str = "", warehouse_id=None) -> Order:
        """Approve a pending order, optionally routing it to a warehouse."""
        return OrderService.transition(
            order_id, OrderStatus.APPROVED, approved_by, note or "Order approved", warehouse_id=warehouse_id
        )

    @staticmethod
    def reject_order(order_id: str, rejected_by, reason: str = "") -> Order:
        """Reject a pending order."""
        return OrderService.transition(order_id, OrderStatus.REJECTED, rejected_by, reason)

    @staticmethod
    def mark_delivered(order_id: str, driver, note: str = "") -> Order:
        """Record delivery of a ready order."""
        return OrderService.transition(order_id, OrderStatus.DELIVERED, driver, note or "Order delivered")

    @staticmethod
    def update_order(order_id: str, actor, update_data: Dict[str, Any]) -> Order:
        """
        Update order notes and, before reconciliation, its items.

        Admins may edit any non-terminal order; department users only their
        own department's orders while still PENDING.

        Raises:
            AuthorizationException: If the actor may not edit the order
            InvalidStateException: If the order can no longer be edited
            ValidationException: If nothing editable was supplied
        """
        with transaction.atomic():
            order = OrderService.lock_order(order_id)
            OrderService.check_version(order, update_data.get('version'))

            if actor.role == UserRole.DEPARTMENT:
                if order.department_id != actor.department_id or order.status != OrderStatus.PENDING:
                    raise AuthorizationException(
                        f"User {actor.username} cannot edit order {order.order_number}",
                        role=actor.role,
                        required_role=UserRole.ADMIN
                    )
            elif actor.role != UserRole.ADMIN:
                raise AuthorizationException(
                    f"Role {actor.role} cannot edit orders",
                    role=actor.role,
                    required_role=UserRole.ADMIN
                )

            if order.is_terminal:
                raise InvalidStateException(
                    f"Order {order.order_number} cannot be updated in status {order.status}",
                    current_status=order.status
                )

            old_values = {}
            new_values = {}
            fields = []

            if 'notes' in update_data:
                old_values['notes'] = order.notes
                order.notes = update_data.get('notes') or ''
                new_values['notes'] = order.notes
                fields.append('notes')

            cleaned_items = None
            if 'items' in update_data:
                if not order.items_editable:
                    raise InvalidStateException(
                        f"Items of order {order.order_number} are frozen in status {order.status}",
                        current_status=order.status
                    )
                cleaned_items = OrderService.clean_items(update_data.get('items') or [])
                old_values['items'] = [
                    {'name': item.name, 'quantity': item.quantity, 'unit': item.unit}
                    for item in order.items.all()
                ]
                new_values['items'] = [
                    {'name': item['name'], 'quantity': item['quantity'], 'unit': item['unit']}
                    for item in cleaned_items
                ]

            if not old_values:
                raise ValidationException("Nothing to update: supply notes or items")

            OrderService.save_order(order, fields)
            if cleaned_items is not None:
                order.items.all().delete()
                OrderService._create_items(order, cleaned_items)

            HistoryService.append(
                order=order,
                action=HistoryAction.UPDATED,
                from_status=order.status,
                to_status=order.status,
                actor=actor,
                note="Order information updated",
                metadata={'old_values': old_values, 'new_values': new_values},
            )

        logger.info(f"Order {order.order_number} updated by {actor}")
        return order

    @staticmethod
    def delete_order(order_id: str, actor) -> None:
        """
        Delete an order. Its history stays behind.

        Raises:
            AuthorizationException: If the actor is not an admin
        """
        if actor.role != UserRole.ADMIN:
            raise AuthorizationException(
                f"Role {actor.role} cannot delete orders",
                role=actor.role,
                required_role=UserRole.ADMIN
            )

        with transaction.atomic():
            order = OrderService.lock_order(order_id)
            HistoryService.append(
                order=order,
                action=HistoryAction.DELETED,
                from_status=order.status,
                to_status=order.status,
                actor=actor,
                note="Order deleted",
                metadata={'department_id': order.department_id, 'warehouse_id': order.warehouse_id},
            )
            order_number = order.order_number
            order.delete()

        logger.info(f"Order {order_number} deleted by {actor}")


__all__ = ['OrderService', 'parse_uuid', 'parse_quantity']
