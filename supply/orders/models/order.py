"""
Order model for the supply ordering lifecycle.
"""

import uuid
from django.db import models
from django.db.models import Max
from django.conf import settings
from django.utils import timezone


class OrderStatus(models.TextChoices):
    """Order status enumeration with workflow states."""
    PENDING = 'PENDING', 'Pending'
    APPROVED = 'APPROVED', 'Approved'
    PREPARING = 'PREPARING', 'Preparing'
    READY = 'READY', 'Ready'
    DELIVERED = 'DELIVERED', 'Delivered'
    REJECTED = 'REJECTED', 'Rejected'


TERMINAL_STATUSES = (OrderStatus.DELIVERED, OrderStatus.REJECTED)
EDITABLE_ITEM_STATUSES = (OrderStatus.PENDING, OrderStatus.APPROVED)


class Order(models.Model):
    """
    A department's request for items from a warehouse.

    Tracks the lifecycle from creation to delivery. ``version`` is bumped on
    every mutation so that writes based on a stale snapshot can be detected.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    sequence = models.PositiveBigIntegerField(
        unique=True,
        editable=False,
        help_text="Insertion sequence, source of the order number"
    )
    order_number = models.CharField(
        max_length=50,
        unique=True,
        editable=False,
        help_text="Human readable order number (auto-generated)"
    )

    # Departments and warehouses are managed by another service
    department_id = models.UUIDField(
        help_text="Requesting department"
    )
    warehouse_id = models.UUIDField(
        null=True,
        blank=True,
        help_text="Warehouse the order is routed to (set at creation or approval)"
    )

    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
        help_text="Current order status in the lifecycle"
    )
    version = models.PositiveIntegerField(default=1)

    notes = models.TextField(
        blank=True,
        help_text="Order notes"
    )
    rejection_reason = models.TextField(blank=True)

    # Audit fields
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='created_orders',
        help_text="User who created the order"
    )
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='approved_orders',
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    prepared_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='prepared_orders',
    )
    prepared_at = models.DateTimeField(null=True, blank=True)
    delivered_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='delivered_orders',
    )
    delivered_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now, editable=False)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-created_at', 'sequence']
        indexes = [
            models.Index(fields=['status', 'created_at'], name='order_status_created_idx'),
            models.Index(fields=['department_id', 'status'], name='order_department_status_idx'),
            models.Index(fields=['warehouse_id', 'status'], name='order_warehouse_status_idx'),
            models.Index(fields=['created_at'], name='order_created_idx'),
        ]

    def __str__(self):
        return f"Order {self.order_number} ({self.status})"

    @classmethod
    def next_sequence(cls) -> int:
        current = cls.objects.aggregate(top=Max('sequence'))['top']
        return (current or 0) + 1

    @staticmethod
    def format_order_number(sequence: int) -> str:
        prefix = settings.SUPPLY_ORDERS['ORDER_NUMBER_PREFIX']
        return f"{prefix}-{sequence:06d}"

    def save(self, *args, **kwargs):
        """Override save to derive the order number from the sequence."""
        if not self.sequence:
            self.sequence = Order.next_sequence()
        if not self.order_number:
            self.order_number = Order.format_order_number(self.sequence)
        super().save(*args, **kwargs)

    @property
    def is_terminal(self):
        return self.status in TERMINAL_STATUSES

    @property
    def items_editable(self):
        """Items can change only before reconciliation."""
        return self.status in EDITABLE_ITEM_STATUSES

    @property
    def is_prepared(self):
        """Check if a reconciliation has been recorded."""
        return self.prepared_at is not None
