"""
Append-only audit records for the order lifecycle.

Both models reference orders by id rather than by foreign key so the trail
survives deletion of the order it describes.
"""

import uuid
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.conf import settings
from django.utils import timezone

from .order import OrderStatus


class AppendOnlyQuerySet(models.QuerySet):

    def update(self, **kwargs):
        raise ValueError(f"{self.model.__name__} records are append-only")

    def delete(self):
        raise ValueError(f"{self.model.__name__} records are append-only")


class AppendOnlyModel(models.Model):
    """Rows can be inserted, never changed or removed."""

    objects = AppendOnlyQuerySet.as_manager()

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError(f"{self.__class__.__name__} records are append-only")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError(f"{self.__class__.__name__} records are append-only")


class HistoryAction(models.TextChoices):
    CREATED = 'created', 'Created'
    STATUS_CHANGED = 'status_changed', 'Status changed'
    PREPARED = 'prepared', 'Prepared'
    UPDATED = 'updated', 'Updated'
    DELETED = 'deleted', 'Deleted'


class OrderHistory(AppendOnlyModel):
    """
    One entry per status transition and per preparation action on an order.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order_id = models.UUIDField(db_index=True)
    order_number = models.CharField(max_length=50)

    action = models.CharField(max_length=20, choices=HistoryAction.choices)
    from_status = models.CharField(max_length=20, choices=OrderStatus.choices, blank=True)
    to_status = models.CharField(max_length=20, choices=OrderStatus.choices)

    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='order_history',
        help_text="User who performed the action"
    )
    actor_role = models.CharField(max_length=20, blank=True)

    timestamp = models.DateTimeField(default=timezone.now)
    note = models.TextField(blank=True)
    metadata = models.JSONField(default=dict, blank=True, encoder=DjangoJSONEncoder)

    class Meta:
        ordering = ['timestamp', 'id']
        verbose_name_plural = 'order history'
        indexes = [
            models.Index(fields=['order_id', 'timestamp'], name='history_order_time_idx'),
            models.Index(fields=['action', 'timestamp'], name='history_action_time_idx'),
        ]

    def __str__(self):
        return f"{self.order_number}: {self.from_status or '-'} -> {self.to_status} by {self.actor_id}"


class PreparationAction(models.TextChoices):
    ITEM_CHECKED = 'ITEM_CHECKED', 'Item checked'
    QUANTITY_ADJUSTED = 'QUANTITY_ADJUSTED', 'Quantity adjusted'
    ITEM_UNAVAILABLE = 'ITEM_UNAVAILABLE', 'Item unavailable'
    ITEM_AVAILABLE = 'ITEM_AVAILABLE', 'Item available'
    ORDER_COMPLETED = 'ORDER_COMPLETED', 'Order completed'


class PreparationLog(AppendOnlyModel):
    """
    Per-item record of what a warehouse could supply for an order.

    Feeds the unavailable-items report.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order_id = models.UUIDField(db_index=True)
    order_number = models.CharField(max_length=50)
    warehouse_id = models.UUIDField(null=True, blank=True)

    prepared_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='preparation_logs',
    )
    item_name = models.CharField(max_length=255)
    action = models.CharField(max_length=20, choices=PreparationAction.choices)
    requested_qty = models.PositiveIntegerField(null=True, blank=True)
    available_qty = models.PositiveIntegerField(null=True, blank=True)
    notes = models.TextField(blank=True)
    timestamp = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['timestamp', 'id']
        indexes = [
            models.Index(fields=['order_id', 'timestamp'], name='preplog_order_time_idx'),
            models.Index(fields=['action', 'timestamp'], name='preplog_action_time_idx'),
            models.Index(fields=['warehouse_id', 'action'], name='preplog_warehouse_action_idx'),
        ]

    def __str__(self):
        return f"{self.order_number} {self.item_name}: {self.action}"
