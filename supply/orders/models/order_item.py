"""
OrderItem model for the supply ordering lifecycle.
"""

import uuid
from typing import Any, Dict, Tuple
from django.conf import settings
from django.db import models


class OrderUnit(models.TextChoices):
    PIECE = 'piece', 'Piece'
    BOX = 'box', 'Box'
    CARTON = 'carton', 'Carton'
    KG = 'kg', 'Kilogram'
    LITER = 'liter', 'Liter'


def canonicalize_item_name(data: Dict[str, Any]) -> Tuple[str, bool]:
    """
    Resolve the ``name`` / ``itemName`` aliases to a single display name.

    The non-empty alias wins (``name`` first). When both are empty a
    placeholder is substituted instead of rejecting the item; the second
    element of the result tells the caller that happened.
    """
    for key in ('name', 'itemName', 'item_name'):
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip(), False
    return settings.SUPPLY_ORDERS['MISSING_ITEM_NAME'], True


class OrderItem(models.Model):
    """
    A requested line item within an order.

    Before reconciliation ``quantity`` is the requested amount. Committing a
    preparation copies it to ``requested_quantity`` and replaces it with the
    quantity the warehouse can actually supply.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(
        'Order',
        on_delete=models.CASCADE,
        related_name='items',
        help_text="Order this item belongs to"
    )
    position = models.PositiveIntegerField(
        help_text="Display order within the order"
    )

    name = models.CharField(max_length=255)
    name_missing = models.BooleanField(
        default=False,
        help_text="Name was missing on input and replaced by a placeholder"
    )
    quantity = models.PositiveIntegerField()
    unit = models.CharField(
        max_length=10,
        choices=OrderUnit.choices,
        default=OrderUnit.PIECE
    )
    notes = models.TextField(blank=True)

    # Reconciliation results
    requested_quantity = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Originally requested quantity, recorded on preparation"
    )
    is_unavailable = models.BooleanField(default=False)

    class Meta:
        ordering = ['order', 'position']
        unique_together = ['order', 'position']

    def __str__(self):
        return f"{self.name} - {self.quantity} {self.unit}"

    @property
    def ordered_quantity(self):
        """Quantity the department asked for, before or after reconciliation."""
        if self.requested_quantity is None:
            return self.quantity
        return self.requested_quantity

    @property
    def is_shortage(self):
        """Partially fulfilled: something but not everything is available."""
        if self.requested_quantity is None or self.is_unavailable:
            return False
        return 0 < self.quantity < self.requested_quantity
