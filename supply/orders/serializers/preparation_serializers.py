"""
Preparation serializers.
"""

from rest_framework import serializers

from ..models import PreparationLog


class PreparedItemSerializer(serializers.Serializer):
    """Reads PreparedItem values and accepts submitted ones."""

    item_id = serializers.UUIDField(required=False, allow_null=True)
    name = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    itemName = serializers.CharField(required=False, allow_blank=True, allow_null=True, write_only=True)
    unit = serializers.CharField(required=False, allow_blank=True)
    requested_quantity = serializers.IntegerField(required=False, allow_null=True)
    # Not range-checked: out of range values are clamped by the service
    available_quantity = serializers.IntegerField(required=False, allow_null=True)
    is_unavailable = serializers.BooleanField(required=False, default=False)
    is_shortage = serializers.BooleanField(read_only=True)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class PrepareOrderSerializer(serializers.Serializer):
    items = PreparedItemSerializer(many=True, allow_empty=False)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    version = serializers.IntegerField(required=False, min_value=1)


class MarkReadySerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    version = serializers.IntegerField(required=False, min_value=1)


class ItemPreparationSerializer(serializers.Serializer):
    """One item checked during step-by-step preparation."""

    item_name = serializers.CharField(required=False, allow_blank=True)
    itemName = serializers.CharField(required=False, allow_blank=True)
    is_unavailable = serializers.BooleanField(required=False, default=False)
    requested_qty = serializers.IntegerField(required=False, min_value=0, default=0)
    available_qty = serializers.IntegerField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class PreparationLogSerializer(serializers.ModelSerializer):
    """Serializer for PreparationLog model."""

    prepared_by_name = serializers.CharField(source='prepared_by.username', read_only=True)

    class Meta:
        model = PreparationLog
        fields = [
            'id', 'order_id', 'order_number', 'warehouse_id', 'prepared_by',
            'prepared_by_name', 'item_name', 'action', 'requested_qty',
            'available_qty', 'notes', 'timestamp'
        ]
        read_only_fields = fields
