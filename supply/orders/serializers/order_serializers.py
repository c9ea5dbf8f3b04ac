"""
Order serializers for the supply ordering lifecycle.

Input serializers only check shapes; business rules live in the services.
"""

from rest_framework import serializers

from ..models import Order, OrderItem, OrderHistory, OrderStatus, OrderUnit


class OrderItemSerializer(serializers.ModelSerializer):
    """Serializer for OrderItem model."""

    ordered_quantity = serializers.IntegerField(read_only=True)
    is_shortage = serializers.BooleanField(read_only=True)

    class Meta:
        model = OrderItem
        fields = [
            'id', 'position', 'name', 'name_missing', 'quantity', 'unit',
            'notes', 'requested_quantity', 'ordered_quantity',
            'is_unavailable', 'is_shortage'
        ]
        read_only_fields = fields


class OrderItemInputSerializer(serializers.Serializer):
    """Incoming order item. ``itemName`` is accepted as an alias of ``name``."""

    name = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=255)
    itemName = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=255)
    quantity = serializers.IntegerField()
    unit = serializers.ChoiceField(choices=OrderUnit.choices, required=False, default=OrderUnit.PIECE)
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_quantity(self, value):
        """Validate requested quantity."""
        if value <= 0:
            raise serializers.ValidationError("Quantity must be greater than 0")
        return value


class OrderCreateSerializer(serializers.Serializer):
    """Serializer for creating orders."""

    department_id = serializers.UUIDField(required=False, allow_null=True)
    warehouse_id = serializers.UUIDField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    items = OrderItemInputSerializer(many=True, allow_empty=False)


class OrderUpdateSerializer(serializers.Serializer):
    """Serializer for updating orders."""

    notes = serializers.CharField(required=False, allow_blank=True)
    items = OrderItemInputSerializer(many=True, required=False, allow_empty=False)
    version = serializers.IntegerField(required=False, min_value=1)


class OrderTransitionSerializer(serializers.Serializer):
    """Serializer for status changes."""

    status = serializers.ChoiceField(choices=OrderStatus.choices)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    version = serializers.IntegerField(required=False, min_value=1)
    warehouse_id = serializers.UUIDField(required=False, allow_null=True)


class OrderListSerializer(serializers.ModelSerializer):
    """Serializer for order listing."""

    created_by_name = serializers.CharField(source='created_by.username', read_only=True)
    items_count = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'status', 'department_id', 'warehouse_id',
            'created_by', 'created_by_name', 'items_count', 'version',
            'created_at', 'updated_at'
        ]

    def get_items_count(self, obj):
        return len(obj.items.all())


class OrderDetailSerializer(serializers.ModelSerializer):
    """Serializer for order details."""

    created_by_name = serializers.CharField(source='created_by.username', read_only=True)
    items = OrderItemSerializer(many=True, read_only=True)
    warnings = serializers.SerializerMethodField()
    preparation_progress = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'status', 'version', 'department_id',
            'warehouse_id', 'notes', 'rejection_reason',
            'created_by', 'created_by_name', 'approved_by', 'approved_at',
            'prepared_by', 'prepared_at', 'delivered_by', 'delivered_at',
            'created_at', 'updated_at', 'items', 'warnings',
            'preparation_progress'
        ]

    def get_preparation_progress(self, obj):
        """Step-by-step preparation progress, while the order is being checked."""
        if obj.status != OrderStatus.APPROVED:
            return None
        from ..services import PreparationService
        return PreparationService.preparation_progress(obj)

    def get_warnings(self, obj):
        """Items whose name was replaced by the placeholder."""
        return [
            {
                'code': 'MISSING_NAME',
                'item_id': str(item.id),
                'position': item.position,
                'message': f"Item {item.position + 1} was submitted without a name",
            }
            for item in obj.items.all()
            if item.name_missing
        ]


class OrderHistorySerializer(serializers.ModelSerializer):
    """Serializer for order history entries."""

    actor_name = serializers.CharField(source='actor.username', read_only=True)

    class Meta:
        model = OrderHistory
        fields = [
            'id', 'order_id', 'order_number', 'action', 'from_status',
            'to_status', 'actor', 'actor_name', 'actor_role', 'timestamp',
            'note', 'metadata'
        ]
        read_only_fields = fields
