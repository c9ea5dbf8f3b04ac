"""
Django admin configuration for supply orders.
"""

from django.contrib import admin
from .models import Order, OrderItem, OrderHistory, PreparationLog


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ['id', 'name_missing', 'requested_quantity', 'is_unavailable']


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['order_number', 'status', 'department_id', 'warehouse_id', 'created_by', 'created_at']
    list_filter = ['status', 'created_at']
    search_fields = ['order_number', 'created_by__username']
    readonly_fields = ['id', 'sequence', 'order_number', 'status', 'version', 'created_at', 'updated_at']
    inlines = [OrderItemInline]


class ReadOnlyAdmin(admin.ModelAdmin):
    """Audit records are append-only and cannot be edited from the admin."""

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(OrderHistory)
class OrderHistoryAdmin(ReadOnlyAdmin):
    list_display = ['order_number', 'action', 'from_status', 'to_status', 'actor', 'timestamp']
    list_filter = ['action', 'to_status', 'timestamp']
    search_fields = ['order_number', 'actor__username']


@admin.register(PreparationLog)
class PreparationLogAdmin(ReadOnlyAdmin):
    list_display = ['order_number', 'item_name', 'action', 'requested_qty', 'available_qty', 'prepared_by', 'timestamp']
    list_filter = ['action', 'timestamp']
    search_fields = ['order_number', 'item_name']
