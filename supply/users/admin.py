from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import User, WarehouseAssignment


class WarehouseAssignmentInline(admin.TabularInline):
    model = WarehouseAssignment
    extra = 0


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ["username", "role", "department_id", "is_global_warehouse_supervisor", "is_active"]
    list_filter = ["role", "is_active", "is_global_warehouse_supervisor"]
    search_fields = ["username", "first_name", "last_name", "phone"]
    fieldsets = BaseUserAdmin.fieldsets + (
        ("Supply roles", {"fields": ("role", "phone", "department_id", "is_global_warehouse_supervisor")}),
    )
    inlines = [WarehouseAssignmentInline]
