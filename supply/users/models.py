from django.contrib.auth.models import AbstractUser
from django.db import models


class UserRole(models.TextChoices):
    ADMIN = "ADMIN", "Admin"
    WAREHOUSE = "WAREHOUSE", "Warehouse Staff"
    DEPARTMENT = "DEPARTMENT", "Department"
    DRIVER = "DRIVER", "Driver"


class User(AbstractUser):
    role = models.CharField(max_length=20, choices=UserRole.choices, default=UserRole.DEPARTMENT)
    phone = models.CharField(max_length=20, blank=True)

    # Departments and warehouses live in an external service; only their ids are kept here.
    department_id = models.UUIDField(
        null=True,
        blank=True,
        help_text="Department the user orders for (department users only)",
    )
    is_global_warehouse_supervisor = models.BooleanField(
        default=False,
        help_text="Warehouse user responsible for every warehouse",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "users"
        verbose_name = "User"
        verbose_name_plural = "Users"

    def __str__(self):
        return f"{self.username} ({self.get_role_display()})"

    @property
    def is_admin(self):
        return self.role == UserRole.ADMIN

    @property
    def is_warehouse(self):
        return self.role == UserRole.WAREHOUSE

    @property
    def is_department(self):
        return self.role == UserRole.DEPARTMENT

    @property
    def is_driver(self):
        return self.role == UserRole.DRIVER

    def get_warehouse_ids(self):
        """Warehouses this user supervises (empty for non-warehouse roles)."""
        if not self.is_warehouse:
            return []
        return list(self.warehouse_assignments.values_list("warehouse_id", flat=True))

    def supervises_warehouse(self, warehouse_id):
        if not self.is_warehouse:
            return False
        if self.is_global_warehouse_supervisor:
            return True
        return self.warehouse_assignments.filter(warehouse_id=warehouse_id).exists()


class WarehouseAssignment(models.Model):
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="warehouse_assignments")
    warehouse_id = models.UUIDField(help_text="Supervised warehouse")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "user_warehouse_assignments"
        unique_together = ["user", "warehouse_id"]

    def __str__(self):
        return f"{self.user.username} -> {self.warehouse_id}"
