"""
Shared fixtures for order tests.
"""

import uuid

from django.contrib.auth import get_user_model

from users.models import UserRole, WarehouseAssignment

from ..services import OrderService, PreparationService

DEPARTMENT_ID = uuid.UUID('aaaaaaaa-0000-0000-0000-000000000001')
OTHER_DEPARTMENT_ID = uuid.UUID('aaaaaaaa-0000-0000-0000-000000000002')
WAREHOUSE_ID = uuid.UUID('bbbbbbbb-0000-0000-0000-000000000001')
OTHER_WAREHOUSE_ID = uuid.UUID('bbbbbbbb-0000-0000-0000-000000000002')


def default_items():
    return [
        {'name': 'Printer paper', 'quantity': 10, 'unit': 'box'},
        {'itemName': 'Toner', 'quantity': 4},
    ]


class SupplyTestMixin:
    """Creates one user per role and helpers to drive orders through the workflow."""

    def create_users(self):
        User = get_user_model()
        self.admin = User.objects.create_user(
            username='admin', password='testpass123', role=UserRole.ADMIN
        )
        self.department_user = User.objects.create_user(
            username='dept', password='testpass123',
            role=UserRole.DEPARTMENT, department_id=DEPARTMENT_ID
        )
        self.other_department_user = User.objects.create_user(
            username='other-dept', password='testpass123',
            role=UserRole.DEPARTMENT, department_id=OTHER_DEPARTMENT_ID
        )
        self.warehouse_user = User.objects.create_user(
            username='warehouse', password='testpass123', role=UserRole.WAREHOUSE
        )
        WarehouseAssignment.objects.create(user=self.warehouse_user, warehouse_id=WAREHOUSE_ID)
        self.other_warehouse_user = User.objects.create_user(
            username='other-warehouse', password='testpass123', role=UserRole.WAREHOUSE
        )
        WarehouseAssignment.objects.create(user=self.other_warehouse_user, warehouse_id=OTHER_WAREHOUSE_ID)
        self.driver = User.objects.create_user(
            username='driver', password='testpass123', role=UserRole.DRIVER
        )

    def create_order(self, user=None, items=None, **extra):
        data = {'warehouse_id': WAREHOUSE_ID, 'items': items or default_items()}
        data.update(extra)
        return OrderService.create_order(user or self.department_user, data)

    def approve(self, order):
        return OrderService.approve_order(order.id, self.warehouse_user)

    def prepare(self, order, items=None):
        """Approve if needed and commit a preparation, all items available by default."""
        order.refresh_from_db()
        if order.status == 'PENDING':
            self.approve(order)
        if items is None:
            items = PreparationService.begin_preparation(order.id, self.warehouse_user)
        return PreparationService.commit_preparation(order.id, items, self.warehouse_user)

    def make_ready(self, order):
        self.prepare(order)
        return PreparationService.mark_ready(order.id, self.warehouse_user)

    def deliver(self, order):
        self.make_ready(order)
        return OrderService.mark_delivered(order.id, self.driver)
