"""
Tests for the complete order lifecycle.
"""

from unittest import mock

from django.db import DatabaseError
from django.test import TestCase

from ..exceptions import (
    AuthorizationException, ConflictException, InvalidStateException,
    InvalidTransitionException, NotFoundException, ValidationException
)
from ..models import Order, OrderHistory, OrderStatus
from ..services import HistoryService, OrderService, PreparationService
from ..services.reconciliation import mark_unavailable, set_availability
from .helpers import DEPARTMENT_ID, OTHER_DEPARTMENT_ID, OTHER_WAREHOUSE_ID, WAREHOUSE_ID, SupplyTestMixin


class OrderLifecycleFlowTest(SupplyTestMixin, TestCase):
    """Test the order workflow from creation to delivery."""

    def setUp(self):
        self.create_users()

    def test_complete_order_lifecycle(self):
        # 1. Create order
        order = self.create_order()
        self.assertEqual(order.status, OrderStatus.PENDING)
        self.assertEqual(order.order_number, 'ORD-000001')
        self.assertEqual(order.department_id, DEPARTMENT_ID)
        self.assertEqual(order.items.count(), 2)

        # 2. Approve order
        order = OrderService.approve_order(order.id, self.warehouse_user)
        self.assertEqual(order.status, OrderStatus.APPROVED)
        self.assertEqual(order.approved_by, self.warehouse_user)

        # 3. Reconcile availability
        items = PreparationService.begin_preparation(order.id, self.warehouse_user)
        set_availability(items, 0, 7)
        mark_unavailable(items, 1)
        order = PreparationService.commit_preparation(order.id, items, self.warehouse_user, notes='Short on paper')
        self.assertEqual(order.status, OrderStatus.PREPARING)
        self.assertIsNotNone(order.prepared_at)

        paper, toner = order.items.all()
        self.assertEqual((paper.requested_quantity, paper.quantity), (10, 7))
        self.assertTrue(paper.is_shortage)
        self.assertTrue(toner.is_unavailable)
        self.assertEqual(toner.quantity, 0)

        # 4. Ready and delivered
        order = PreparationService.mark_ready(order.id, self.warehouse_user)
        self.assertEqual(order.status, OrderStatus.READY)
        order = OrderService.mark_delivered(order.id, self.driver)
        self.assertEqual(order.status, OrderStatus.DELIVERED)
        self.assertEqual(order.delivered_by, self.driver)
        self.assertTrue(order.is_terminal)

        # Every status change left exactly one history entry
        history = HistoryService.history_for(order.id)
        self.assertEqual(
            [(entry.action, entry.from_status, entry.to_status) for entry in history],
            [
                ('created', '', OrderStatus.PENDING),
                ('status_changed', OrderStatus.PENDING, OrderStatus.APPROVED),
                ('prepared', OrderStatus.APPROVED, OrderStatus.PREPARING),
                ('status_changed', OrderStatus.PREPARING, OrderStatus.READY),
                ('status_changed', OrderStatus.READY, OrderStatus.DELIVERED),
            ]
        )
        self.assertEqual(history[2].note, 'Short on paper')
        self.assertEqual(history[2].metadata['shortage_items'], 1)
        self.assertEqual(history[2].metadata['unavailable_items'], 1)

        order.refresh_from_db()
        self.assertEqual(order.version, 5)

    def test_new_order_has_single_creation_entry(self):
        order = self.create_order()

        history = HistoryService.history_for(order.id)
        self.assertEqual(len(history), 1)
        self.assertEqual(history[0].from_status, '')
        self.assertEqual(history[0].to_status, OrderStatus.PENDING)
        self.assertEqual(history[0].actor, self.department_user)

    def test_reject_after_approval_fails(self):
        order = self.create_order()
        self.approve(order)

        with self.assertRaises(InvalidTransitionException):
            OrderService.reject_order(order.id, self.warehouse_user, 'Too late')

        order.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.APPROVED)
        self.assertEqual(OrderHistory.objects.filter(order_id=order.id).count(), 2)

    def test_rejection_stores_reason(self):
        order = self.create_order()

        order = OrderService.reject_order(order.id, self.warehouse_user, 'Budget exceeded')

        self.assertEqual(order.status, OrderStatus.REJECTED)
        self.assertEqual(order.rejection_reason, 'Budget exceeded')
        with self.assertRaises(InvalidTransitionException):
            OrderService.approve_order(order.id, self.warehouse_user)

    def test_driver_cannot_approve(self):
        order = self.create_order()

        with self.assertRaises(AuthorizationException):
            OrderService.approve_order(order.id, self.driver)

        order.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.PENDING)
        self.assertEqual(order.version, 1)
        self.assertEqual(OrderHistory.objects.filter(order_id=order.id).count(), 1)

    def test_invalid_edge_is_reported_before_role(self):
        order = self.create_order()

        with self.assertRaises(InvalidTransitionException):
            OrderService.transition(order.id, OrderStatus.DELIVERED, self.department_user)

    def test_admin_cannot_perform_warehouse_edges(self):
        order = self.create_order()

        with self.assertRaises(AuthorizationException):
            OrderService.approve_order(order.id, self.admin)

    def test_warehouse_user_of_other_warehouse_cannot_approve(self):
        order = self.create_order()

        with self.assertRaises(AuthorizationException):
            OrderService.approve_order(order.id, self.other_warehouse_user)

    def test_same_status_transition_is_rejected(self):
        order = self.create_order()

        with self.assertRaises(InvalidTransitionException):
            OrderService.transition(order.id, OrderStatus.PENDING, self.warehouse_user)

    def test_preparing_requires_commit(self):
        order = self.create_order()
        self.approve(order)

        with self.assertRaises(InvalidStateException):
            OrderService.transition(order.id, OrderStatus.PREPARING, self.warehouse_user)

    def test_stale_version_conflicts(self):
        order = self.create_order()
        stale_version = order.version
        self.approve(order)

        with self.assertRaises(ConflictException) as ctx:
            OrderService.transition(
                order.id, OrderStatus.REJECTED, self.warehouse_user, expected_version=stale_version
            )
        self.assertTrue(ctx.exception.retryable)

    def test_concurrent_write_detected_by_version(self):
        order = self.create_order()
        # Another writer bumped the version after this snapshot was read
        Order.objects.filter(pk=order.pk).update(version=7)

        with self.assertRaises(ConflictException):
            OrderService.save_order(order, ['notes'])

    def test_history_failure_rolls_back_transition(self):
        order = self.create_order()

        with mock.patch.object(HistoryService, 'append', side_effect=DatabaseError("disk full")):
            with self.assertRaises(DatabaseError):
                self.approve(order)

        order.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.PENDING)
        self.assertEqual(order.version, 1)
        self.assertIsNone(order.approved_at)

    def test_unknown_order_not_found(self):
        with self.assertRaises(NotFoundException):
            self.approve(Order(id='00000000-0000-0000-0000-000000000000'))
        with self.assertRaises(NotFoundException):
            OrderService.transition('not-a-uuid', OrderStatus.APPROVED, self.warehouse_user)


class OrderRoutingTest(SupplyTestMixin, TestCase):

    def setUp(self):
        self.create_users()

    def test_unrouted_order_routed_to_approvers_only_warehouse(self):
        order = self.create_order(warehouse_id=None)

        order = self.approve(order)

        self.assertEqual(order.warehouse_id, WAREHOUSE_ID)

    def test_global_supervisor_must_name_warehouse(self):
        supervisor = self.other_warehouse_user
        supervisor.is_global_warehouse_supervisor = True
        supervisor.save()
        supervisor.warehouse_assignments.all().delete()
        order = self.create_order(warehouse_id=None)

        with self.assertRaises(ValidationException):
            OrderService.approve_order(order.id, supervisor)

        order = OrderService.approve_order(order.id, supervisor, warehouse_id=str(OTHER_WAREHOUSE_ID))
        self.assertEqual(order.warehouse_id, OTHER_WAREHOUSE_ID)

    def test_cannot_route_to_unsupervised_warehouse(self):
        order = self.create_order(warehouse_id=None)

        with self.assertRaises(AuthorizationException):
            OrderService.approve_order(order.id, self.warehouse_user, warehouse_id=OTHER_WAREHOUSE_ID)


class OrderCreationTest(SupplyTestMixin, TestCase):

    def setUp(self):
        self.create_users()

    def test_order_numbers_follow_sequence(self):
        first = self.create_order()
        second = self.create_order()

        self.assertEqual(first.order_number, 'ORD-000001')
        self.assertEqual(second.order_number, 'ORD-000002')
        self.assertLess(first.sequence, second.sequence)

    def test_items_keep_input_order_and_aliases(self):
        order = self.create_order()

        names = [item.name for item in order.items.all()]
        self.assertEqual(names, ['Printer paper', 'Toner'])
        toner = order.items.get(position=1)
        self.assertEqual(toner.unit, 'piece')
        self.assertFalse(toner.name_missing)

    def test_missing_name_uses_placeholder(self):
        with self.assertLogs('orders.services.order_service', level='WARNING'):
            order = self.create_order(items=[{'name': '', 'itemName': '   ', 'quantity': 3}])

        item = order.items.get()
        self.assertEqual(item.name, 'Unknown item')
        self.assertTrue(item.name_missing)

    def test_invalid_items_rejected(self):
        invalid_payloads = [
            [],
            [{'name': 'Pens', 'quantity': 0}],
            [{'name': 'Pens', 'quantity': -2}],
            [{'name': 'Pens', 'quantity': 2.5}],
            [{'name': 'Pens', 'quantity': 'many'}],
            [{'name': 'Pens', 'quantity': 2, 'unit': 'crate'}],
        ]
        for items in invalid_payloads:
            with self.subTest(items=items):
                with self.assertRaises(ValidationException):
                    OrderService.create_order(self.department_user, {'items': items})

        self.assertEqual(Order.objects.count(), 0)
        self.assertEqual(OrderHistory.objects.count(), 0)

    def test_department_orders_for_own_department(self):
        with self.assertRaises(AuthorizationException):
            self.create_order(department_id=OTHER_DEPARTMENT_ID)

    def test_admin_must_name_department(self):
        with self.assertRaises(ValidationException):
            self.create_order(user=self.admin)

        order = self.create_order(user=self.admin, department_id=str(OTHER_DEPARTMENT_ID))
        self.assertEqual(order.department_id, OTHER_DEPARTMENT_ID)

    def test_other_roles_cannot_create(self):
        for user in (self.warehouse_user, self.driver):
            with self.subTest(role=user.role):
                with self.assertRaises(AuthorizationException):
                    self.create_order(user=user)


class OrderUpdateTest(SupplyTestMixin, TestCase):

    def setUp(self):
        self.create_users()
        self.order = self.create_order()

    def test_department_updates_pending_order(self):
        order = OrderService.update_order(self.order.id, self.department_user, {
            'notes': 'Urgent',
            'items': [{'name': 'Staples', 'quantity': 2}],
        })

        self.assertEqual(order.notes, 'Urgent')
        self.assertEqual([item.name for item in order.items.all()], ['Staples'])
        self.assertEqual(order.version, 2)

        entry = HistoryService.history_for(order.id)[-1]
        self.assertEqual(entry.action, 'updated')
        self.assertEqual(entry.metadata['new_values']['notes'], 'Urgent')

    def test_department_cannot_update_after_approval(self):
        self.approve(self.order)

        with self.assertRaises(AuthorizationException):
            OrderService.update_order(self.order.id, self.department_user, {'notes': 'Late edit'})

    def test_other_department_cannot_update(self):
        with self.assertRaises(AuthorizationException):
            OrderService.update_order(self.order.id, self.other_department_user, {'notes': 'Mine now'})

    def test_items_frozen_after_preparation(self):
        self.prepare(self.order)

        with self.assertRaises(InvalidStateException):
            OrderService.update_order(self.order.id, self.admin, {'items': [{'name': 'Pens', 'quantity': 1}]})

        order = OrderService.update_order(self.order.id, self.admin, {'notes': 'Deliver to room 4'})
        self.assertEqual(order.notes, 'Deliver to room 4')

    def test_terminal_order_cannot_be_updated(self):
        OrderService.reject_order(self.order.id, self.warehouse_user, 'No budget')

        with self.assertRaises(InvalidStateException):
            OrderService.update_order(self.order.id, self.admin, {'notes': 'Reconsider'})

    def test_update_requires_changes(self):
        with self.assertRaises(ValidationException):
            OrderService.update_order(self.order.id, self.admin, {})


class OrderDeletionTest(SupplyTestMixin, TestCase):

    def setUp(self):
        self.create_users()
        self.order = self.create_order()

    def test_history_survives_deletion(self):
        order_id = self.order.id

        OrderService.delete_order(order_id, self.admin)

        self.assertFalse(Order.objects.filter(id=order_id).exists())
        history = HistoryService.history_for(order_id)
        self.assertEqual([entry.action for entry in history], ['created', 'deleted'])

    def test_only_admin_deletes(self):
        with self.assertRaises(AuthorizationException):
            OrderService.delete_order(self.order.id, self.department_user)
        self.assertTrue(Order.objects.filter(id=self.order.id).exists())

    def test_history_for_unknown_order(self):
        with self.assertRaises(NotFoundException):
            HistoryService.history_for('00000000-0000-0000-0000-000000000000')
