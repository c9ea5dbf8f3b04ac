"""
API tests for the order endpoints.
"""

from unittest import mock

from django.db import OperationalError
from django.test import TestCase
from rest_framework.test import APIClient

from ..models import Order, OrderStatus
from ..services import OrderQueryService
from .helpers import DEPARTMENT_ID, WAREHOUSE_ID, SupplyTestMixin


class OrderAPITest(SupplyTestMixin, TestCase):

    def setUp(self):
        self.create_users()
        self.client = APIClient()

    def as_user(self, user):
        self.client.force_authenticate(user=user)
        return self.client

    def test_create_order(self):
        response = self.as_user(self.department_user).post('/api/orders/', {
            'warehouse_id': str(WAREHOUSE_ID),
            'notes': 'For the print room',
            'items': [
                {'name': 'Printer paper', 'quantity': 10, 'unit': 'box'},
                {'itemName': 'Toner', 'quantity': 2},
                {'quantity': 1},
            ],
        }, format='json')

        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.data['success'])
        data = response.data['data']
        self.assertEqual(data['status'], OrderStatus.PENDING)
        self.assertEqual(data['department_id'], str(DEPARTMENT_ID))
        self.assertEqual([item['name'] for item in data['items']], ['Printer paper', 'Toner', 'Unknown item'])
        self.assertEqual(len(data['warnings']), 1)
        self.assertEqual(data['warnings'][0]['code'], 'MISSING_NAME')
        self.assertEqual(data['warnings'][0]['position'], 2)

    def test_create_rejects_invalid_items(self):
        response = self.as_user(self.department_user).post('/api/orders/', {
            'items': [{'name': 'Pens', 'quantity': 0}],
        }, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.data['success'])
        self.assertEqual(response.data['error']['code'], 'VALIDATION_ERROR')
        self.assertFalse(response.data['error']['retryable'])

    def test_driver_cannot_create(self):
        response = self.as_user(self.driver).post('/api/orders/', {
            'items': [{'name': 'Pens', 'quantity': 1}],
        }, format='json')

        self.assertEqual(response.status_code, 403)

    def test_requires_authentication(self):
        response = self.client.get('/api/orders/')

        self.assertEqual(response.status_code, 401)

    def test_status_transitions(self):
        order = self.create_order()
        client = self.as_user(self.warehouse_user)

        response = client.patch(f'/api/orders/{order.id}/status/', {
            'status': 'APPROVED', 'version': 1,
        }, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['status'], OrderStatus.APPROVED)
        self.assertEqual(response.data['data']['version'], 2)

        response = client.patch(f'/api/orders/{order.id}/status/', {'status': 'REJECTED'}, format='json')
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data['error']['code'], 'INVALID_TRANSITION')

    def test_stale_version_is_retryable_conflict(self):
        order = self.create_order()
        self.approve(order)

        response = self.as_user(self.warehouse_user).patch(f'/api/orders/{order.id}/status/', {
            'status': 'REJECTED', 'version': 1,
        }, format='json')

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data['error']['code'], 'CONFLICT')
        self.assertTrue(response.data['error']['retryable'])

    def test_wrong_role_transition(self):
        order = self.create_order()

        response = self.as_user(self.driver).patch(f'/api/orders/{order.id}/status/', {
            'status': 'APPROVED',
        }, format='json')

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data['error']['code'], 'AUTHORIZATION_ERROR')

    def test_preparation_endpoints(self):
        order = self.create_order()
        self.approve(order)
        client = self.as_user(self.warehouse_user)

        response = client.post(f'/api/orders/{order.id}/begin-preparation/', format='json')
        self.assertEqual(response.status_code, 200)
        items = response.data['data']
        self.assertEqual([item['available_quantity'] for item in items], [10, 4])

        items[0]['available_quantity'] = -5
        items[1]['is_unavailable'] = True
        response = client.post(f'/api/orders/{order.id}/prepare/', {
            'items': items, 'notes': 'Partial', 'version': 2,
        }, format='json')
        self.assertEqual(response.status_code, 200)
        data = response.data['data']
        self.assertEqual(data['status'], OrderStatus.PREPARING)
        self.assertEqual([item['quantity'] for item in data['items']], [0, 0])

        response = client.get(f'/api/orders/{order.id}/preparation-logs/')
        self.assertEqual(len(response.data['data']), 2)

        response = client.post(f'/api/orders/{order.id}/mark-ready/', {}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['status'], OrderStatus.READY)

        response = self.as_user(self.driver).patch(
            f'/api/orders/{order.id}/status/', {'status': 'DELIVERED'}, format='json'
        )
        self.assertEqual(response.data['data']['status'], OrderStatus.DELIVERED)

        response = self.as_user(self.department_user).get(f'/api/orders/{order.id}/history/')
        self.assertEqual(
            [entry['to_status'] for entry in response.data['data']],
            ['PENDING', 'APPROVED', 'PREPARING', 'READY', 'DELIVERED']
        )

    def test_commit_with_everything_unavailable(self):
        order = self.create_order()
        self.approve(order)
        client = self.as_user(self.warehouse_user)
        items = client.post(f'/api/orders/{order.id}/begin-preparation/', format='json').data['data']
        for item in items:
            item['is_unavailable'] = True

        response = client.post(f'/api/orders/{order.id}/prepare/', {'items': items}, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error']['code'], 'VALIDATION_ERROR')

    def test_prepare_item_and_progress(self):
        order = self.create_order()
        self.approve(order)

        response = self.as_user(self.warehouse_user).post(f'/api/orders/{order.id}/prepare-item/', {
            'item_name': 'Toner', 'requested_qty': 4, 'is_unavailable': True,
        }, format='json')
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['data']['action'], 'ITEM_UNAVAILABLE')

        response = self.client.get(f'/api/orders/{order.id}/')
        self.assertEqual(response.data['data']['preparation_progress'], {
            'total': 2, 'logged': 1, 'has_partial_preparation': True,
        })

        response = self.client.get('/api/orders/unavailable-items/', {'sort_by': 'item_name'})
        self.assertEqual(response.data['data']['total'], 1)
        self.assertEqual(response.data['data']['logs'][0]['item_name'], 'Toner')

    def test_list_is_role_scoped(self):
        own = self.create_order()
        self.create_order(user=self.other_department_user)

        response = self.as_user(self.department_user).get('/api/orders/')
        self.assertEqual([order['id'] for order in response.data['data']], [str(own.id)])

        response = self.as_user(self.admin).get('/api/orders/', {'status': 'PENDING', 'department_id': 'bogus'})
        self.assertEqual(len(response.data['data']), 2)

    def test_completed(self):
        rejected = self.create_order()
        self.create_order()
        self.as_user(self.warehouse_user).patch(
            f'/api/orders/{rejected.id}/status/', {'status': 'REJECTED', 'notes': 'No budget'}, format='json'
        )

        response = self.as_user(self.admin).get('/api/orders/completed/')

        self.assertEqual([order['id'] for order in response.data['data']], [str(rejected.id)])

    def test_retrieve_outside_scope_is_not_found(self):
        order = self.create_order()

        response = self.as_user(self.other_department_user).get(f'/api/orders/{order.id}/')

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data['error']['code'], 'NOT_FOUND')

    def test_update_and_delete(self):
        order = self.create_order()

        response = self.as_user(self.department_user).patch(
            f'/api/orders/{order.id}/', {'notes': 'Second floor'}, format='json'
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['notes'], 'Second floor')

        response = self.client.delete(f'/api/orders/{order.id}/')
        self.assertEqual(response.status_code, 403)

        response = self.as_user(self.admin).delete(f'/api/orders/{order.id}/')
        self.assertEqual(response.status_code, 204)
        self.assertFalse(Order.objects.filter(id=order.id).exists())

        response = self.client.get(f'/api/orders/{order.id}/history/')
        self.assertEqual([entry['action'] for entry in response.data['data']], ['created', 'updated', 'deleted'])

    def test_storage_failure_is_retryable(self):
        with mock.patch.object(OrderQueryService, 'list_by_role', side_effect=OperationalError("database is locked")):
            response = self.as_user(self.admin).get('/api/orders/')

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.data['error']['code'], 'STORAGE_UNAVAILABLE')
        self.assertTrue(response.data['error']['retryable'])


class TokenAuthTest(SupplyTestMixin, TestCase):

    def setUp(self):
        self.create_users()

    def test_obtain_token_and_list(self):
        client = APIClient()
        response = client.post('/api/auth/token/', {'username': 'dept', 'password': 'testpass123'}, format='json')
        self.assertEqual(response.status_code, 200)

        client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")
        response = client.get('/api/orders/')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data['success'])
