"""
Order views for the supply ordering lifecycle.
"""

import logging

from django.db import DatabaseError
from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from users.permissions import IsAdmin, IsAdminOrWarehouseStaff, IsDepartmentOrAdmin, IsWarehouseStaff

from ..models import Order
from ..exceptions import BusinessException, StorageUnavailableException, ValidationException
from ..services import HistoryService, OrderQueryService, OrderService, PreparationService
from ..serializers.order_serializers import (
    OrderCreateSerializer, OrderUpdateSerializer, OrderTransitionSerializer,
    OrderListSerializer, OrderDetailSerializer, OrderHistorySerializer
)
from ..serializers.preparation_serializers import (
    PreparedItemSerializer, PrepareOrderSerializer, MarkReadySerializer,
    ItemPreparationSerializer, PreparationLogSerializer
)

logger = logging.getLogger(__name__)


def error_response(exc):
    """Render a service error in the API error envelope."""
    if isinstance(exc, DatabaseError):
        logger.error(f"Database error while handling request: {exc}")
        exc = StorageUnavailableException()
    return Response({
        'success': False,
        'error': exc.to_dict()
    }, status=exc.http_status)


def validated(serializer_class, data):
    """Validate request data, raising ValidationException on bad input."""
    serializer = serializer_class(data=data)
    if not serializer.is_valid():
        raise ValidationException("Invalid request data", serializer.errors)
    return serializer.validated_data


class OrderViewSet(viewsets.GenericViewSet):
    """
    ViewSet for Order management.

    Provides CRUD operations and workflow actions for orders. Role scoping
    and workflow rules are enforced by the services.
    """

    queryset = Order.objects.all()
    serializer_class = OrderDetailSerializer
    permission_classes = [IsAuthenticated]

    def get_permissions(self):
        if self.action == 'create':
            return [IsDepartmentOrAdmin()]
        if self.action == 'destroy':
            return [IsAdmin()]
        if self.action in ('begin_preparation', 'prepare', 'prepare_item', 'mark_ready'):
            return [IsWarehouseStaff()]
        if self.action in ('preparation_logs', 'unavailable_items'):
            return [IsAdminOrWarehouseStaff()]
        return super().get_permissions()

    def list(self, request):
        """List the orders visible to the user."""
        try:
            orders = OrderQueryService.list_by_role(request.user, request.query_params)
        except (BusinessException, DatabaseError) as e:
            return error_response(e)
        return Response({
            'success': True,
            'data': OrderListSerializer(orders, many=True).data
        })

    def create(self, request):
        """Create an order."""
        try:
            data = validated(OrderCreateSerializer, request.data)
            order = OrderService.create_order(request.user, data)
        except (BusinessException, DatabaseError) as e:
            return error_response(e)
        return Response({
            'success': True,
            'data': OrderDetailSerializer(order).data
        }, status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        try:
            order = OrderQueryService.get_order(pk, request.user)
        except (BusinessException, DatabaseError) as e:
            return error_response(e)
        return Response({
            'success': True,
            'data': OrderDetailSerializer(order).data
        })

    def update(self, request, pk=None):
        """Update notes and, before preparation, items."""
        try:
            data = validated(OrderUpdateSerializer, request.data)
            order = OrderService.update_order(pk, request.user, data)
        except (BusinessException, DatabaseError) as e:
            return error_response(e)
        return Response({
            'success': True,
            'data': OrderDetailSerializer(order).data
        })

    def partial_update(self, request, pk=None):
        return self.update(request, pk)

    def destroy(self, request, pk=None):
        try:
            OrderService.delete_order(pk, request.user)
        except (BusinessException, DatabaseError) as e:
            return error_response(e)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['patch'], url_path='status')
    def change_status(self, request, pk=None):
        """Apply one workflow transition."""
        try:
            data = validated(OrderTransitionSerializer, request.data)
            order = OrderService.transition(
                pk,
                data['status'],
                request.user,
                note=data['notes'],
                expected_version=data.get('version'),
                warehouse_id=data.get('warehouse_id'),
            )
        except (BusinessException, DatabaseError) as e:
            return error_response(e)
        return Response({
            'success': True,
            'data': OrderDetailSerializer(order).data
        })

    @action(detail=True, methods=['post'], url_path='begin-preparation')
    def begin_preparation(self, request, pk=None):
        """Return the working list of items to reconcile."""
        try:
            items = PreparationService.begin_preparation(pk, request.user)
        except (BusinessException, DatabaseError) as e:
            return error_response(e)
        return Response({
            'success': True,
            'data': PreparedItemSerializer(items, many=True).data
        })

    @action(detail=True, methods=['post'])
    def prepare(self, request, pk=None):
        """Commit a reconciliation; the order moves to PREPARING."""
        try:
            data = validated(PrepareOrderSerializer, request.data)
            order = PreparationService.commit_preparation(
                pk,
                data['items'],
                request.user,
                notes=data['notes'],
                expected_version=data.get('version'),
            )
        except (BusinessException, DatabaseError) as e:
            return error_response(e)
        return Response({
            'success': True,
            'data': OrderDetailSerializer(order).data
        })

    @action(detail=True, methods=['post'], url_path='prepare-item')
    def prepare_item(self, request, pk=None):
        """Log the check of a single item."""
        try:
            data = validated(ItemPreparationSerializer, request.data)
            log = PreparationService.log_item_preparation(pk, request.user, data)
        except (BusinessException, DatabaseError) as e:
            return error_response(e)
        return Response({
            'success': True,
            'data': PreparationLogSerializer(log).data
        }, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['get'], url_path='preparation-logs')
    def preparation_logs(self, request, pk=None):
        try:
            order = OrderQueryService.get_order(pk, request.user)
            logs = PreparationService.preparation_logs(order.id)
        except (BusinessException, DatabaseError) as e:
            return error_response(e)
        return Response({
            'success': True,
            'data': PreparationLogSerializer(logs, many=True).data
        })

    @action(detail=True, methods=['post'], url_path='mark-ready')
    def mark_ready(self, request, pk=None):
        """Mark a prepared order ready for delivery."""
        try:
            data = validated(MarkReadySerializer, request.data)
            order = PreparationService.mark_ready(
                pk, request.user, notes=data['notes'], expected_version=data.get('version')
            )
        except (BusinessException, DatabaseError) as e:
            return error_response(e)
        return Response({
            'success': True,
            'data': OrderDetailSerializer(order).data
        })

    @action(detail=True, methods=['get'])
    def history(self, request, pk=None):
        """Order history, oldest first. Admins also see deleted orders."""
        try:
            if not request.user.is_admin:
                OrderQueryService.get_order(pk, request.user)
            entries = HistoryService.history_for(pk)
        except (BusinessException, DatabaseError) as e:
            return error_response(e)
        return Response({
            'success': True,
            'data': OrderHistorySerializer(entries, many=True).data
        })

    @action(detail=False, methods=['get'])
    def completed(self, request):
        """Delivered and rejected orders, newest first."""
        try:
            orders = OrderQueryService.list_completed(request.query_params, actor=request.user)
        except (BusinessException, DatabaseError) as e:
            return error_response(e)
        return Response({
            'success': True,
            'data': OrderListSerializer(orders, many=True).data
        })

    @action(detail=False, methods=['get'], url_path='unavailable-items')
    def unavailable_items(self, request):
        """Paginated report of items that could not be supplied."""
        try:
            report = PreparationService.unavailable_items_report(request.query_params, actor=request.user)
        except (BusinessException, DatabaseError) as e:
            return error_response(e)
        report['logs'] = PreparationLogSerializer(report['logs'], many=True).data
        return Response({
            'success': True,
            'data': report
        })
