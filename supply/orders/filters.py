"""
Query filters for orders and preparation logs.

Values that fail to parse are dropped by the form and simply do not filter.
"""

import django_filters
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime
from django_filters.constants import EMPTY_VALUES

from .models import Order, OrderStatus, PreparationAction, PreparationLog


class DateBoundFilter(django_filters.CharFilter):
    """
    Inclusive bound on a datetime field.

    A plain ``YYYY-MM-DD`` value covers the whole day in the current time
    zone. Values that are neither a date nor a datetime do not filter.
    """

    def filter(self, qs, value):
        if value in EMPTY_VALUES:
            return qs
        try:
            day = parse_date(value)
            moment = None if day else parse_datetime(value)
        except ValueError:
            return qs

        if day is not None:
            return qs.filter(**{f'{self.field_name}__date__{self.lookup_expr}': day})
        if moment is None:
            return qs
        if timezone.is_naive(moment):
            moment = timezone.make_aware(moment)
        return qs.filter(**{f'{self.field_name}__{self.lookup_expr}': moment})


class OrderFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=OrderStatus.choices)
    department_id = django_filters.UUIDFilter()
    warehouse_id = django_filters.UUIDFilter()
    created_by = django_filters.NumberFilter(field_name='created_by_id')
    date_from = DateBoundFilter(field_name='created_at', lookup_expr='gte')
    date_to = DateBoundFilter(field_name='created_at', lookup_expr='lte')

    class Meta:
        model = Order
        fields = ['status', 'department_id', 'warehouse_id', 'created_by', 'date_from', 'date_to']


class PreparationLogFilter(django_filters.FilterSet):
    action = django_filters.ChoiceFilter(choices=PreparationAction.choices)
    warehouse_id = django_filters.UUIDFilter()
    order_number = django_filters.CharFilter()
    date_from = DateBoundFilter(field_name='timestamp', lookup_expr='gte')
    date_to = DateBoundFilter(field_name='timestamp', lookup_expr='lte')

    class Meta:
        model = PreparationLog
        fields = ['action', 'warehouse_id', 'order_number', 'date_from', 'date_to']
