"""
URL configuration for supply orders.

Provides API endpoints for the order lifecycle and preparation.
"""

from rest_framework.routers import DefaultRouter

from .views import OrderViewSet

router = DefaultRouter()
router.register(r'orders', OrderViewSet, basename='order')

urlpatterns = router.urls
