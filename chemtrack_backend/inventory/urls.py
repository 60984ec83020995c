# inventory/urls.py

"""
INVENTORY URLS

Routes under /api/inventory/
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from inventory.views import ItemViewSet, TransactionViewSet

router = DefaultRouter()

router.register(r"items", ItemViewSet, basename="items")
router.register(r"transactions", TransactionViewSet, basename="transactions")

urlpatterns = [
    path("", include(router.urls)),
]
