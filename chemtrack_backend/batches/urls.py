# batches/urls.py

"""
BATCHES URLS

Routes under /api/batches/
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from batches.views import ArchiveViewSet, BatchViewSet

router = DefaultRouter()

router.register(r"batches", BatchViewSet, basename="batches")
router.register(r"archive", ArchiveViewSet, basename="archive")

urlpatterns = [
    path("", include(router.urls)),
]
