"""Route registration for form configuration endpoints."""
from __future__ import annotations

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import FormConfigurationViewSet

router = DefaultRouter()
router.trailing_slash = "/?"
router.register("form-configurations", FormConfigurationViewSet, basename="form-configuration")

urlpatterns = [
    path("", include(router.urls)),
]
