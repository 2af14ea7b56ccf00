"""Route registration for submission endpoints."""
from __future__ import annotations

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import FormSubmissionViewSet

router = DefaultRouter()
router.trailing_slash = "/?"
router.register("form-submissions", FormSubmissionViewSet, basename="form-submission")

urlpatterns = [
    path("", include(router.urls)),
]
