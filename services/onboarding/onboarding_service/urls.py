"""URL configuration for the onboarding service."""
from django.urls import include, path

from .envelope import health

urlpatterns = [
    path("api/healthz/", health, name="onboarding-health"),
    path("api/", include("formconfigs.urls")),
    path("api/", include("submissions.urls")),
]
