"""Celery application for the onboarding service."""
from __future__ import annotations

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "onboarding_service.settings")

app = Celery("onboarding_service")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
