"""Background tasks for the submission service."""
from __future__ import annotations

import logging

from celery import shared_task
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from formconfigs.models import FormConfiguration

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, default_retry_delay=5)
def record_configuration_usage(self, config_id: str) -> None:
    """Bump the usage counters of the configuration a submission was started from."""

    try:
        with transaction.atomic():
            updated = FormConfiguration.objects.filter(config_id=config_id).update(
                usage_count=F("usage_count") + 1,
                last_used_at=timezone.now(),
            )
        if not updated:
            logger.warning("Configuration %s does not exist; usage not recorded", config_id)
            return
        logger.info("Recorded usage of configuration %s", config_id)
    except Exception as exc:  # pragma: no cover - retries exercised in production
        logger.exception("Recording usage of configuration %s failed", config_id)
        raise self.retry(exc=exc, countdown=min(60, 2 ** self.request.retries))
