# trials_core/signals.py
from __future__ import annotations

import logging

from django.conf import settings
from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

from trials_core.models import AuditAction, AuditEntry
from trials_core.tasks import send_workflow_notification

logger = logging.getLogger(__name__)

NOTIFY_ACTIONS = {
    AuditAction.PROGRESS_ADDED,
    AuditAction.PROGRESS_APPROVED,
    AuditAction.PROGRESS_REJECTED,
    AuditAction.TRIAL_COMPLETED,
}


# ===============================================================
# WORKFLOW NOTIFICATIONS
# ===============================================================
@receiver(post_save, sender=AuditEntry)
def notify_workflow_event(sender, instance: AuditEntry, created: bool, **kwargs):
    """
    Queue an email for submissions, decisions and completions.

    Runs only after the surrounding transaction commits, so rolled back
    workflow steps never notify anyone. Feature-flagged.
    """
    if not created or instance.action not in NOTIFY_ACTIONS:
        return

    if not getattr(settings, "WORKFLOW_EMAIL_NOTIFICATIONS", False):
        return

    entry_id = instance.pk

    def _enqueue():
        try:
            send_workflow_notification.delay(entry_id)
        except Exception as exc:
            # Broker outages must not surface as workflow errors.
            logger.warning("Could not queue notification for audit entry %s: %s", entry_id, exc)

    transaction.on_commit(_enqueue)
