# trials_core/tasks.py
from __future__ import annotations

import logging
from typing import List, Set

from celery import shared_task
from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.mail import send_mail

from trials_core.models import AuditAction, AuditEntry, Department, DepartmentProgress, UserRole
from trials_core.workflows import normalize_role

logger = logging.getLogger(__name__)


def _emails_for_roles(department: Department, roles: Set[str]) -> Set[str]:
    out = set()
    for role in UserRole.objects.filter(department=department).select_related("user"):
        if normalize_role(role.role) in roles and role.user.email and role.user.is_active:
            out.add(role.user.email)
    return out


def _email_for_username(username: str) -> Set[str]:
    if not username:
        return set()
    email = (
        get_user_model()
        .objects.filter(username=username, is_active=True)
        .values_list("email", flat=True)
        .first()
    )
    return {email} if email else set()


def _methods_emails() -> Set[str]:
    out = set()
    for role in UserRole.objects.select_related("user"):
        if normalize_role(role.role) == "METHODS" and role.user.email and role.user.is_active:
            out.add(role.user.email)
    return out


def recipients_for(entry: AuditEntry) -> List[str]:
    """
    Who hears about ``entry``:
      - submission: HODs of the department
      - approval: the submitter and the next department's operators/HODs
      - rejection: the submitter
      - completion: Methods and the trial's creator
    """
    trial = entry.trial
    department = entry.department
    out: Set[str] = set(getattr(settings, "WORKFLOW_NOTIFY_EMAILS", []) or [])

    if trial is None:
        return sorted(out)

    if entry.action == AuditAction.PROGRESS_ADDED and department is not None:
        out |= _emails_for_roles(department, {"HOD"})

    elif entry.action in (AuditAction.PROGRESS_APPROVED, AuditAction.PROGRESS_REJECTED):
        record = (
            DepartmentProgress.objects.filter(trial=trial, department=department)
            .order_by("-attempt")
            .first()
        )
        if record is not None:
            out |= _email_for_username(record.username)
        if entry.action == AuditAction.PROGRESS_APPROVED and trial.current_department is not None:
            out |= _emails_for_roles(trial.current_department, {"OPERATOR", "HOD"})

    elif entry.action == AuditAction.TRIAL_COMPLETED:
        out |= _methods_emails()
        if trial.created_by and trial.created_by.email:
            out.add(trial.created_by.email)

    return sorted(out)


def _message(entry: AuditEntry):
    who = entry.user.get_username() if entry.user else "system"
    department = entry.department.name if entry.department else "-"
    subject = f"[Foundry Trials] {entry.trial_id}: {entry.action}"
    body = "\n".join(
        [
            "Trial workflow update.",
            "",
            f"Trial: {entry.trial_id}",
            f"Department: {department}",
            f"Action: {entry.action}",
            f"By: {who}",
            f"At: {entry.action_timestamp}",
            f"Remarks: {entry.remarks or '-'}",
        ]
    )
    return subject, body


@shared_task
def send_workflow_notification(entry_id: int) -> int:
    """
    Email the people affected by a workflow audit entry. Returns the number
    of messages handed to the mail backend (0 on failure).
    """
    entry = (
        AuditEntry.objects.select_related("trial", "trial__current_department", "trial__created_by",
                                          "department", "user")
        .filter(pk=entry_id)
        .first()
    )
    if entry is None:
        return 0

    recipients = recipients_for(entry)
    if not recipients:
        return 0

    subject, body = _message(entry)
    try:
        return send_mail(
            subject=subject,
            message=body,
            from_email=getattr(settings, "DEFAULT_FROM_EMAIL", None),
            recipient_list=recipients,
            fail_silently=False,
        )
    except Exception as exc:
        logger.warning("Workflow notification for audit entry %s failed: %s", entry_id, exc)
        return 0
