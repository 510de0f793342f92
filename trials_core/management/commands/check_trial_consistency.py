# trials_core/management/commands/check_trial_consistency.py

from django.core.management.base import BaseCommand, CommandError

from trials_core.models import DepartmentProgress, Trial
from trials_core.sections import SECTION_DEFINITIONS
from trials_core.workflows.audit import is_trial_complete
from trials_core.workflows.sequence import stage_departments


class Command(BaseCommand):
    help = "Check that trial status, current department and progress records agree"

    def add_arguments(self, parser):
        parser.add_argument("--trial", help="Check a single trial id")

    def handle(self, *args, **options):
        stages = stage_departments()
        qs = Trial.objects.exclude(status=Trial.Status.DELETED).select_related("current_department")
        if options.get("trial"):
            qs = qs.filter(trial_id=options["trial"])

        problems = 0
        checked = 0

        for trial in qs.iterator():
            checked += 1
            approved = set(
                DepartmentProgress.objects.filter(
                    trial=trial,
                    approval_status=DepartmentProgress.ApprovalStatus.APPROVED,
                ).values_list("department_id", flat=True)
            )
            remaining = [d for d in stages if d.id not in approved]
            complete = is_trial_complete(trial)

            errors = []
            if trial.status == Trial.Status.CLOSED and not complete:
                errors.append("closed but not every stage is approved")
            if trial.status == Trial.Status.ACTIVE:
                if complete:
                    errors.append("every stage approved but trial is still active")
                elif remaining and trial.current_department_id != remaining[0].id:
                    current = trial.current_department.code if trial.current_department else None
                    errors.append(f"current department is {current}, expected {remaining[0].code}")

            for key, definition in SECTION_DEFINITIONS.items():
                if not definition["model"].objects.filter(trial=trial).exists():
                    continue
                has_progress = DepartmentProgress.objects.filter(
                    trial=trial, department__code=definition["department"]
                ).exists()
                if not has_progress:
                    errors.append(f"section {key} saved without a progress record")

            if errors:
                problems += 1
                for err in errors:
                    self.stderr.write(f"[ERROR] {trial.trial_id}: {err}")

        if problems:
            self.stderr.write(f"\n{problems} of {checked} trial(s) inconsistent.")
            raise CommandError("Trial consistency check FAILED.")

        self.stdout.write(f"All {checked} trial(s) consistent.")
