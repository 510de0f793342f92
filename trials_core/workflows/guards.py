# trials_core/workflows/guards.py

from django.core.exceptions import PermissionDenied
from django.db import models


class WorkflowWriteGuardMixin(models.Model):
    """
    Prevent direct modification of workflow-controlled fields outside the workflow engine.

    Models inheriting this mixin must change WORKFLOW_FIELDS via the workflow
    services. Direct .save() changes to those fields are blocked. The primary
    key can never change once the row exists, bypass or not.

    Escape hatch (WORKFLOW_FIELDS only):
      - pass _workflow_bypass=True to save(), OR
      - set instance._workflow_bypass = True
    Use sparingly (workflow services, tests, data fixes).
    """

    WORKFLOW_FIELDS = ("status",)
    WORKFLOW_BYPASS_KWARG = "_workflow_bypass"

    class Meta:
        abstract = True

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._original_pk = instance.pk
        return instance

    def save(self, *args, **kwargs):
        bypass = bool(
            kwargs.pop(self.WORKFLOW_BYPASS_KWARG, False)
            or getattr(self, "_workflow_bypass", False)
        )

        if not self._state.adding:
            original_pk = getattr(self, "_original_pk", self.pk)
            if original_pk != self.pk:
                raise PermissionDenied(
                    f"'{self._meta.pk.name}' is immutable once created."
                )

            if not bypass and self.WORKFLOW_FIELDS:
                attnames = [self._meta.get_field(name).attname for name in self.WORKFLOW_FIELDS]
                old = (
                    self.__class__.objects.filter(pk=self.pk)
                    .values_list(*attnames)
                    .first()
                )

                if old is not None:
                    for name, attname, previous in zip(self.WORKFLOW_FIELDS, attnames, old):
                        if getattr(self, attname) != previous:
                            raise PermissionDenied(
                                f"Direct modification of '{name}' is forbidden. "
                                "Use workflow transition APIs."
                            )

        result = super().save(*args, **kwargs)
        self._original_pk = self.pk
        return result


class AppendOnlyMixin(models.Model):
    """
    Rows are inserted once and never updated or deleted through the ORM
    instance API. Administrative cascades (queryset deletes) still apply.
    """

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise PermissionDenied(
                f"{self.__class__.__name__} is append-only and cannot be updated."
            )
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise PermissionDenied(
            f"{self.__class__.__name__} is append-only and cannot be deleted."
        )
