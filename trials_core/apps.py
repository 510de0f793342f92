# trials_core/apps.py

from django.apps import AppConfig
import logging

logger = logging.getLogger(__name__)


class TrialsCoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "trials_core"
    verbose_name = "Foundry trials"

    def ready(self):
        from . import signals  # noqa
        logger.debug("Workflow notification signals registered")
