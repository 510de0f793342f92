# foundry_trials/celery.py
import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "foundry_trials.settings")

app = Celery("foundry_trials")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
