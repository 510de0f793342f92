"""
WSGI config for foundry_trials project.
"""

import os
from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'foundry_trials.settings')
application = get_wsgi_application()
