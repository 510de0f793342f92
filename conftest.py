import pytest

@pytest.fixture(autouse=True)
def _test_settings(settings):
    # Prevent SecurityMiddleware from forcing https://testserver/...
    settings.SECURE_SSL_REDIRECT = False

    # Prevent “secure cookie” behavior from interfering with session auth in tests
    settings.SESSION_COOKIE_SECURE = False
    settings.CSRF_COOKIE_SECURE = False
    settings.SECURE_HSTS_SECONDS = 0

    # Notifications stay off unless a test turns them on; mail never leaves the process
    settings.WORKFLOW_EMAIL_NOTIFICATIONS = False
    settings.EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"
