"""Test settings.

In-memory SQLite, eager Celery, locmem email, the sandbox gateway and
no retry backoff so the suite runs without external services.
"""

from .base import *  # noqa: F401,F403

DEBUG = False

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'

STORAGES = {
    'default': {'BACKEND': 'django.core.files.storage.InMemoryStorage'},
    'staticfiles': {'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage'},
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

ENCRYPTION_KEY = 'test-encryption-key'

BOOKING_ENGINE = {
    **BOOKING_ENGINE,  # noqa: F405
    'RETRY_BACKOFF_SECONDS': 0,
}

PAYMENT_GATEWAY = {
    'BACKEND': 'apps.payments.gateway.SandboxPaymentGateway',
    'WEBHOOK_SECRET': 'test-webhook-secret',
    'RETURN_URL': 'http://testserver/api/v1/payments/return/',
    'NOTIFICATION_URL': 'http://testserver/api/v1/payments/webhook/',
    'TIMEOUT': 5,
}
