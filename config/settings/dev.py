"""Development settings for the booking engine project.

This module extends the base settings with development specific
configuration, such as enabling debug, allowing all hosts, using the
console email backend and the sandbox payment gateway. Do not use these
settings in production!
"""

from .base import *  # noqa: F401,F403

# Enable debug mode for development
DEBUG = True

# Allow all hosts in development
ALLOWED_HOSTS = ['*']

# Use console email backend during development
EMAIL_BACKEND = 'django.core.mail.backends.console.EmailBackend'

# Plain static storage so runserver works without collectstatic
STORAGES = {
    'default': {'BACKEND': 'django.core.files.storage.FileSystemStorage'},
    'staticfiles': {'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage'},
}

# Payments never leave the machine in development
PAYMENT_GATEWAY = {
    **PAYMENT_GATEWAY,  # noqa: F405
    'BACKEND': 'apps.payments.gateway.SandboxPaymentGateway',
    'WEBHOOK_SECRET': os.environ.get('PAYMENT_GATEWAY_WEBHOOK_SECRET', 'dev-webhook-secret'),  # noqa: F405
}
