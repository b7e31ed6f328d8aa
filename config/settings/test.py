"""Test settings.

Used by pytest-django. Runs against a throwaway SQLite file, keeps the
change feed in-process and executes Celery tasks eagerly.
"""

from .base import *  # noqa: F401,F403

DEBUG = False

SECRET_KEY = 'test-secret-key'

# Threads in the concurrency tests share this file; IMMEDIATE transactions
# queue SQLite writers on the busy timeout.
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / 'test.sqlite3',
        'OPTIONS': {'transaction_mode': 'IMMEDIATE', 'timeout': 20},
        'TEST': {'NAME': BASE_DIR / 'test_hostelhub.sqlite3'},
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'

STORAGES = {
    'default': {'BACKEND': 'django.core.files.storage.FileSystemStorage'},
    'staticfiles': {'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage'},
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

STRIPE_SECRET_KEY = ''

REALTIME_BACKEND = 'local'
REALTIME_QUEUE_SIZE = 16
