"""
Django settings for Clientele tests.

Includes all apps needed to run the full Clientele test suite.
"""

import os
import tempfile

SECRET_KEY = "test-secret-key-for-clientele-tests"

DEBUG = True

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.admin",
    "clientele",
    "clientele.contrib.notifications",
]

MIDDLEWARE = [
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
]

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ]
        },
    }
]

ROOT_URLCONF = "clientele.tests.urls"

# File-backed so the threaded sync queue can reach the test database
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.path.join(tempfile.gettempdir(), "clientele.sqlite3"),
        "OPTIONS": {"timeout": 20},
        "TEST": {"NAME": os.path.join(tempfile.gettempdir(), "test_clientele.sqlite3")},
    }
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}

EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"
DEFAULT_FROM_EMAIL = "hello@example.com"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

USE_TZ = True
TIME_ZONE = "Asia/Manila"

# Tasks run synchronously in the caller
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True

CLIENTELE = {
    "SYNC_WORKERS": 1,
    "CRON_SECRET": "test-cron-secret",
    "LEDGER_BACKEND": "clientele.adapters.zoho_books.ZohoBooksBackend",
    "ZOHO_CLIENT_ID": "test-client",
    "ZOHO_CLIENT_SECRET": "test-secret",
    "ZOHO_ORG_ID": "600000001",
    "ZOHO_REDIRECT_URI": "http://testserver/clientele/admin/ledger/callback/",
    "APP_URL": "https://shop.example.com",
}
