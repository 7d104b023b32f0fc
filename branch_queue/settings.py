"""Django settings for the branch_queue project.

Everything deployment-specific is read from environment variables so the
same settings module serves local runs, the test suite and production.
"""
import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.lower() in ('1', 'true', 'yes')


def _env_int(name, default):
    value = os.environ.get(name)
    return int(value) if value not in (None, '') else default


SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'dev-secret')
DEBUG = _env_bool('DJANGO_DEBUG', False)
ALLOWED_HOSTS = [h for h in os.environ.get('DJANGO_ALLOWED_HOSTS', 'localhost').split(',') if h]

INSTALLED_APPS = [
    'accounts',
    'outlets',
    'officers',
    'queue_system',
    'notifications',
]

if os.environ.get('POSTGRES_DB'):
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': os.environ['POSTGRES_DB'],
            'USER': os.environ.get('POSTGRES_USER', ''),
            'PASSWORD': os.environ.get('POSTGRES_PASSWORD', ''),
            'HOST': os.environ.get('POSTGRES_HOST', 'localhost'),
            'PORT': os.environ.get('POSTGRES_PORT', '5432'),
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
            'OPTIONS': {
                # seconds to wait on a locked database before OperationalError
                'timeout': _env_int('TRANSACTION_TIMEOUT_SECONDS', 10),
                # take the write lock at BEGIN so concurrent writers queue on the
                # busy timeout instead of failing on a lock upgrade
                'transaction_mode': 'IMMEDIATE',
            },
            # file backed so threads share one database with real file locking
            'TEST': {'NAME': str(BASE_DIR / 'test_db.sqlite3')},
        }
    }

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'branch-queue',
    }
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

USE_TZ = True
TIME_ZONE = os.environ.get('TIME_ZONE', 'Asia/Colombo')

QUEUE_ENGINE = {
    'DAILY_RESET_HOUR': _env_int('DAILY_RESET_HOUR', 12),
    'DAILY_RESET_MINUTE': _env_int('DAILY_RESET_MINUTE', 0),
    'TRANSACTION_TIMEOUT_SECONDS': _env_int('TRANSACTION_TIMEOUT_SECONDS', 10),
    'MATCH_RETRIES': _env_int('MATCH_RETRIES', 3),
    'BREAK_COOLDOWN_MINUTES': _env_int('BREAK_COOLDOWN_MINUTES', 30),
    'MAX_BREAKS_PER_DAY': _env_int('MAX_BREAKS_PER_DAY', 6),
    'MAX_BREAK_MINUTES_PER_DAY': _env_int('MAX_BREAK_MINUTES_PER_DAY', 90),
    'LONG_WAIT_MINUTES': _env_int('LONG_WAIT_MINUTES', 10),
    'MINUTES_PER_TOKEN': _env_int('MINUTES_PER_TOKEN', 5),
    'EVENT_PUBLISHER': os.environ.get('EVENT_PUBLISHER', 'notifications.publisher.LoggingPublisher'),
    'EVENTS_ASYNC': _env_bool('EVENTS_ASYNC', True),
    'QR_TOKEN_TTL_SECONDS': _env_int('QR_TOKEN_TTL_SECONDS', 0),
}

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {'format': '%(asctime)s %(levelname)s %(name)s: %(message)s'},
    },
    'handlers': {
        'console': {'class': 'logging.StreamHandler', 'formatter': 'simple'},
    },
    'root': {
        'handlers': ['console'],
        'level': os.environ.get('LOG_LEVEL', 'INFO'),
    },
}
