# config/settings/test.py

from .base import *

# === TESTES ===

DEBUG = False

SECRET_KEY = 'teamsync-test-secret-key'

ALLOWED_HOSTS = ['testserver', 'localhost']

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'teamsync-test-cache',
    }
}

SESSION_ENGINE = 'django.contrib.sessions.backends.db'

CHANNEL_LAYERS = {
    'default': {
        'BACKEND': 'channels.layers.InMemoryChannelLayer'
    }
}

TIME_ZONE = 'UTC'

# Hash rápido para acelerar criação de usuários
PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

STORAGES['staticfiles'] = {
    'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
}

# Desabilitar logs em testes (caplog captura pelo root)
LOGGING['handlers'] = {}
LOGGING['loggers'] = {}
LOGGING['root'] = {'level': 'INFO'}
