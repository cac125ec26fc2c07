# config/settings/development.py

import redis

from .base import *

# === DESENVOLVIMENTO ===

DEBUG = True
ALLOWED_HOSTS = ['localhost', '127.0.0.1', '0.0.0.0']

# SQLite quando não há PostgreSQL local
if env.bool('USE_SQLITE', default=False):
    DATABASES['default'] = dj_database_url.parse(f"sqlite:///{BASE_DIR / 'db.sqlite3'}")

LOGGING['loggers']['apps']['level'] = 'DEBUG'

# Sem Redis: cache e channel layer em memória (um único processo)
CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'teamsync-dev',
    }
}
CHANNEL_LAYERS = {
    'default': {'BACKEND': 'channels.layers.InMemoryChannelLayer'}
}
SESSION_ENGINE = 'django.contrib.sessions.backends.db'

try:
    redis.from_url(REDIS_URL, socket_connect_timeout=1).ping()
except redis.exceptions.RedisError as e:
    print(f"⚠️  Redis indisponível ({e}) - usando cache e channel layer em memória")
else:
    CACHES['default'] = {
        'BACKEND': 'django_redis.cache.RedisCache',
        'LOCATION': REDIS_URL,
        'KEY_PREFIX': 'teamsync-dev',
    }
    CHANNEL_LAYERS['default'] = {
        'BACKEND': 'channels_redis.core.RedisChannelLayer',
        'CONFIG': {'hosts': [REDIS_URL]},
    }
    print("🔴 Redis conectado")

SHELL_PLUS_IMPORTS = [
    'from apps.core.store import WorkspaceStore',
    'from apps.core.auth_service import auth_service',
]

print(f"🚀 TeamSync em modo DESENVOLVIMENTO ({DATABASES['default']['ENGINE'].rsplit('.', 1)[-1]})")
