# config/settings/production.py

import logging

from .base import *

# === PRODUÇÃO ===

DEBUG = False

for name in ('SECRET_KEY', 'DATABASE_URL', 'REDIS_URL', 'ALLOWED_HOSTS'):
    if not env(name, default=None):
        raise ValueError(f"Variável de ambiente {name} é obrigatória em produção")

DATABASES['default'] = dj_database_url.config(conn_max_age=600, conn_health_checks=True, ssl_require=True)

# === SEGURANÇA ===

SECURE_SSL_REDIRECT = True
SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')
SECURE_HSTS_SECONDS = 60 * 60 * 24 * 365
SECURE_HSTS_INCLUDE_SUBDOMAINS = True
SECURE_CONTENT_TYPE_NOSNIFF = True
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True
X_FRAME_OPTIONS = 'DENY'

MIDDLEWARE = ['django.middleware.gzip.GZipMiddleware'] + MIDDLEWARE

# === LOGGING ===

LOGGING['handlers']['file']['filename'] = env('LOG_FILE', default=str(LOG_DIR / 'teamsync.log'))
LOGGING['root']['handlers'] = ['console', 'file']

# Erros também vão para o Sentry, se configurado
if env('SENTRY_DSN', default=None):
    import sentry_sdk
    from sentry_sdk.integrations.django import DjangoIntegration
    from sentry_sdk.integrations.logging import LoggingIntegration

    sentry_sdk.init(
        dsn=env('SENTRY_DSN'),
        integrations=[
            DjangoIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        traces_sample_rate=env.float('SENTRY_TRACES_SAMPLE_RATE', default=0.1),
        environment=env('ENVIRONMENT', default='production'),
    )
