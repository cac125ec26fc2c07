# apps/core/apps.py

from django.apps import AppConfig


class CoreConfig(AppConfig):
    """Configuração da app Core"""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.core'
    verbose_name = 'Core - TeamSync'

    def ready(self):
        """
        Conecta os sinais de comentários e membros
        """
        from . import signals  # noqa: F401
