#!/usr/bin/env python
"""
TeamSync - utilitário de linha de comando

Além dos comandos do Django:
    python manage.py setup    migrações, estáticos e dados de demonstração
    python manage.py backup   dump JSON do app core
"""

import os
import sys
from datetime import datetime


def setup(call_command):
    print("🚀 Configurando TeamSync...")
    call_command('migrate', interactive=False)
    call_command('collectstatic', interactive=False, verbosity=0)
    call_command('seed')
    print("✅ Setup concluído!")


def backup(call_command):
    backup_file = f"backup_teamsync_{datetime.now():%Y%m%d_%H%M%S}.json"
    call_command('dumpdata', 'core', indent=2, output=backup_file)
    print(f"💾 Backup criado: {backup_file}")


SHORTCUTS = {
    'setup': setup,
    'backup': backup,
}


def main():
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.development')

    try:
        import django
        from django.core.management import call_command, execute_from_command_line
    except ImportError as exc:
        raise ImportError(
            "Couldn't import Django. Are you sure it's installed and "
            "available on your PYTHONPATH environment variable? Did you "
            "forget to activate a virtual environment?"
        ) from exc

    shortcut = SHORTCUTS.get(sys.argv[1]) if len(sys.argv) > 1 else None
    if shortcut is None:
        execute_from_command_line(sys.argv)
        return

    django.setup()
    shortcut(call_command)


if __name__ == '__main__':
    main()
