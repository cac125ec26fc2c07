# apps/core/management/commands/seed.py

from datetime import timedelta

from django.core.management.base import BaseCommand
from django.db import transaction

from apps.core.models import User, Project
from apps.core.store import WorkspaceStore

DEMO_PROJECT_NAME = 'TeamSync Demo'

DEMO_SECTIONS = [
    ('Backlog', '#94a3b8'),
    ('To Do', '#3b82f6'),
    ('In Progress', '#f59e0b'),
    ('Done', '#22c55e'),
]


class Command(BaseCommand):
    help = 'Cria usuário e projeto de demonstração (idempotente)'

    def add_arguments(self, parser):
        parser.add_argument('--username', default='berk', help='Usuário de demonstração')
        parser.add_argument('--email', default='berk@teamsync.io', help='Email do usuário de demonstração')
        parser.add_argument('--password', default='teamsync123', help='Senha do usuário de demonstração')

    def handle(self, *args, **options):
        self.stdout.write('🌱 Preparando dados de demonstração...')

        with transaction.atomic():
            user, created = User.objects.get_or_create(
                username=options['username'],
                defaults={'email': options['email'], 'first_name': options['username'].title(), 'streak': 1}
            )
            if created:
                user.set_password(options['password'])
                user.save(update_fields=['password'])
                self.stdout.write(f'  👤 Usuário {user.username} criado')

            if Project.objects.filter(created_by=user, name=DEMO_PROJECT_NAME).exists():
                self.stdout.write(self.style.WARNING(f'⚠️ Projeto "{DEMO_PROJECT_NAME}" já existe - nada a fazer'))
                return

            self._create_demo_project(user)

        self.stdout.write(self.style.SUCCESS(
            f'\n✅ Demonstração pronta!\n'
            f'  Login: {user.username} / {options["password"] if created else "(senha existente)"}\n'
        ))

    def _create_demo_project(self, user):
        store = WorkspaceStore(user)
        store.resync()

        result = store.create_project(DEMO_PROJECT_NAME)
        if not result.synced:
            raise RuntimeError(f'Falha ao gravar projeto de demonstração: {result.error}')
        self.stdout.write(f'  📁 Projeto "{result.value.name}" criado (convite: {result.value.invite_code})')

        sections = {}
        for name, color in DEMO_SECTIONS:
            sections[name] = store.create_section(name, color, []).value

        now = store.now()
        store.create_task(
            sections['To Do'].id,
            'Welcome to TeamSync! 👋',
            description='This is a demo task. Try dragging it, editing it, or checking it off!',
            priority='HIGH',
            assigned_to_list=[user.pk],
            deadline=now + timedelta(days=1),
        )
        store.create_task(
            sections['In Progress'].id,
            'Invite your team',
            description='Click the "Invite" button to get a code you can share.',
            priority='MEDIUM',
            assigned_to_list=[user.pk],
        )

        if store.outbox:
            raise RuntimeError(f'{len(store.outbox)} escritas de demonstração não foram gravadas')
        self.stdout.write(f'  🗂️  {len(DEMO_SECTIONS)} seções e 2 tarefas criadas')
