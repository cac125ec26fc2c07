# apps/core/management/commands/sweep_deadlines.py

import uuid

from django.core.management.base import BaseCommand, CommandError

from apps.core.models import Project
from apps.core.store import WorkspaceStore


class Command(BaseCommand):
    help = 'Marca como FAILED as tarefas ativas com prazo expirado'

    def add_arguments(self, parser):
        parser.add_argument('--project', help='UUID do projeto (padrão: todos)')

    def handle(self, *args, **options):
        projects = Project.objects.select_related('created_by')
        if options['project']:
            try:
                project_id = uuid.UUID(options['project'])
            except ValueError:
                raise CommandError(f"UUID inválido: {options['project']}")
            projects = projects.filter(id=project_id)
            if not projects.exists():
                raise CommandError(f"Projeto {options['project']} não encontrado")

        total = 0
        for project in projects:
            # A varredura roda com a visão do criador, que é membro de todo projeto
            store = WorkspaceStore(project.created_by)
            store.resync()
            store.set_current_project(project.id)

            result = store.check_and_fail_expired_tasks()
            if not result.synced:
                raise CommandError(f'Falha ao gravar varredura de "{project.name}": {result.error}')

            if result.value:
                self.stdout.write(f'  ⏰ {project.name}: {result.value} tarefas expiradas')
            total += result.value

        self.stdout.write(self.style.SUCCESS(f'✅ Varredura concluída: {total} tarefas marcadas como FAILED'))
