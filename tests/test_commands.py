# tests/test_commands.py

from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError
from django.utils import timezone

from apps.core.models import Project, Section, Task, User


def run(*args):
    out = StringIO()
    call_command(*args, stdout=out)
    return out.getvalue()


class TestSeed:

    def test_creates_demo_workspace(self, db):
        output = run('seed')

        user = User.objects.get(username='berk')
        assert user.check_password('teamsync123')
        project = Project.objects.get(name='TeamSync Demo', created_by=user)
        assert list(Section.objects.filter(project=project).order_by('order').values_list('name', flat=True)) == [
            'Backlog', 'To Do', 'In Progress', 'Done'
        ]
        assert Task.objects.filter(project=project).count() == 2
        assert 'Demonstração pronta' in output

    def test_is_idempotent(self, db):
        run('seed')
        output = run('seed')

        assert Project.objects.filter(name='TeamSync Demo').count() == 1
        assert Task.objects.count() == 2
        assert 'já existe' in output

    def test_custom_user(self, db):
        run('seed', '--username', 'demo', '--password', 'outra123')
        assert User.objects.get(username='demo').check_password('outra123')


class TestSweepDeadlines:

    def test_fails_expired_tasks(self, owner_store, todo, clock):
        expired = owner_store.create_task(todo.id, 'Atrasada', deadline=clock.now - timedelta(days=1)).value
        future = owner_store.create_task(todo.id, 'Futura', deadline=timezone.now() + timedelta(days=30)).value

        output = run('sweep_deadlines')

        assert Task.objects.get(id=expired.id).status == 'FAILED'
        assert Task.objects.get(id=future.id).status == 'ACTIVE'
        assert '1 tarefas marcadas como FAILED' in output

    def test_single_project(self, owner_store, todo, project, clock):
        owner_store.create_task(todo.id, 'Atrasada', deadline=clock.now - timedelta(days=1))
        output = run('sweep_deadlines', '--project', str(project.id))
        assert 'P1: 1 tarefas expiradas' in output

    def test_invalid_project(self, db):
        with pytest.raises(CommandError, match='UUID inválido'):
            run('sweep_deadlines', '--project', 'abc')

    def test_unknown_project(self, db):
        with pytest.raises(CommandError, match='não encontrado'):
            run('sweep_deadlines', '--project', '00000000-0000-0000-0000-000000000000')
