# tests/test_store_tasks.py

from datetime import timedelta

import pytest

from apps.core.models import Section, Task, TaskComment


def reload(store, project):
    store.resync()
    store.set_current_project(project.id)
    return store


class TestSections:

    def test_empty_allowlist_defaults_to_owner(self, todo):
        assert todo.allowed_roles == ['Owner']
        assert todo.allowed_roles_text() == 'Only Owner'

    def test_sections_are_ordered(self, owner_store, project):
        for name in ('Backlog', 'Doing', 'Done'):
            owner_store.create_section(name)
        assert [s.name for s in owner_store.get_sections()] == ['Backlog', 'Doing', 'Done']
        assert [s.order for s in owner_store.get_sections()] == [0, 1, 2]

    def test_member_cannot_create_section(self, member_store):
        assert member_store.create_section('Nope').reason == 'forbidden'

    def test_update_section(self, owner_store, todo):
        result = owner_store.update_section(todo.id, name='Doing', color='#000000', allowed_roles=['Owner', 'Member'])
        assert result.ok
        section = Section.objects.get(id=todo.id)
        assert (section.name, section.color, section.allowed_roles) == ('Doing', '#000000', ['Owner', 'Member'])
        assert owner_store.get_section_allowed_roles_text(todo.id) == 'Member'

    def test_member_cannot_update_section(self, member_store, project, shared):
        reload(member_store, project)
        assert member_store.update_section(shared.id, name='X').reason == 'forbidden'

    def test_delete_section_cascades(self, owner_store, todo):
        task = owner_store.create_task(todo.id, 'T1').value
        owner_store.add_task_comment(task.id, 'primeiro')

        assert owner_store.delete_section(todo.id)

        assert owner_store.get_sections() == []
        assert owner_store.get_task(task.id) is None
        assert not Task.objects.filter(section_id=todo.id).exists()
        assert not TaskComment.objects.filter(task_id=task.id).exists()


class TestTasks:

    def test_owner_only_section_scenario(self, owner_store, member_store, member, project, todo):
        """Seção com lista vazia: só o Owner edita, mesmo com o membro atribuído"""
        task = owner_store.create_task(todo.id, 'T1', assigned_to_list=[member.pk]).value
        reload(member_store, project)

        assert member_store.create_task(todo.id, 'T2').reason == 'forbidden'
        assert not member_store.can_edit_section(todo.id)
        assert member_store.toggle_task_status(task.id).reason == 'forbidden'
        assert member_store.update_task(task.id, title='Outro').reason == 'forbidden'
        assert Task.objects.get(id=task.id).title == 'T1'

    def test_create_task_defaults(self, owner_store, todo, clock):
        task = owner_store.create_task(todo.id, '  Escrever testes  ').value
        assert task.title == 'Escrever testes'
        assert (task.status, task.priority) == ('ACTIVE', 'MEDIUM')
        assert task.created_at == clock.now
        assert task.working_on_by == []

    def test_create_task_rejects_outsiders(self, owner_store, outsider, todo):
        result = owner_store.create_task(todo.id, 'T', assigned_to_list=[outsider.pk])
        assert result.reason == 'invalid'
        assert not Task.objects.exists()

    def test_get_tasks_includes_assignee_roles(self, owner_store, member, todo):
        owner_store.create_task(todo.id, 'T', assigned_to_list=[member.pk])
        [entry] = owner_store.get_tasks(todo.id)
        assert entry['assignees'][0]['user'] == member
        assert entry['assignees'][0]['role_titles'] == ['Member']

    def test_update_task(self, owner_store, shared, todo, clock):
        task = owner_store.create_task(todo.id, 'T').value
        clock.now += timedelta(minutes=5)

        result = owner_store.update_task(task.id, title='T!', priority='HIGH', section_id=str(shared.id))

        assert result.ok
        task.refresh_from_db()
        assert (task.title, task.priority, task.section_id) == ('T!', 'HIGH', shared.id)
        assert task.updated_at == clock.now

    def test_update_task_cannot_change_status(self, owner_store, todo):
        task = owner_store.create_task(todo.id, 'T').value
        assert owner_store.update_task(task.id, status='DONE').reason == 'invalid'

    def test_unassigning_stops_work(self, owner_store, member_store, member, project, shared):
        task = owner_store.create_task(shared.id, 'T', assigned_to_list=[member.pk]).value
        reload(member_store, project)
        member_store.start_working_on(task.id)

        reload(owner_store, project)
        owner_store.update_task(task.id, assigned_to_list=[])

        task.refresh_from_db()
        assert task.working_on_by == []
        assert task.working_on_started is None

    def test_toggle_status(self, owner_store, todo):
        task = owner_store.create_task(todo.id, 'T').value
        assert owner_store.toggle_task_status(task.id).value == 'DONE'
        assert owner_store.toggle_task_status(task.id).value == 'ACTIVE'
        assert Task.objects.get(id=task.id).status == 'ACTIVE'

    def test_failed_task_cannot_be_toggled(self, owner_store, todo, clock):
        task = owner_store.create_task(todo.id, 'T', deadline=clock.now - timedelta(days=1)).value
        owner_store.check_and_fail_expired_tasks()

        result = owner_store.toggle_task_status(task.id)
        assert not result
        assert Task.objects.get(id=task.id).status == 'FAILED'

    def test_delete_task_requires_permission(self, owner_store, member_store, project, shared):
        task = owner_store.create_task(shared.id, 'T').value
        reload(member_store, project)

        assert member_store.delete_task(task.id).reason == 'forbidden'
        assert owner_store.delete_task(task.id)
        assert not Task.objects.filter(id=task.id).exists()


class TestWorkingOn:

    @pytest.fixture
    def task(self, owner_store, member_store, member, owner, project, shared):
        task = owner_store.create_task(shared.id, 'T', assigned_to_list=[member.pk, owner.pk]).value
        reload(member_store, project)
        return task

    def test_start_and_stop(self, member_store, member, task, clock):
        assert member_store.start_working_on(task.id)
        assert member_store.is_current_user_working_on(task.id)
        assert member_store.get_working_on_users(task.id) == [member]
        assert Task.objects.get(id=task.id).working_on_started == clock.now

        assert member_store.stop_working_on(task.id)
        stored = Task.objects.get(id=task.id)
        assert stored.working_on_by == []
        assert stored.working_on_started is None

    def test_start_is_idempotent(self, member_store, member, task):
        member_store.start_working_on(task.id)
        assert member_store.start_working_on(task.id)
        assert Task.objects.get(id=task.id).working_on_by == [member.pk]

    def test_several_assignees_work_together(self, owner_store, member_store, owner, member, project, task, clock):
        member_store.start_working_on(task.id)
        started = clock.now
        clock.now += timedelta(minutes=10)

        reload(owner_store, project)
        owner_store.start_working_on(task.id)

        stored = Task.objects.get(id=task.id)
        assert stored.working_on_by == [member.pk, owner.pk]
        assert stored.working_on_started == started

    def test_non_assignee_is_refused(self, owner_store, shared):
        task = owner_store.create_task(shared.id, 'Sem responsável').value
        assert owner_store.start_working_on(task.id).reason == 'forbidden'

    def test_done_task_is_refused(self, owner_store, member_store, project, task):
        reload(owner_store, project)
        owner_store.toggle_task_status(task.id)
        reload(member_store, project)
        assert not member_store.start_working_on(task.id)

    def test_failed_task_is_refused(self, owner_store, member_store, member, project, shared, clock):
        task = owner_store.create_task(
            shared.id, 'Atrasada', assigned_to_list=[member.pk], deadline=clock.now - timedelta(days=1)
        ).value
        assert owner_store.check_and_fail_expired_tasks().value == 1
        reload(member_store, project)

        result = member_store.start_working_on(task.id)

        assert not result.ok
        assert member_store.get_task(task.id).working_on_by == []
        assert Task.objects.get(id=task.id).working_on_by == []

    def test_assignee_without_section_rights_is_forbidden(self, owner_store, member_store, member, project, todo):
        task = owner_store.create_task(todo.id, 'Só Owner', assigned_to_list=[member.pk]).value
        reload(member_store, project)

        result = member_store.start_working_on(task.id)

        assert result.reason == 'forbidden'
        assert Task.objects.get(id=task.id).working_on_by == []

    def test_user_working_on_tasks(self, member_store, member, task, shared):
        member_store.start_working_on(task.id)
        [entry] = member_store.get_user_working_on_tasks(member.pk)
        assert entry['task'].id == task.id
        assert entry['section_name'] == shared.name
        assert entry['project_name'] == 'P1'


class TestDeadlines:

    def test_sweep_fails_expired_tasks(self, owner_store, owner, todo, clock):
        expired = owner_store.create_task(
            todo.id, 'Atrasada', assigned_to_list=[owner.pk], deadline=clock.now - timedelta(days=1)
        ).value
        owner_store.start_working_on(expired.id)
        future = owner_store.create_task(todo.id, 'Futura', deadline=clock.now + timedelta(days=2)).value

        result = owner_store.check_and_fail_expired_tasks()

        assert result.value == 1
        stored = Task.objects.get(id=expired.id)
        assert stored.status == 'FAILED'
        assert stored.working_on_by == []
        assert Task.objects.get(id=future.id).status == 'ACTIVE'
        assert owner_store.get_failed_tasks() == [expired]

    def test_sweep_includes_later_today(self, owner_store, todo, clock):
        task = owner_store.create_task(todo.id, 'Hoje', deadline=clock.now + timedelta(hours=3)).value
        assert owner_store.check_and_fail_expired_tasks().value == 1
        assert owner_store.get_task(task.id).status == 'FAILED'

    def test_sweep_ignores_done_tasks(self, owner_store, todo, clock):
        task = owner_store.create_task(todo.id, 'Feita', status='DONE', deadline=clock.now - timedelta(days=3)).value
        assert owner_store.check_and_fail_expired_tasks().value == 0
        assert owner_store.get_task(task.id).status == 'DONE'

    def test_overdue_tasks(self, owner_store, todo, clock):
        late = owner_store.create_task(todo.id, 'Atrasada', deadline=clock.now - timedelta(days=1)).value
        owner_store.create_task(todo.id, 'Hoje', deadline=clock.now + timedelta(hours=1))
        owner_store.create_task(todo.id, 'Feita', status='DONE', deadline=clock.now - timedelta(days=1))

        assert [entry['task'] for entry in owner_store.get_overdue_tasks()] == [late]


class TestSearch:

    def test_search_by_title(self, owner_store, todo):
        task = owner_store.create_task(todo.id, 'Implement authentication').value
        owner_store.create_task(todo.id, 'Write docs')

        [hit] = owner_store.search_tasks('auth')
        assert hit['task'] == task
        assert hit['section_name'] == 'To Do'
        assert owner_store.search_tasks('kubernetes') == []

    def test_search_by_description_and_assignee(self, owner_store, member, todo):
        by_description = owner_store.create_task(todo.id, 'A', description='Corrigir o LOGIN').value
        by_assignee = owner_store.create_task(todo.id, 'B', assigned_to_list=[member.pk]).value

        assert [h['task'] for h in owner_store.search_tasks('login')] == [by_description]
        assert [h['task'] for h in owner_store.search_tasks('bruno')] == [by_assignee]

    def test_blank_query_returns_nothing(self, owner_store, todo):
        owner_store.create_task(todo.id, 'A')
        assert owner_store.search_tasks('   ') == []


class TestComments:

    def test_comments_in_timestamp_order(self, owner_store, owner, todo, clock):
        task = owner_store.create_task(todo.id, 'T').value
        owner_store.add_task_comment(task.id, 'primeiro')
        clock.now += timedelta(seconds=1)
        owner_store.add_task_comment(task.id, 'segundo')

        comments = owner_store.get_task_comments(task.id)
        assert [c.text for c in comments] == ['primeiro', 'segundo']
        assert comments[0].user_name == 'Ana Souza'
        assert owner_store.get_task_comment_count(task.id) == 2

    def test_empty_comment_is_refused(self, owner_store, todo):
        task = owner_store.create_task(todo.id, 'T').value
        assert not owner_store.add_task_comment(task.id, '  ')

    def test_remote_comment_is_deduplicated(self, owner_store, member_store, project, todo):
        task = owner_store.create_task(todo.id, 'T').value
        reload(member_store, project)
        comment = owner_store.add_task_comment(task.id, 'oi').value
        payload = comment.as_dict()

        assert member_store.apply_remote_comment(payload)
        assert not member_store.apply_remote_comment(payload)
        assert member_store.get_task_comment_count(task.id) == 1

    def test_remote_comment_for_unknown_task_is_ignored(self, owner_store):
        payload = {'id': '8b0c1f3e-2f51-4a7e-9a53-0c1b4e0b2d11', 'task_id': '00000000-0000-0000-0000-000000000000'}
        assert not owner_store.apply_remote_comment(payload)
