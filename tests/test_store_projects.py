# tests/test_store_projects.py

import pytest

from apps.core.models import (
    Project, ProjectMember, ProjectRole, Section, Task, TaskComment
)


class TestProjects:

    def test_create_project_makes_creator_owner(self, owner_store, owner):
        result = owner_store.create_project('P1')

        assert result.ok and result.synced
        project = result.value
        assert owner_store.get_current_project()['project'] == project
        assert owner_store.get_current_project()['is_owner']
        assert owner_store.get_member_roles(owner.pk) == ['Owner']
        assert set(owner_store.get_available_role_names()) == {'Owner', 'Member'}
        assert ProjectMember.objects.get(project=project, user=owner).role_titles == ['Owner']
        assert len(project.invite_code) == 5

    def test_create_project_requires_name(self, owner_store):
        result = owner_store.create_project('   ')
        assert not result
        assert owner_store.get_my_projects() == []

    def test_join_with_invite_code(self, make_store, member, project):
        store = make_store(member)
        result = store.join_project(project.invite_code)

        assert result.ok
        assert store.get_current_project()['project'].id == project.id
        assert store.get_member_roles(member.pk) == ['Member']
        assert not store.get_current_project()['is_owner']

    def test_join_twice_is_harmless(self, member_store, member, project):
        assert member_store.join_project(project.invite_code)
        assert ProjectMember.objects.filter(project=project, user=member).count() == 1

    def test_join_invalid_code(self, make_store, member, project):
        result = make_store(member).join_project('zzzzz')
        assert not result
        assert result.reason == 'not_found'

    def test_set_current_project_only_for_members(self, make_store, outsider, project):
        store = make_store(outsider)
        assert not store.set_current_project(project.id)
        assert store.get_current_project() is None

    def test_invite_code_of_current_project(self, owner_store, project):
        assert owner_store.get_invite_code() == project.invite_code

    def test_delete_project_cascades(self, owner_store, project, todo, owner):
        task = owner_store.create_task(todo.id, 'T1').value
        owner_store.add_task_comment(task.id, 'olá')

        result = owner_store.delete_project(project.id)

        assert result.ok
        assert owner_store.get_my_projects() == []
        assert not Project.objects.filter(id=project.id).exists()
        for model in (Section, Task, ProjectMember, ProjectRole):
            assert not model.objects.filter(project_id=project.id).exists()
        assert not TaskComment.objects.filter(task_id=task.id).exists()

    def test_only_creator_deletes_project(self, member_store, project):
        result = member_store.delete_project(project.id)
        assert result.reason == 'forbidden'
        assert Project.objects.filter(id=project.id).exists()

    def test_creator_cannot_leave(self, owner_store, project):
        assert not owner_store.leave_project(project.id)

    def test_leave_unassigns_user(self, owner_store, member_store, member, project, shared):
        task = owner_store.create_task(shared.id, 'T1', assigned_to_list=[member.pk]).value
        member_store.resync()
        member_store.set_current_project(project.id)
        assert member_store.start_working_on(task.id)

        assert member_store.leave_project(project.id)

        assert member_store.get_my_projects() == []
        task.refresh_from_db()
        assert member.pk not in task.assigned_to_list
        assert member.pk not in task.working_on_by
        assert not ProjectMember.objects.filter(project=project, user=member).exists()


class TestMembers:

    def test_project_members(self, owner_store, member_store, owner, member, todo):
        members = {m['user'].pk: m['role_titles'] for m in owner_store.get_project_members()}
        assert members == {owner.pk: ['Owner'], member.pk: ['Member']}

    def test_toggle_member_role(self, owner_store, member, todo):
        owner_store.add_project_role('QA')

        assert owner_store.toggle_member_role(member.pk, 'QA').value == ['Member', 'QA']
        assert owner_store.toggle_member_role(member.pk, 'Member').value == ['QA']
        assert ProjectMember.objects.get(user=member).role_titles == ['QA']

    def test_toggle_keeps_last_role(self, owner_store, member, todo):
        result = owner_store.toggle_member_role(member.pk, 'Member')
        assert not result
        assert owner_store.get_member_roles(member.pk) == ['Member']

    def test_creator_never_loses_owner(self, owner_store, owner, todo):
        owner_store.add_project_role('QA')
        assert not owner_store.toggle_member_role(owner.pk, 'Owner')

        result = owner_store.set_member_roles(owner.pk, ['QA'])
        assert result.value == ['Owner', 'QA']

    def test_set_member_roles_empty_falls_back_to_member(self, owner_store, member, todo):
        assert owner_store.set_member_roles(member.pk, []).value == ['Member']

    def test_member_without_permission_cannot_edit_roles(self, member_store, owner):
        result = member_store.toggle_member_role(owner.pk, 'Member')
        assert result.reason == 'forbidden'

    def test_remove_member(self, owner_store, member, project, shared):
        task = owner_store.create_task(shared.id, 'T1', assigned_to_list=[member.pk]).value

        assert owner_store.remove_member(member.pk)

        assert [m['user'].pk for m in owner_store.get_project_members()] == [project.created_by_id]
        task.refresh_from_db()
        assert task.assigned_to_list == []

    def test_creator_cannot_be_removed(self, owner_store, owner, todo):
        assert owner_store.remove_member(owner.pk).reason == 'forbidden'


class TestRoles:

    def test_add_role_is_case_insensitive(self, owner_store, project):
        first = owner_store.add_project_role('Designer').value
        second = owner_store.add_project_role('designer').value

        assert first.id == second.id
        assert ProjectRole.objects.filter(project=project, name__iexact='designer').count() == 1
        assert first.color.startswith('#')

    def test_update_role_permissions(self, owner_store, project):
        role = owner_store.add_project_role('Lead').value

        updated = owner_store.update_role_permissions(role.id, {'is_admin': True}).value
        assert updated.permissions.as_dict() == dict.fromkeys(updated.permissions.names(), True)

        updated = owner_store.update_role_permissions(role.id, {'is_admin': False}).value
        assert not updated.is_admin
        assert updated.can_invite

    def test_owner_role_is_protected(self, owner_store, project):
        owner_role = next(r for r in owner_store.get_project_roles() if r.name == 'Owner')
        assert owner_store.update_role_permissions(owner_role.id, {'can_invite': False}).reason == 'forbidden'
        assert owner_store.delete_project_role(owner_role.id).reason == 'forbidden'

    def test_delete_role_strips_members_and_sections(self, owner_store, member, project, todo):
        role = owner_store.add_project_role('QA').value
        owner_store.set_member_roles(member.pk, ['QA'])
        section = owner_store.create_section('Review', allowed_roles=['Owner', 'QA']).value

        assert owner_store.delete_project_role(role.id)

        assert owner_store.get_member_roles(member.pk) == ['Member']
        section.refresh_from_db()
        assert section.allowed_roles == ['Owner']
        assert not ProjectRole.objects.filter(id=role.id).exists()

    def test_granted_permission_is_effective(self, owner_store, member_store, member, project):
        owner_store.resync()
        role = owner_store.add_project_role('Inviter', permissions={'can_invite': True}).value
        owner_store.set_member_roles(member.pk, ['Member', role.name])

        member_store.resync()
        member_store.set_current_project(project.id)
        assert member_store.can_invite()
        assert not member_store.can_delete_task()
        assert member_store.get_current_user_role_names() == ['Member', 'Inviter']
        assert {r.name for r in member_store.get_current_user_roles()} == {'Member', 'Inviter'}


class TestUsersAndNotifications:

    def test_online_and_streak(self, owner_store, owner, clock):
        owner.streak = 3
        owner.save(update_fields=['streak'])
        owner_store.resync()

        assert owner_store.is_user_online(owner.pk)
        assert owner_store.get_user_streak(owner.pk) == 3
        assert not owner_store.is_user_online(999)

    def test_subscribers_are_notified_on_mutation(self, owner_store):
        calls = []
        unsubscribe = owner_store.subscribe(lambda: calls.append(1))

        owner_store.create_project('P2')
        assert calls == [1]

        unsubscribe()
        owner_store.create_project('P3')
        assert calls == [1]

    def test_refusals_do_not_notify(self, owner_store):
        calls = []
        owner_store.subscribe(lambda: calls.append(1))
        owner_store.create_project('')
        assert calls == []
