# apps/core/permissions.py

import logging
from functools import wraps

from django.core.exceptions import PermissionDenied
from django.http import JsonResponse

from .models import OWNER_ROLE, RolePermissions
from .utils import broadcast_to_project

logger = logging.getLogger(__name__)


class TeamSyncPermissions:
    """
    Sistema de permissões do TeamSync

    Baseado nos papéis (ProjectRole) que cada membro acumula no projeto.
    Todas as verificações trabalham sobre listas em memória.
    """

    @staticmethod
    def is_owner(project, user_id):
        """Criador do projeto é sempre o Owner"""
        return project is not None and user_id is not None and project.created_by_id == user_id

    @staticmethod
    def effective_permissions(project, user_id, role_names, roles):
        """
        Calcula as permissões efetivas de um usuário no projeto

        Regras:
        1. Criador do projeto tem todas as permissões
        2. Caso contrário, união das permissões de todos os papéis do usuário
        3. Qualquer papel com is_admin concede tudo
        """
        if TeamSyncPermissions.is_owner(project, user_id):
            return RolePermissions.admin()

        effective = RolePermissions()
        for role in roles:
            if role.project_id != project.id or role.name not in role_names:
                continue
            effective = effective.union(role.permissions)
        return effective

    @staticmethod
    def has_permission(project, user_id, role_names, roles, permission):
        """Verifica uma permissão específica"""
        if project is None or user_id is None:
            return False
        return TeamSyncPermissions.effective_permissions(
            project, user_id, role_names, roles
        ).grants(permission)

    @staticmethod
    def can_edit_section(role_names, section):
        """
        Verifica se pode editar as tarefas de uma seção

        Owner sempre pode; os demais precisam de ao menos um papel na lista da seção
        """
        if section is None:
            return False
        if OWNER_ROLE in role_names:
            return True
        return any(role in section.allowed_roles for role in role_names)

    @staticmethod
    def can_work_on_task(user_id, role_names, task, section):
        """Precisa estar atribuído à tarefa e ter direito de edição na seção"""
        if user_id is None or task is None:
            return False
        if user_id not in task.assigned_to_list:
            return False
        return TeamSyncPermissions.can_edit_section(role_names, section)


# Decoradores para views

def requires_project_access(view_func):
    """
    Decorador que verifica acesso ao projeto
    Espera que a view receba project_id como parâmetro
    """

    @wraps(view_func)
    def wrapped_view(request, project_id, *args, **kwargs):
        from .store import WorkspaceStore

        store = WorkspaceStore.for_request(request)

        if not store.project_exists(project_id):
            return JsonResponse({'success': False, 'error': 'Projeto não encontrado.'}, status=404)

        if not store.set_current_project(project_id):
            return JsonResponse({'success': False, 'error': 'Você não tem acesso a este projeto.'}, status=403)

        request.session['current_project_id'] = str(project_id)

        # Adiciona a store e o projeto ao request para uso na view
        request.store = store
        request.project = store.get_project(project_id)

        # Mutações notificam a store; o board dos demais membros é avisado no final
        changes = []
        unsubscribe = store.subscribe(lambda: changes.append(True))
        try:
            response = view_func(request, project_id, *args, **kwargs)
        finally:
            unsubscribe()

        # Última tentativa para escritas que falharam durante a view
        if store.outbox:
            store.flush_outbox()
        if store.outbox:
            pending = ', '.join(command.describe() for command in store.outbox)
            logger.warning(f"⚠️ {len(store.outbox)} escritas descartadas ao fim da requisição: {pending}")
            return response

        if changes and response.status_code < 400:
            broadcast_to_project(project_id, 'board_refresh', {
                'user_id': request.user.pk,
                'username': request.user.username,
                'action': view_func.__name__,
            })
        return response

    return wrapped_view


def ajax_requires_permission(permission):
    """
    Decorador genérico para views AJAX
    Deve ser aplicado depois de requires_project_access
    """

    def decorator(view_func):
        @wraps(view_func)
        def wrapped_view(request, *args, **kwargs):
            if not request.store.has_permission(permission):
                raise PermissionDenied("Você não tem permissão para esta ação.")
            return view_func(request, *args, **kwargs)

        return wrapped_view

    return decorator
