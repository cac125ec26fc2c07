# apps/core/views.py

import logging

from django.contrib.auth.decorators import login_required
from django.core.cache import cache
from django.db import connection, DatabaseError
from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_http_methods, require_POST, require_GET
from redis.exceptions import RedisError

from .auth_service import auth_service
from .forms import (
    LoginForm, RegistrationForm, ProjectForm, JoinProjectForm,
    RoleForm, MemberRolesForm, MemberRoleToggleForm
)
from .permissions import requires_project_access, ajax_requires_permission
from .store import WorkspaceStore
from .utils import (
    DEFAULT_ROLE_TEMPLATES, command_response, form_errors_response, read_payload
)

logger = logging.getLogger(__name__)

VERSION = '0.1.0'


# =================== AUTENTICAÇÃO ===================

@require_POST
def register_view(request):
    """
    Cadastro de usuário

    A validação HTTP fica no form; regras de negócio no serviço
    """
    form = RegistrationForm(read_payload(request))
    if not form.is_valid():
        return form_errors_response(form)

    success, message, user = auth_service.register(request, form.cleaned_data)
    if not success:
        return JsonResponse({'success': False, 'error': message}, status=400)

    return JsonResponse({'success': True, 'message': message, 'user': user.as_dict()}, status=201)


@require_POST
def login_view(request):
    form = LoginForm(read_payload(request))
    if not form.is_valid():
        return form_errors_response(form)

    success, message, user = auth_service.login(
        request,
        form.cleaned_data['username'],
        form.cleaned_data['password'],
        form.cleaned_data['remember_me'],
    )
    if not success:
        return JsonResponse({'success': False, 'error': message}, status=401)

    return JsonResponse({'success': True, 'message': message, 'user': user.as_dict()})


@require_POST
def logout_view(request):
    auth_service.logout(request)
    return JsonResponse({'success': True})


@require_GET
def session_view(request):
    """Estado da sessão - usado pelo cliente na inicialização"""
    return JsonResponse(auth_service.session_payload(request))


@require_GET
def health_check(request):
    """
    Health check para monitoramento
    """
    status = {
        'timestamp': timezone.now().isoformat(),
        'version': VERSION,
    }

    try:
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1')
        status['database'] = 'ok'

        cache.set('health_check', 'ok', 60)
        status['cache'] = 'ok' if cache.get('health_check') == 'ok' else 'unavailable'
    except (DatabaseError, RedisError) as e:
        logger.error(f"❌ Health check falhou: {e}")
        status.update({'status': 'unhealthy', 'error': str(e)})
        return JsonResponse(status, status=500)

    status['status'] = 'healthy'
    return JsonResponse(status)


# =================== PROJETOS ===================

@login_required
@require_http_methods(['GET', 'POST'])
def projects_view(request):
    """
    GET: projetos do usuário
    POST: cria projeto (o criador vira Owner)
    """
    store = WorkspaceStore.for_request(request)

    if request.method == 'GET':
        current = store.get_current_project()
        return JsonResponse({
            'success': True,
            'projects': [
                {**entry['project'].as_dict(), 'role': entry['role'], 'is_owner': entry['is_owner']}
                for entry in store.get_my_projects()
            ],
            'current_project_id': str(current['project'].id) if current else None,
        })

    form = ProjectForm(read_payload(request))
    if not form.is_valid():
        return form_errors_response(form)

    result = store.create_project(form.cleaned_data['name'])
    if result:
        request.session['current_project_id'] = str(result.value.id)
    return command_response(result, {'project': result.value.as_dict() if result else None}, status=201)


@login_required
@require_POST
def join_project_view(request):
    form = JoinProjectForm(read_payload(request))
    if not form.is_valid():
        return form_errors_response(form)

    store = WorkspaceStore.for_request(request)
    result = store.join_project(form.cleaned_data['invite_code'])
    if not result:
        return command_response(result)

    project = result.value
    request.session['current_project_id'] = str(project.id)
    return command_response(result, {'project': project.as_dict()})


@login_required
@require_http_methods(['GET', 'DELETE'])
@requires_project_access
def project_detail_view(request, project_id):
    """
    GET: projeto atual com papel e permissões
    DELETE: exclui o projeto (apenas o criador)
    """
    store = request.store

    if request.method == 'DELETE':
        result = store.delete_project(project_id)
        if result:
            request.session.pop('current_project_id', None)
        return command_response(result)

    current = store.get_current_project()
    return JsonResponse({
        'success': True,
        'project': current['project'].as_dict(),
        'role': current['role'],
        'is_owner': current['is_owner'],
        'permissions': store.effective_permissions().as_dict(),
    })


@login_required
@require_POST
@requires_project_access
def leave_project_view(request, project_id):
    result = request.store.leave_project(project_id)
    if result:
        request.session.pop('current_project_id', None)
    return command_response(result)


@login_required
@require_GET
@requires_project_access
@ajax_requires_permission('can_invite')
def invite_code_view(request, project_id):
    return JsonResponse({'success': True, 'invite_code': request.store.get_invite_code()})


# =================== MEMBROS ===================

@login_required
@require_GET
@requires_project_access
def members_view(request, project_id):
    store = request.store
    members = []
    for entry in store.get_project_members():
        user = entry['user']
        members.append({
            'user': user.as_dict() if user else None,
            'role_titles': entry['role_titles'],
            'is_owner': request.project.is_owner(entry['membership'].user_id),
            'online': store.is_user_online(entry['membership'].user_id),
            'streak': store.get_user_streak(entry['membership'].user_id),
        })
    return JsonResponse({'success': True, 'members': members})


@login_required
@require_POST
@requires_project_access
def toggle_member_role_view(request, project_id, user_id):
    form = MemberRoleToggleForm(read_payload(request))
    if not form.is_valid():
        return form_errors_response(form)

    result = request.store.toggle_member_role(user_id, form.cleaned_data['role_title'])
    return command_response(result, {'role_titles': result.value})


@login_required
@require_POST
@requires_project_access
def set_member_roles_view(request, project_id, user_id):
    form = MemberRolesForm(read_payload(request))
    if not form.is_valid():
        return form_errors_response(form)

    result = request.store.set_member_roles(user_id, form.cleaned_data['role_titles'])
    return command_response(result, {'role_titles': result.value})


@login_required
@require_http_methods(['DELETE', 'POST'])
@requires_project_access
def remove_member_view(request, project_id, user_id):
    return command_response(request.store.remove_member(user_id))


# =================== PAPÉIS ===================

@login_required
@require_http_methods(['GET', 'POST'])
@requires_project_access
def roles_view(request, project_id):
    """
    GET: papéis do projeto e papéis do usuário atual
    POST: cria papel
    """
    store = request.store

    if request.method == 'GET':
        return JsonResponse({
            'success': True,
            'roles': [role.as_dict() for role in store.get_project_roles()],
            'my_roles': store.get_current_user_role_names(),
            'templates': DEFAULT_ROLE_TEMPLATES,
        })

    form = RoleForm(read_payload(request))
    if not form.is_valid():
        return form_errors_response(form)

    result = store.add_project_role(
        form.cleaned_data['name'],
        color=form.cleaned_data['color'] or None,
        permissions=form.cleaned_data['permissions'],
    )
    return command_response(result, {'role': result.value.as_dict() if result else None}, status=201)


@login_required
@require_http_methods(['PATCH', 'POST', 'DELETE'])
@requires_project_access
def role_detail_view(request, project_id, role_id):
    store = request.store

    if request.method == 'DELETE':
        return command_response(store.delete_project_role(role_id))

    form = RoleForm(read_payload(request))
    if not form.is_valid():
        return form_errors_response(form)

    result = store.update_role_permissions(role_id, form.cleaned_data['permissions'])
    return command_response(result, {'role': result.value.as_dict() if result else None})
