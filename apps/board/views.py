# apps/board/views.py

import logging

from django.conf import settings
from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.views.decorators.http import require_http_methods, require_POST, require_GET

from apps.core.forms import SectionForm, TaskForm, CommentForm, SearchForm
from apps.core.permissions import requires_project_access
from apps.core.utils import command_response, form_errors_response, read_payload

logger = logging.getLogger(__name__)


def _task_entries(entries):
    """Serializa tarefas com responsáveis e seus papéis"""
    result = []
    for entry in entries:
        data = entry['task'].as_dict()
        data['assignees'] = [
            {**a['user'].as_dict(), 'role_titles': a['role_titles']}
            for a in entry.get('assignees', [])
        ]
        for key in ('section_name', 'section_color', 'project_name'):
            if key in entry:
                data[key] = entry[key]
        result.append(data)
    return result


@login_required
@require_GET
@requires_project_access
def board_view(request, project_id):
    """
    Board completo do projeto: seções, tarefas, membros e permissões

    Antes de montar o snapshot, tarefas com prazo expirado viram FAILED
    """
    store = request.store

    expired = 0
    if getattr(settings, 'TEAMSYNC_SWEEP_ON_BOARD_LOAD', True):
        expired = store.check_and_fail_expired_tasks().value

    return JsonResponse({
        'success': True,
        'board': store.board_snapshot(),
        'expired': expired,
        'websocket_group': f'project_{project_id}',
    })


# =================== SEÇÕES ===================

@login_required
@require_POST
@requires_project_access
def create_section_view(request, project_id):
    form = SectionForm(read_payload(request))
    if not form.is_valid():
        return form_errors_response(form)

    result = request.store.create_section(
        form.cleaned_data['name'],
        color=form.cleaned_data['color'] or None,
        allowed_roles=form.cleaned_data['allowed_roles'],
    )
    return command_response(result, {'section': result.value.as_dict() if result else None}, status=201)


@login_required
@require_http_methods(['PATCH', 'POST', 'DELETE'])
@requires_project_access
def section_detail_view(request, project_id, section_id):
    """
    PATCH/POST: renomeia, muda cor ou papéis autorizados
    DELETE: exclui a seção e suas tarefas
    """
    store = request.store

    if request.method == 'DELETE':
        return command_response(store.delete_section(section_id))

    data = read_payload(request)
    form = SectionForm(data)
    if not form.is_valid():
        return form_errors_response(form)

    result = store.update_section(
        section_id,
        name=form.cleaned_data['name'] or None,
        color=form.cleaned_data['color'] or None,
        allowed_roles=form.cleaned_data['allowed_roles'] if 'allowed_roles' in data else None,
    )
    return command_response(result, {'section': result.value.as_dict() if result else None})


# =================== TAREFAS ===================

@login_required
@require_http_methods(['GET', 'POST'])
@requires_project_access
def section_tasks_view(request, project_id, section_id):
    store = request.store

    if request.method == 'GET':
        return JsonResponse({
            'success': True,
            'can_edit': store.can_edit_section(section_id),
            'allowed_roles_text': store.get_section_allowed_roles_text(section_id),
            'tasks': _task_entries(store.get_tasks(section_id)),
        })

    form = TaskForm(read_payload(request))
    if not form.is_valid():
        return form_errors_response(form)

    data = form.cleaned_data
    result = store.create_task(
        section_id,
        data['title'],
        description=data['description'],
        priority=data['priority'] or 'MEDIUM',
        status=data['status'] or 'ACTIVE',
        assigned_to_list=data['assigned_to_list'],
        deadline=data['deadline'],
    )
    return command_response(result, {'task': result.value.as_dict() if result else None}, status=201)


@login_required
@require_http_methods(['GET', 'PATCH', 'POST', 'DELETE'])
@requires_project_access
def task_detail_view(request, project_id, task_id):
    """
    GET: tarefa com responsáveis e quem está trabalhando nela
    PATCH/POST: altera apenas os campos enviados
    DELETE: exclui a tarefa
    """
    store = request.store

    if request.method == 'DELETE':
        return command_response(store.delete_task(task_id))

    if request.method == 'GET':
        task = store.get_task(task_id)
        if task is None or task.project_id != request.project.id:
            return JsonResponse({'success': False, 'error': 'Tarefa não encontrada'}, status=404)
        return JsonResponse({
            'success': True,
            'task': task.as_dict(),
            'working_on': [u.as_dict() for u in store.get_working_on_users(task_id)],
            'can_work_on': store.can_work_on_task(task_id),
            'is_working_on': store.is_current_user_working_on(task_id),
            'comment_count': store.get_task_comment_count(task_id),
        })

    data = read_payload(request)
    form = TaskForm(data)
    if not form.is_valid():
        return form_errors_response(form)

    changes = {key: form.cleaned_data[key] for key in form.fields if key in data}
    result = store.update_task(task_id, **changes)
    return command_response(result, {'task': result.value.as_dict() if result else None})


@login_required
@require_POST
@requires_project_access
def toggle_task_view(request, project_id, task_id):
    result = request.store.toggle_task_status(task_id)
    return command_response(result, {'status': result.value})


@login_required
@require_http_methods(['POST', 'DELETE'])
@requires_project_access
def working_on_view(request, project_id, task_id):
    """POST: começa a trabalhar na tarefa. DELETE: para"""
    store = request.store

    if request.method == 'DELETE':
        result = store.stop_working_on(task_id)
    else:
        result = store.start_working_on(task_id)

    return command_response(result, {
        'working_on_by': list(result.value.working_on_by) if result else None,
    })


@login_required
@require_GET
@requires_project_access
def member_working_on_view(request, project_id, user_id):
    return JsonResponse({
        'success': True,
        'tasks': _task_entries(request.store.get_user_working_on_tasks(user_id)),
    })


# =================== COMENTÁRIOS ===================

@login_required
@require_http_methods(['GET', 'POST'])
@requires_project_access
def task_comments_view(request, project_id, task_id):
    """
    Chat da tarefa

    O broadcast em tempo real sai do sinal post_save de TaskComment
    """
    store = request.store

    if request.method == 'GET':
        task = store.get_task(task_id)
        if task is None or task.project_id != request.project.id:
            return JsonResponse({'success': False, 'error': 'Tarefa não encontrada'}, status=404)
        return JsonResponse({
            'success': True,
            'comments': [c.as_dict() for c in store.get_task_comments(task_id)],
        })

    form = CommentForm(read_payload(request))
    if not form.is_valid():
        return form_errors_response(form)

    result = store.add_task_comment(task_id, form.cleaned_data['text'])
    return command_response(result, {'comment': result.value.as_dict() if result else None}, status=201)


# =================== BUSCA E PRAZOS ===================

@login_required
@require_GET
@requires_project_access
def search_view(request, project_id):
    form = SearchForm(request.GET)
    if not form.is_valid():
        return form_errors_response(form)

    results = _task_entries(request.store.search_tasks(form.cleaned_data['q']))
    return JsonResponse({
        'success': True,
        'results': results,
        'total': len(results),
    })


@login_required
@require_GET
@requires_project_access
def overdue_view(request, project_id):
    return JsonResponse({
        'success': True,
        'tasks': _task_entries(request.store.get_overdue_tasks()),
    })


@login_required
@require_GET
@requires_project_access
def failed_view(request, project_id):
    return JsonResponse({
        'success': True,
        'tasks': [task.as_dict() for task in request.store.get_failed_tasks()],
    })


@login_required
@require_POST
@requires_project_access
def sweep_view(request, project_id):
    """Executa a varredura de prazos sob demanda"""
    result = request.store.check_and_fail_expired_tasks()
    return command_response(result, {'expired': result.value})
