# apps/core/utils.py

import json
import logging
import secrets
import string
from datetime import datetime
from typing import Dict, Iterable, Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.conf import settings
from django.http import JsonResponse
from django.utils import timezone

logger = logging.getLogger(__name__)

INVITE_CODE_ALPHABET = string.ascii_lowercase + string.digits

# Paleta usada para novos papéis
ROLE_COLORS = [
    '#3b82f6', '#10b981', '#f59e0b', '#ef4444', '#8b5cf6',
    '#ec4899', '#06b6d4', '#84cc16', '#f97316', '#14b8a6',
]

# Papéis sugeridos na criação de novos papéis
DEFAULT_ROLE_TEMPLATES = [
    'Frontend Developer',
    'Backend Developer',
    'Full Stack Developer',
    'UI Designer',
    'DevOps Engineer',
    'ML Engineer',
    'QA Tester',
    'Project Manager',
    'Member',
]


def generate_invite_code(existing: Iterable[str] = (), length: Optional[int] = None) -> str:
    """
    Gera código de convite curto e único
    Ex: 'k3f9a'
    """
    length = length or getattr(settings, 'TEAMSYNC_INVITE_CODE_LENGTH', 5)
    taken = set(existing)
    while True:
        code = ''.join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(length))
        if code not in taken:
            return code


def pick_role_color() -> str:
    return secrets.choice(ROLE_COLORS)


def start_of_day(now: datetime) -> datetime:
    """Meia-noite do dia local de `now`"""
    return timezone.localtime(now).replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(now: datetime) -> datetime:
    """Último instante do dia local de `now`"""
    return timezone.localtime(now).replace(hour=23, minute=59, second=59, microsecond=999999)


def read_payload(request) -> Dict:
    """
    Lê o corpo da requisição como dicionário
    Aceita JSON ou formulário tradicional
    """
    if request.content_type == 'application/json':
        try:
            data = json.loads(request.body or b'{}')
        except json.JSONDecodeError:
            return {}
        return data if isinstance(data, dict) else {}
    return request.POST


def broadcast_to_project(project_id, event_type: str, message: Dict) -> None:
    """
    Envia evento para o grupo WebSocket do projeto

    Falhas do channel layer são registradas e não interrompem o fluxo
    """
    if not project_id:
        return

    channel_layer = get_channel_layer()
    if channel_layer is None:
        return

    try:
        async_to_sync(channel_layer.group_send)(
            f'project_{project_id}',
            {
                'type': event_type,
                'message': message,
            }
        )
    except Exception as e:
        logger.error(f"❌ Erro ao publicar '{event_type}' no projeto {project_id}: {e}")


REFUSAL_STATUS = {
    'invalid': 400,
    'forbidden': 403,
    'not_found': 404,
}


def command_response(result, payload: Optional[Dict] = None, status: int = 200) -> JsonResponse:
    """
    Converte um CommandResult em resposta JSON

    Recusas viram 400/403/404; escritas pendentes seguem com synced=False
    """
    if not result.ok:
        return JsonResponse(
            {'success': False, 'error': result.error},
            status=REFUSAL_STATUS.get(result.reason, 400)
        )

    body = {'success': True, 'synced': result.synced}
    if not result.synced:
        body['warning'] = result.error
    body.update(payload or {})
    return JsonResponse(body, status=status)


def form_errors_response(form) -> JsonResponse:
    return JsonResponse({'success': False, 'errors': form.errors}, status=400)
