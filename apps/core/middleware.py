# apps/core/middleware.py

import logging
from datetime import timedelta

from django.conf import settings
from django.http import JsonResponse
from django.utils import timezone

from .auth_service import auth_service
from .models import Project, ProjectMember

logger = logging.getLogger(__name__)


class ActivityMiddleware:
    """
    Registra atividade do usuário e protege URLs de projeto

    - last_active (e a sequência de dias) atualizados no máximo uma vez
      a cada TEAMSYNC_ACTIVITY_TOUCH_SECONDS
    - Segunda camada de proteção: URLs com project_id exigem participação
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        response = self.get_response(request)

        user = getattr(request, 'user', None)
        if user is not None and user.is_authenticated:
            self.touch(user)

        return response

    def touch(self, user):
        now = timezone.now()
        interval = timedelta(seconds=getattr(settings, 'TEAMSYNC_ACTIVITY_TOUCH_SECONDS', 60))
        if user.last_active and now - user.last_active < interval:
            return
        auth_service.touch(user, now)

    def process_view(self, request, view_func, view_args, view_kwargs):
        """
        Verificar acesso ao projeto antes da view ser executada
        """
        if 'project_id' not in view_kwargs:
            return None

        if not hasattr(request, 'user') or not request.user.is_authenticated:
            return None  # Deixar sistema de auth padrão lidar com isso

        project_id = view_kwargs['project_id']
        if not Project.objects.filter(id=project_id).exists():
            return JsonResponse({'success': False, 'error': 'Projeto não encontrado.'}, status=404)

        if not ProjectMember.objects.filter(project_id=project_id, user=request.user).exists():
            logger.warning(f"⚠️ {request.user.username} tentou acessar o projeto {project_id} sem ser membro")
            return JsonResponse({'success': False, 'error': 'Você não tem acesso a este projeto.'}, status=403)

        return None
