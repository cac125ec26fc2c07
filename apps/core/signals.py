# apps/core/signals.py

import logging

from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import ProjectMember, Task, TaskComment
from .utils import broadcast_to_project

logger = logging.getLogger(__name__)


@receiver(post_save, sender=TaskComment)
def publish_comment(sender, instance, created, **kwargs):
    """
    Publica novo comentário no grupo WebSocket do projeto da tarefa

    O envio espera o commit; cada conexão descarta comentários que já conhece
    """
    if not created:
        return

    project_id = Task.objects.filter(pk=instance.task_id).values_list('project_id', flat=True).first()
    payload = instance.as_dict()
    transaction.on_commit(lambda: broadcast_to_project(project_id, 'comment_added', payload))


@receiver(post_save, sender=ProjectMember)
def announce_member(sender, instance, created, **kwargs):
    """
    Avisa o projeto quando um novo membro entra
    """
    if not created:
        return

    logger.info(f"👥 Usuário {instance.user_id} entrou no projeto {instance.project_id} como {', '.join(instance.role_titles)}")
    project_id, payload = instance.project_id, instance.as_dict()
    transaction.on_commit(lambda: broadcast_to_project(project_id, 'member_joined', payload))
