# apps/core/repository.py

"""
Camada de persistência do TeamSync

Uma única interface (Repository) com um único backend (Django ORM).
A WorkspaceStore só conversa com o banco através dela.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from django.db import transaction

from .models import (
    User, Project, ProjectMember, ProjectRole, Section, Task, TaskComment
)

logger = logging.getLogger(__name__)


@dataclass
class Snapshot:
    """Estado completo carregado para uma sessão"""

    users: List[User] = field(default_factory=list)
    projects: List[Project] = field(default_factory=list)
    members: List[ProjectMember] = field(default_factory=list)
    roles: List[ProjectRole] = field(default_factory=list)
    sections: List[Section] = field(default_factory=list)
    tasks: List[Task] = field(default_factory=list)
    comments: List[TaskComment] = field(default_factory=list)


class Repository(ABC):
    """Interface de leitura em lote e escrita por tabela"""

    @abstractmethod
    def fetch_snapshot(self, user) -> Snapshot:
        """Carrega todos os projetos do usuário e suas entidades dependentes"""

    @abstractmethod
    def find_project_by_invite_code(self, invite_code: str) -> Optional[Project]:
        pass

    @abstractmethod
    def project_exists(self, project_id) -> bool:
        pass

    @abstractmethod
    def insert(self, instance):
        pass

    @abstractmethod
    def update(self, instance, fields):
        pass

    @abstractmethod
    def delete(self, model, **filters):
        pass


class DjangoRepository(Repository):
    """Backend relacional via Django ORM"""

    def fetch_snapshot(self, user) -> Snapshot:
        project_ids = list(
            ProjectMember.objects.filter(user=user).values_list('project_id', flat=True)
        )

        members = list(ProjectMember.objects.filter(project_id__in=project_ids))
        user_ids = {m.user_id for m in members} | {user.pk}
        tasks = list(Task.objects.filter(project_id__in=project_ids))

        return Snapshot(
            users=list(User.objects.filter(pk__in=user_ids)),
            projects=list(Project.objects.filter(id__in=project_ids)),
            members=members,
            roles=list(ProjectRole.objects.filter(project_id__in=project_ids)),
            sections=list(Section.objects.filter(project_id__in=project_ids)),
            tasks=tasks,
            comments=list(TaskComment.objects.filter(task__project_id__in=project_ids)),
        )

    def find_project_by_invite_code(self, invite_code: str) -> Optional[Project]:
        return Project.objects.filter(invite_code=invite_code).first()

    def project_exists(self, project_id) -> bool:
        return Project.objects.filter(id=project_id).exists()

    # Cada escrita roda no próprio savepoint para não invalidar a transação do request

    def insert(self, instance):
        with transaction.atomic():
            instance.save(force_insert=True)

    def update(self, instance, fields):
        with transaction.atomic():
            instance.save(update_fields=list(fields))

    def delete(self, model, **filters):
        with transaction.atomic():
            deleted, _ = model.objects.filter(**filters).delete()
        return deleted
