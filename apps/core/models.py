# apps/core/models.py

import logging
import uuid
from dataclasses import dataclass, fields as dataclass_fields, replace
from datetime import timedelta

from django.contrib.auth.models import AbstractUser
from django.db import models
from django.utils import timezone
from PIL import Image

logger = logging.getLogger(__name__)

OWNER_ROLE = 'Owner'
MEMBER_ROLE = 'Member'
DEFAULT_SECTION_COLOR = '#6366f1'


@dataclass(frozen=True)
class RolePermissions:
    """Conjunto de flags de permissão de um papel do projeto"""

    is_admin: bool = False
    can_invite: bool = False
    can_add_section: bool = False
    can_delete_member: bool = False
    can_delete_task: bool = False
    can_edit_roles: bool = False

    @classmethod
    def names(cls):
        return [f.name for f in dataclass_fields(cls)]

    @classmethod
    def admin(cls):
        return cls(**{name: True for name in cls.names()})

    def union(self, other):
        """União das permissões - admin em qualquer lado concede tudo"""
        if self.is_admin or other.is_admin:
            return RolePermissions.admin()
        return RolePermissions(**{
            name: getattr(self, name) or getattr(other, name)
            for name in self.names()
        })

    def grants(self, permission):
        if self.is_admin:
            return True
        return bool(getattr(self, permission, False))

    def merged(self, changes):
        """
        Aplica alterações parciais

        is_admin=True liga todas as flags; is_admin=False explícito permanece falso
        """
        if changes.get('is_admin'):
            return RolePermissions.admin()
        valid = {k: bool(v) for k, v in changes.items() if k in self.names()}
        return replace(self, **valid)

    def as_dict(self):
        return {name: getattr(self, name) for name in self.names()}


class User(AbstractUser):
    """
    Usuário do TeamSync

    Além da identidade padrão do Django, guarda a sequência de dias
    ativos (streak) e o último momento de atividade.
    """

    avatar = models.ImageField(upload_to='avatars/', blank=True, null=True)
    streak = models.PositiveIntegerField(default=0)
    last_active = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'teamsync_user'

    @property
    def display_name(self):
        return self.get_full_name() or self.username

    def save(self, *args, **kwargs):
        """Redimensiona o avatar após salvar"""
        super().save(*args, **kwargs)

        if self.avatar:
            try:
                img = Image.open(self.avatar.path)
                if img.height > 300 or img.width > 300:
                    img.thumbnail((300, 300))
                    img.save(self.avatar.path)
            except (OSError, ValueError) as e:
                logger.warning(f"⚠️ Não foi possível redimensionar avatar de {self.username}: {e}")

    def update_streak(self, now=None):
        """
        Atualiza a sequência de dias ativos

        Mesmo dia: sem mudança. Dia seguinte: +1. Qualquer intervalo maior: zera.
        """
        now = now or timezone.now()
        last_day = timezone.localtime(self.last_active).date()
        today = timezone.localtime(now).date()
        diff_days = (today - last_day).days

        if diff_days == 1:
            self.streak += 1
        elif diff_days > 1:
            self.streak = 0

        self.last_active = now
        return self.streak

    def is_online(self, now=None, window_minutes=5):
        now = now or timezone.now()
        return now - self.last_active < timedelta(minutes=window_minutes)

    def as_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'full_name': self.first_name,
            'surname': self.last_name,
            'display_name': self.display_name,
            'avatar_url': self.avatar.url if self.avatar else None,
            'streak': self.streak,
            'last_active': self.last_active.isoformat() if self.last_active else None,
        }

    def __str__(self):
        return self.display_name


class Project(models.Model):
    """Projeto - agregador de seções, tarefas, membros e papéis"""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=200)
    invite_code = models.CharField(max_length=16, unique=True)
    created_by = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='created_projects'
    )
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'project'
        ordering = ['created_at']

    def is_owner(self, user_id):
        return self.created_by_id == user_id

    def as_dict(self):
        return {
            'id': str(self.id),
            'name': self.name,
            'invite_code': self.invite_code,
            'created_by': self.created_by_id,
            'created_at': self.created_at.isoformat(),
        }

    def __str__(self):
        return self.name


class ProjectMember(models.Model):
    """Participação de um usuário em um projeto, com um ou mais papéis"""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    project = models.ForeignKey(
        Project,
        on_delete=models.CASCADE,
        related_name='members'
    )
    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='memberships'
    )
    role_titles = models.JSONField(default=list)
    joined_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'project_member'
        ordering = ['joined_at']
        unique_together = ['project', 'user']

    def enforce_role_invariants(self, creator_id):
        """
        Garante as regras de papéis do membro:
        1. O criador do projeto sempre mantém 'Owner'
        2. Nunca fica sem papel ('Member' como fallback)
        """
        titles = list(dict.fromkeys(self.role_titles))
        if self.user_id == creator_id and OWNER_ROLE not in titles:
            titles.insert(0, OWNER_ROLE)
        if not titles:
            titles = [MEMBER_ROLE]
        self.role_titles = titles
        return self.role_titles

    def as_dict(self):
        return {
            'project_id': str(self.project_id),
            'user_id': self.user_id,
            'role_titles': list(self.role_titles),
            'joined_at': self.joined_at.isoformat(),
        }

    def __str__(self):
        return f"{self.user_id} em {self.project_id} ({', '.join(self.role_titles)})"


class ProjectRole(models.Model):
    """Papel nomeado do projeto com suas permissões"""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    project = models.ForeignKey(
        Project,
        on_delete=models.CASCADE,
        related_name='roles'
    )
    name = models.CharField(max_length=100)
    color = models.CharField(max_length=7, default='#6b7280')

    # === PERMISSÕES ===
    is_admin = models.BooleanField(default=False)
    can_invite = models.BooleanField(default=False)
    can_add_section = models.BooleanField(default=False)
    can_delete_member = models.BooleanField(default=False)
    can_delete_task = models.BooleanField(default=False)
    can_edit_roles = models.BooleanField(default=False)

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'project_role'
        ordering = ['created_at']
        unique_together = ['project', 'name']

    @property
    def is_protected(self):
        """O papel Owner é sintético e não pode ser editado nem removido"""
        return self.name == OWNER_ROLE

    @property
    def permissions(self):
        return RolePermissions(**{name: getattr(self, name) for name in RolePermissions.names()})

    @permissions.setter
    def permissions(self, value):
        for name, flag in value.as_dict().items():
            setattr(self, name, flag)

    def as_dict(self):
        return {
            'id': str(self.id),
            'project_id': str(self.project_id),
            'name': self.name,
            'color': self.color,
            'permissions': self.permissions.as_dict(),
            'created_at': self.created_at.isoformat(),
        }

    def __str__(self):
        return f"{self.name} ({self.project_id})"


class Section(models.Model):
    """Coluna do board com lista de papéis autorizados a editar suas tarefas"""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    project = models.ForeignKey(
        Project,
        on_delete=models.CASCADE,
        related_name='sections'
    )
    name = models.CharField(max_length=100)
    color = models.CharField(max_length=7, default=DEFAULT_SECTION_COLOR)
    order = models.IntegerField(default=0)
    allowed_roles = models.JSONField(default=list)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'section'
        ordering = ['order', 'created_at']

    def allowed_roles_text(self):
        roles = [r for r in self.allowed_roles if r != OWNER_ROLE]
        if not roles:
            return 'Only Owner'
        return ', '.join(roles)

    def as_dict(self):
        return {
            'id': str(self.id),
            'project_id': str(self.project_id),
            'name': self.name,
            'color': self.color,
            'order': self.order,
            'allowed_roles': list(self.allowed_roles),
            'created_at': self.created_at.isoformat(),
        }

    def __str__(self):
        return self.name


class Task(models.Model):
    """
    Tarefa de uma seção

    Ciclo de vida do status:
    ACTIVE <-> DONE (alternância manual)
    ACTIVE  -> FAILED (varredura de prazo, sem volta)
    """

    STATUS_ACTIVE = 'ACTIVE'
    STATUS_DONE = 'DONE'
    STATUS_FAILED = 'FAILED'

    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Ativa'),
        (STATUS_DONE, 'Concluída'),
        (STATUS_FAILED, 'Falhou'),
    ]

    PRIORITY_CHOICES = [
        ('LOW', '🟢 Baixa'),
        ('MEDIUM', '🟡 Média'),
        ('HIGH', '🔴 Alta'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    project = models.ForeignKey(
        Project,
        on_delete=models.CASCADE,
        related_name='tasks'
    )
    section = models.ForeignKey(
        Section,
        on_delete=models.CASCADE,
        related_name='tasks'
    )
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True, null=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_ACTIVE)
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='MEDIUM')
    deadline = models.DateTimeField(null=True, blank=True)

    assigned_to_list = models.JSONField(default=list)
    working_on_by = models.JSONField(default=list)
    working_on_started = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'task'
        ordering = ['created_at']

    @property
    def is_terminal(self):
        return self.status in (self.STATUS_DONE, self.STATUS_FAILED)

    def toggled_status(self):
        """Próximo status da alternância manual - None quando a tarefa falhou"""
        if self.status == self.STATUS_FAILED:
            return None
        return self.STATUS_DONE if self.status == self.STATUS_ACTIVE else self.STATUS_ACTIVE

    def fail_if_expired(self, cutoff, now=None):
        """
        Marca como FAILED se ativa e com prazo antes do corte

        Retorna True quando a tarefa foi alterada
        """
        if self.status != self.STATUS_ACTIVE or not self.deadline:
            return False
        if self.deadline >= cutoff:
            return False

        self.status = self.STATUS_FAILED
        self.working_on_by = []
        self.working_on_started = None
        self.updated_at = now or timezone.now()
        return True

    def as_dict(self):
        return {
            'id': str(self.id),
            'project_id': str(self.project_id),
            'section_id': str(self.section_id),
            'title': self.title,
            'description': self.description,
            'status': self.status,
            'priority': self.priority,
            'deadline': self.deadline.isoformat() if self.deadline else None,
            'assigned_to_list': list(self.assigned_to_list),
            'working_on_by': list(self.working_on_by),
            'working_on_started': self.working_on_started.isoformat() if self.working_on_started else None,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
        }

    def __str__(self):
        return f"{self.title} [{self.status}]"


class TaskComment(models.Model):
    """Mensagem de chat de uma tarefa (somente inclusão)"""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    task = models.ForeignKey(
        Task,
        on_delete=models.CASCADE,
        related_name='comments'
    )
    user = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        related_name='comments'
    )
    user_name = models.CharField(max_length=150)
    text = models.TextField()
    timestamp = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'task_comment'
        ordering = ['timestamp']

    def as_dict(self):
        return {
            'id': str(self.id),
            'task_id': str(self.task_id),
            'user_id': self.user_id,
            'user_name': self.user_name,
            'text': self.text,
            'timestamp': self.timestamp.isoformat(),
        }

    def __str__(self):
        return f"Comentário de {self.user_name} em {self.timestamp:%d/%m/%Y}"
