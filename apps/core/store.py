# apps/core/store.py

"""
WorkspaceStore - estado da sessão de trabalho do TeamSync

Mantém em memória o snapshot dos projetos do usuário e expõe consultas
(papéis, seções, tarefas, busca) e comandos de mutação.

Cada comando:
1. Valida permissões sobre o estado em memória
2. Aplica a mutação localmente (otimista)
3. Grava no banco através do Repository
4. Notifica os assinantes

Falhas de gravação não desfazem o estado local: são registradas em log,
enfileiradas no outbox e devolvidas no CommandResult (synced=False).
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from django.conf import settings
from django.db import DatabaseError
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from .models import (
    OWNER_ROLE, MEMBER_ROLE, DEFAULT_SECTION_COLOR, RolePermissions,
    Project, ProjectMember, ProjectRole, Section, Task, TaskComment
)
from .permissions import TeamSyncPermissions
from .repository import DjangoRepository, Repository, Snapshot
from .utils import end_of_day, generate_invite_code, pick_role_color, start_of_day

logger = logging.getLogger(__name__)

TASK_EDITABLE_FIELDS = ('title', 'description', 'priority', 'deadline', 'assigned_to_list', 'section_id')
PRIORITIES = ('LOW', 'MEDIUM', 'HIGH')


@dataclass
class CommandResult:
    """
    Resultado de um comando da store

    ok: mutação aplicada localmente
    synced: escrita remota concluída (False = pendente no outbox)
    reason: motivo da recusa ('invalid', 'forbidden', 'not_found')
    """

    ok: bool
    value: Any = None
    error: Optional[str] = None
    synced: bool = True
    reason: Optional[str] = None

    def __bool__(self):
        return self.ok

    @classmethod
    def refused(cls, error):
        return cls(ok=False, error=error, reason='invalid')

    @classmethod
    def forbidden(cls, error):
        return cls(ok=False, error=error, reason='forbidden')

    @classmethod
    def not_found(cls, error):
        return cls(ok=False, error=error, reason='not_found')


@dataclass
class WriteCommand:
    """Escrita pendente no banco"""

    action: str
    instance: Any = None
    model: Any = None
    fields: tuple = ()
    filters: Dict = field(default_factory=dict)

    def apply(self, repository: Repository):
        if self.action == 'insert':
            repository.insert(self.instance)
        elif self.action == 'update':
            repository.update(self.instance, self.fields)
        elif self.action == 'delete':
            repository.delete(self.model, **self.filters)
        else:
            raise ValueError(f"Ação desconhecida: {self.action}")

    def describe(self):
        if self.action == 'delete':
            return f"delete {self.model.__name__} {self.filters}"
        return f"{self.action} {type(self.instance).__name__} {self.instance.pk}"


def insert(instance):
    return WriteCommand('insert', instance=instance)


def update(instance, *fields):
    return WriteCommand('update', instance=instance, fields=tuple(fields))


def delete(model, **filters):
    return WriteCommand('delete', model=model, filters=filters)


def as_uuid(value):
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


class WorkspaceStore:
    """Store injetável - uma instância por sessão/requisição"""

    def __init__(self, user, repository: Optional[Repository] = None,
                 clock: Optional[Callable] = None):
        authenticated = user is not None and getattr(user, 'is_authenticated', False)
        self.user = user if authenticated else None
        self.user_id = user.pk if authenticated else None
        self.repository = repository or DjangoRepository()
        self.current_project_id = None
        self.outbox: List[WriteCommand] = []
        self._clock = clock or timezone.now
        self._listeners: List[Callable] = []
        self._load(Snapshot())

    @classmethod
    def for_request(cls, request):
        """Constrói a store da sessão a partir do request"""
        store = cls(request.user)
        store.resync()
        project_id = request.session.get('current_project_id')
        if project_id:
            store.set_current_project(project_id)
        return store

    def now(self):
        return self._clock()

    # =================== SINCRONIZAÇÃO ===================

    def _load(self, snapshot: Snapshot):
        self.users = snapshot.users
        self.projects = snapshot.projects
        self.members = snapshot.members
        self.roles = snapshot.roles
        self.sections = snapshot.sections
        self.tasks = snapshot.tasks
        self.comments = snapshot.comments

    def resync(self):
        """
        Recarrega todo o estado a partir do banco

        É o caminho de reconciliação: escritas pendentes no outbox são descartadas
        """
        if self.outbox:
            logger.warning(f"⚠️ Resync descartando {len(self.outbox)} escritas pendentes")
            self.outbox = []

        if self.user_id is None:
            self._load(Snapshot())
        else:
            self._load(self.repository.fetch_snapshot(self.user))

        if self.current_project_id is None or self._membership(self.current_project_id, self.user_id) is None:
            self._select_first_project()

        self._notify()

    def flush_outbox(self):
        """Tenta regravar as escritas pendentes, em ordem. Retorna quantas foram gravadas"""
        flushed = 0
        while self.outbox:
            command = self.outbox[0]
            try:
                command.apply(self.repository)
            except DatabaseError as e:
                logger.warning(f"⚠️ Nova tentativa falhou para {command.describe()}: {e}")
                break
            self.outbox.pop(0)
            flushed += 1

        if flushed:
            logger.info(f"✅ Outbox: {flushed} escritas gravadas, {len(self.outbox)} pendentes")
        return flushed

    def _persist(self, commands):
        if self.outbox:
            # Mantém a ordem: nada passa na frente de escritas pendentes
            self.outbox.extend(commands)
            self.flush_outbox()
            if self.outbox:
                return False, 'Escritas pendentes aguardando nova tentativa'
            return True, None

        for index, command in enumerate(commands):
            try:
                command.apply(self.repository)
            except DatabaseError as e:
                logger.error(f"❌ Falha ao gravar {command.describe()}: {e}")
                self.outbox.extend(commands[index:])
                return False, str(e)
        return True, None

    def _commit(self, commands, value=None):
        synced, error = self._persist(commands)
        self._notify()
        return CommandResult(ok=True, value=value, error=error, synced=synced)

    # =================== ASSINATURAS ===================

    def subscribe(self, callback):
        """Registra callback chamado após cada mutação. Retorna função para cancelar"""
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self):
        for callback in list(self._listeners):
            callback()

    # =================== BUSCAS INTERNAS ===================

    def _project(self, project_id):
        project_id = as_uuid(project_id)
        return next((p for p in self.projects if p.id == project_id), None)

    def _membership(self, project_id, user_id):
        project_id = as_uuid(project_id)
        return next(
            (m for m in self.members if m.project_id == project_id and m.user_id == user_id),
            None
        )

    def _section(self, section_id):
        section_id = as_uuid(section_id)
        return next((s for s in self.sections if s.id == section_id), None)

    def _task(self, task_id):
        task_id = as_uuid(task_id)
        return next((t for t in self.tasks if t.id == task_id), None)

    def _role(self, role_id):
        role_id = as_uuid(role_id)
        return next((r for r in self.roles if r.id == role_id), None)

    def _pid(self, project_id=None):
        return as_uuid(project_id) if project_id else self.current_project_id

    def _select_first_project(self):
        mine = self.get_my_projects()
        self.current_project_id = mine[0]['project'].id if mine else None

    def _forget_project(self, project_id):
        """Remove o projeto e suas dependências apenas do estado em memória"""
        task_ids = {t.id for t in self.tasks if t.project_id == project_id}
        self.comments[:] = [c for c in self.comments if c.task_id not in task_ids]
        self.tasks[:] = [t for t in self.tasks if t.project_id != project_id]
        self.sections[:] = [s for s in self.sections if s.project_id != project_id]
        self.members[:] = [m for m in self.members if m.project_id != project_id]
        self.roles[:] = [r for r in self.roles if r.project_id != project_id]
        self.projects[:] = [p for p in self.projects if p.id != project_id]

        if self.current_project_id == project_id:
            self._select_first_project()

    def _assignee_entries(self, task):
        entries = []
        for user_id in task.assigned_to_list:
            user = self.get_user(user_id)
            if user is None:
                continue
            entries.append({'user': user, 'role_titles': self.get_member_roles(user_id, task.project_id)})
        return entries

    def _unassign_user(self, project_id, user_id):
        """Retira o usuário das atribuições e do 'trabalhando em' das tarefas do projeto"""
        commands = []
        for task in self.tasks:
            if task.project_id != project_id:
                continue
            if user_id not in task.assigned_to_list and user_id not in task.working_on_by:
                continue
            task.assigned_to_list = [uid for uid in task.assigned_to_list if uid != user_id]
            task.working_on_by = [uid for uid in task.working_on_by if uid != user_id]
            if not task.working_on_by:
                task.working_on_started = None
            task.updated_at = self.now()
            commands.append(update(task, 'assigned_to_list', 'working_on_by', 'working_on_started', 'updated_at'))
        return commands

    # =================== USUÁRIOS ===================

    def get_users(self):
        return list(self.users)

    def get_user(self, user_id):
        return next((u for u in self.users if u.pk == user_id), None)

    def get_current_user(self):
        if self.user_id is None:
            return None
        return self.get_user(self.user_id) or self.user

    def is_user_online(self, user_id):
        user = self.get_user(user_id)
        if user is None:
            return False
        window = getattr(settings, 'TEAMSYNC_ONLINE_WINDOW_MINUTES', 5)
        return user.is_online(self.now(), window_minutes=window)

    def get_user_streak(self, user_id):
        user = self.get_user(user_id)
        return user.streak if user else 0

    # =================== PROJETOS ===================

    def get_project(self, project_id):
        return self._project(project_id)

    def project_exists(self, project_id):
        project_id = as_uuid(project_id)
        if project_id is None:
            return False
        return self._project(project_id) is not None or self.repository.project_exists(project_id)

    def get_my_projects(self):
        """Projetos do usuário com seus papéis e se ele é o dono"""
        if self.user_id is None:
            return []

        result = []
        for membership in self.members:
            if membership.user_id != self.user_id:
                continue
            project = self._project(membership.project_id)
            if project is None:
                continue
            result.append({
                'project': project,
                'role': ', '.join(membership.role_titles),
                'is_owner': project.is_owner(self.user_id),
            })
        return result

    def get_current_project(self):
        if self.current_project_id is None or self.user_id is None:
            return None
        project = self._project(self.current_project_id)
        membership = self._membership(self.current_project_id, self.user_id)
        if project is None or membership is None:
            return None
        return {
            'project': project,
            'role': ', '.join(membership.role_titles),
            'is_owner': project.is_owner(self.user_id),
        }

    def set_current_project(self, project_id):
        """Seleciona o projeto ativo - apenas projetos em que o usuário é membro"""
        project_id = as_uuid(project_id)
        if project_id is None or self._membership(project_id, self.user_id) is None:
            return False
        self.current_project_id = project_id
        return True

    def create_project(self, name):
        if self.user_id is None:
            return CommandResult.refused('Usuário não autenticado')
        name = (name or '').strip()
        if not name:
            return CommandResult.refused('Nome do projeto é obrigatório')

        now = self.now()
        project = Project(
            name=name,
            invite_code=generate_invite_code(p.invite_code for p in self.projects),
            created_by_id=self.user_id,
            created_at=now,
        )
        owner_role = ProjectRole(project_id=project.id, name=OWNER_ROLE, color='#f59e0b', created_at=now)
        owner_role.permissions = RolePermissions.admin()
        member_role = ProjectRole(project_id=project.id, name=MEMBER_ROLE, color='#6b7280', created_at=now)
        membership = ProjectMember(
            project_id=project.id,
            user_id=self.user_id,
            role_titles=[OWNER_ROLE],
            joined_at=now,
        )

        self.projects.append(project)
        self.roles.extend([owner_role, member_role])
        self.members.append(membership)
        self.current_project_id = project.id

        logger.info(f"📁 Projeto '{name}' criado por usuário {self.user_id}")
        return self._commit(
            [insert(project), insert(owner_role), insert(member_role), insert(membership)],
            value=project
        )

    def join_project(self, invite_code):
        """Entra em um projeto pelo código de convite, com o papel Member"""
        if self.user_id is None:
            return CommandResult.refused('Usuário não autenticado')

        code = (invite_code or '').strip()
        project = next((p for p in self.projects if p.invite_code == code), None)
        if project is None and code:
            project = self.repository.find_project_by_invite_code(code)
        if project is None:
            return CommandResult.not_found('Código de convite inválido')

        if self._membership(project.id, self.user_id) is not None:
            self.current_project_id = project.id
            return CommandResult(ok=True, value=project)

        membership = ProjectMember(
            project_id=project.id,
            user_id=self.user_id,
            role_titles=[MEMBER_ROLE],
            joined_at=self.now(),
        )
        if self._project(project.id) is None:
            self.projects.append(project)
        self.members.append(membership)
        self.current_project_id = project.id

        result = self._commit([insert(membership)], value=project)
        if result.synced:
            # Carrega seções, tarefas e membros do projeto recém-acessado
            self.resync()
            self.set_current_project(project.id)
        return result

    def delete_project(self, project_id):
        """Exclui o projeto e tudo que depende dele - apenas o criador"""
        project = self._project(project_id)
        if project is None:
            return CommandResult.not_found('Projeto não encontrado')
        if not project.is_owner(self.user_id):
            return CommandResult.forbidden('Apenas o criador pode excluir o projeto')

        pid = project.id
        self._forget_project(pid)

        logger.info(f"🗑️ Projeto '{project.name}' excluído")
        return self._commit([
            delete(TaskComment, task__project_id=pid),
            delete(Task, project_id=pid),
            delete(Section, project_id=pid),
            delete(ProjectMember, project_id=pid),
            delete(ProjectRole, project_id=pid),
            delete(Project, id=pid),
        ], value=True)

    def leave_project(self, project_id):
        if self.user_id is None:
            return CommandResult.refused('Usuário não autenticado')
        project = self._project(project_id)
        if project is None:
            return CommandResult.not_found('Projeto não encontrado')
        if project.is_owner(self.user_id):
            return CommandResult.forbidden('O criador não pode sair do projeto - exclua-o')

        commands = [delete(ProjectMember, project_id=project.id, user_id=self.user_id)]
        commands.extend(self._unassign_user(project.id, self.user_id))
        self._forget_project(project.id)
        return self._commit(commands, value=True)

    def get_invite_code(self):
        current = self.get_current_project()
        return current['project'].invite_code if current else ''

    # =================== MEMBROS ===================

    def get_project_members(self, project_id=None):
        pid = self._pid(project_id)
        if pid is None:
            return []
        result = []
        for membership in self.members:
            if membership.project_id != pid:
                continue
            result.append({
                'membership': membership,
                'user': self.get_user(membership.user_id),
                'role_titles': list(membership.role_titles),
            })
        return result

    def get_member_roles(self, user_id, project_id=None):
        membership = self._membership(self._pid(project_id), user_id)
        return list(membership.role_titles) if membership else []

    def toggle_member_role(self, user_id, role_title):
        """Adiciona o papel se ausente, remove se presente (mantendo ao menos um)"""
        if not self.can_edit_roles():
            return CommandResult.forbidden('Sem permissão para editar papéis')
        project = self._project(self.current_project_id)
        membership = self._membership(self.current_project_id, user_id)
        if project is None or membership is None:
            return CommandResult.not_found('Membro não encontrado')
        if project.is_owner(user_id) and role_title == OWNER_ROLE:
            return CommandResult.forbidden('O papel Owner não pode ser removido do criador')
        if role_title not in self.get_available_role_names():
            return CommandResult.refused(f'Papel "{role_title}" não existe neste projeto')

        if role_title in membership.role_titles:
            if len(membership.role_titles) <= 1:
                return CommandResult.refused('O membro precisa manter ao menos um papel')
            membership.role_titles = [r for r in membership.role_titles if r != role_title]
        else:
            membership.role_titles = membership.role_titles + [role_title]

        return self._commit([update(membership, 'role_titles')], value=list(membership.role_titles))

    def set_member_roles(self, user_id, role_titles):
        """Substitui todos os papéis do membro"""
        if not self.can_edit_roles():
            return CommandResult.forbidden('Sem permissão para editar papéis')
        project = self._project(self.current_project_id)
        membership = self._membership(self.current_project_id, user_id)
        if project is None or membership is None:
            return CommandResult.not_found('Membro não encontrado')

        membership.role_titles = list(role_titles or [])
        membership.enforce_role_invariants(project.created_by_id)
        return self._commit([update(membership, 'role_titles')], value=list(membership.role_titles))

    def remove_member(self, user_id):
        if not self.can_delete_member():
            return CommandResult.forbidden('Sem permissão para remover membros')
        project = self._project(self.current_project_id)
        if project is None:
            return CommandResult.not_found('Projeto não encontrado')
        if project.is_owner(user_id):
            return CommandResult.forbidden('O criador do projeto não pode ser removido')
        membership = self._membership(project.id, user_id)
        if membership is None:
            return CommandResult.not_found('Membro não encontrado')

        self.members.remove(membership)
        commands = [delete(ProjectMember, project_id=project.id, user_id=user_id)]
        commands.extend(self._unassign_user(project.id, user_id))
        return self._commit(commands, value=True)

    # =================== PAPÉIS ===================

    def get_project_roles(self, project_id=None):
        pid = self._pid(project_id)
        if pid is None:
            return []
        return [r for r in self.roles if r.project_id == pid]

    def get_available_role_names(self, project_id=None):
        return [r.name for r in self.get_project_roles(project_id)]

    def add_project_role(self, name, color=None, permissions=None):
        if not self.can_edit_roles():
            return CommandResult.forbidden('Sem permissão para editar papéis')
        name = (name or '').strip()
        if not name:
            return CommandResult.refused('Nome do papel é obrigatório')

        existing = next(
            (r for r in self.get_project_roles() if r.name.lower() == name.lower()),
            None
        )
        if existing is not None:
            return CommandResult(ok=True, value=existing)

        role = ProjectRole(
            project_id=self.current_project_id,
            name=name,
            color=color or pick_role_color(),
            created_at=self.now(),
        )
        role.permissions = RolePermissions().merged(permissions or {})
        self.roles.append(role)
        return self._commit([insert(role)], value=role)

    def update_role_permissions(self, role_id, changes):
        if not self.can_edit_roles():
            return CommandResult.forbidden('Sem permissão para editar papéis')
        role = self._role(role_id)
        if role is None or role.project_id != self.current_project_id:
            return CommandResult.not_found('Papel não encontrado')
        if role.is_protected:
            return CommandResult.forbidden('O papel Owner não pode ser editado')

        role.permissions = role.permissions.merged(changes or {})
        return self._commit([update(role, *RolePermissions.names())], value=role)

    def delete_project_role(self, role_id):
        """Remove o papel, retirando-o dos membros e das seções"""
        if not self.can_edit_roles():
            return CommandResult.forbidden('Sem permissão para editar papéis')
        role = self._role(role_id)
        if role is None or role.project_id != self.current_project_id:
            return CommandResult.not_found('Papel não encontrado')
        if role.is_protected:
            return CommandResult.forbidden('O papel Owner não pode ser excluído')

        project = self._project(role.project_id)
        self.roles.remove(role)
        commands = [delete(ProjectRole, id=role.id)]

        for membership in self.members:
            if membership.project_id != role.project_id or role.name not in membership.role_titles:
                continue
            membership.role_titles = [r for r in membership.role_titles if r != role.name]
            membership.enforce_role_invariants(project.created_by_id)
            commands.append(update(membership, 'role_titles'))

        for section in self.sections:
            if section.project_id != role.project_id or role.name not in section.allowed_roles:
                continue
            section.allowed_roles = [r for r in section.allowed_roles if r != role.name]
            commands.append(update(section, 'allowed_roles'))

        return self._commit(commands, value=True)

    def get_current_user_role_names(self):
        if self.user_id is None or self.current_project_id is None:
            return []
        return self.get_member_roles(self.user_id)

    def get_current_user_roles(self):
        names = self.get_current_user_role_names()
        return [r for r in self.get_project_roles() if r.name in names]

    def effective_permissions(self):
        project = self._project(self.current_project_id)
        if project is None or self.user_id is None:
            return RolePermissions()
        return TeamSyncPermissions.effective_permissions(
            project, self.user_id, self.get_current_user_role_names(), self.get_project_roles()
        )

    def has_permission(self, permission):
        return TeamSyncPermissions.has_permission(
            self._project(self.current_project_id),
            self.user_id,
            self.get_current_user_role_names(),
            self.get_project_roles(),
            permission,
        )

    def can_invite(self):
        return self.has_permission('can_invite')

    def can_delete_task(self):
        return self.has_permission('can_delete_task')

    def can_delete_member(self):
        return self.has_permission('can_delete_member')

    def can_add_section(self):
        return self.has_permission('can_add_section')

    def can_edit_roles(self):
        return self.has_permission('can_edit_roles')

    # =================== SEÇÕES ===================

    def get_sections(self, project_id=None):
        pid = self._pid(project_id)
        if pid is None:
            return []
        return sorted((s for s in self.sections if s.project_id == pid), key=lambda s: s.order)

    def create_section(self, name, color=None, allowed_roles=None):
        if not self.can_add_section():
            return CommandResult.forbidden('Sem permissão para criar seções')
        name = (name or '').strip()
        if not name:
            return CommandResult.refused('Nome da seção é obrigatório')

        section = Section(
            project_id=self.current_project_id,
            name=name,
            color=color or DEFAULT_SECTION_COLOR,
            order=len(self.get_sections()),
            allowed_roles=list(allowed_roles) if allowed_roles else [OWNER_ROLE],
            created_at=self.now(),
        )
        self.sections.append(section)
        return self._commit([insert(section)], value=section)

    def update_section(self, section_id, name=None, color=None, allowed_roles=None):
        section = self._section(section_id)
        if section is None or section.project_id != self.current_project_id:
            return CommandResult.not_found('Seção não encontrada')
        if not self.effective_permissions().is_admin:
            return CommandResult.forbidden('Sem permissão para editar a seção')

        changed = []
        if name and name.strip():
            section.name = name.strip()
            changed.append('name')
        if color:
            section.color = color
            changed.append('color')
        if allowed_roles is not None:
            section.allowed_roles = list(allowed_roles)
            changed.append('allowed_roles')

        if not changed:
            return CommandResult(ok=True, value=section)
        return self._commit([update(section, *changed)], value=section)

    def update_section_roles(self, section_id, allowed_roles):
        return self.update_section(section_id, allowed_roles=allowed_roles)

    def delete_section(self, section_id):
        """Exclui a seção com suas tarefas e os comentários delas"""
        section = self._section(section_id)
        if section is None or section.project_id != self.current_project_id:
            return CommandResult.not_found('Seção não encontrada')
        if not self.effective_permissions().is_admin:
            return CommandResult.forbidden('Sem permissão para excluir a seção')

        task_ids = {t.id for t in self.tasks if t.section_id == section.id}
        self.comments[:] = [c for c in self.comments if c.task_id not in task_ids]
        self.tasks[:] = [t for t in self.tasks if t.section_id != section.id]
        self.sections.remove(section)

        return self._commit([
            delete(TaskComment, task__section_id=section.id),
            delete(Task, section_id=section.id),
            delete(Section, id=section.id),
        ], value=True)

    def can_edit_section(self, section_id):
        return TeamSyncPermissions.can_edit_section(
            self.get_current_user_role_names(),
            self._section(section_id)
        )

    def get_section_allowed_roles_text(self, section_id):
        section = self._section(section_id)
        return section.allowed_roles_text() if section else ''

    # =================== TAREFAS ===================

    def get_tasks(self, section_id):
        section_id = as_uuid(section_id)
        return [
            {'task': t, 'assignees': self._assignee_entries(t)}
            for t in self.tasks if t.section_id == section_id
        ]

    def get_task(self, task_id):
        return self._task(task_id)

    def get_task_comment_count(self, task_id):
        task_id = as_uuid(task_id)
        return sum(1 for c in self.comments if c.task_id == task_id)

    def _validate_assignees(self, project_id, assignees):
        assignees = list(dict.fromkeys(assignees or []))
        outsiders = [uid for uid in assignees if self._membership(project_id, uid) is None]
        if outsiders:
            return None, f'Usuários não pertencem ao projeto: {outsiders}'
        return assignees, None

    def create_task(self, section_id, title, description=None, priority='MEDIUM',
                    status=Task.STATUS_ACTIVE, assigned_to_list=None, deadline=None):
        section = self._section(section_id)
        if section is None or section.project_id != self.current_project_id:
            return CommandResult.not_found('Seção não encontrada')
        if not self.can_edit_section(section.id):
            return CommandResult.forbidden('Sem permissão para editar tarefas desta seção')

        title = (title or '').strip()
        if not title:
            return CommandResult.refused('Título é obrigatório')
        if priority not in PRIORITIES:
            return CommandResult.refused(f'Prioridade inválida: {priority}')
        if status not in (Task.STATUS_ACTIVE, Task.STATUS_DONE):
            return CommandResult.refused(f'Status inicial inválido: {status}')

        assignees, error = self._validate_assignees(section.project_id, assigned_to_list)
        if error:
            return CommandResult.refused(error)

        now = self.now()
        task = Task(
            project_id=section.project_id,
            section_id=section.id,
            title=title,
            description=description or None,
            status=status,
            priority=priority,
            deadline=deadline,
            assigned_to_list=assignees,
            working_on_by=[],
            working_on_started=None,
            created_at=now,
            updated_at=now,
        )
        self.tasks.append(task)
        return self._commit([insert(task)], value=task)

    def update_task(self, task_id, **changes):
        """
        Atualiza campos editáveis da tarefa

        O status só muda por toggle_task_status ou pela varredura de prazos
        """
        task = self._task(task_id)
        if task is None or task.project_id != self.current_project_id:
            return CommandResult.not_found('Tarefa não encontrada')

        unknown = set(changes) - set(TASK_EDITABLE_FIELDS)
        if unknown:
            return CommandResult.refused(f'Campos não editáveis: {sorted(unknown)}')
        if not self.can_edit_section(task.section_id):
            return CommandResult.forbidden('Sem permissão para editar tarefas desta seção')

        if 'section_id' in changes:
            target = self._section(changes['section_id'])
            if target is None or target.project_id != task.project_id:
                return CommandResult.not_found('Seção de destino não encontrada')
            if not self.can_edit_section(target.id):
                return CommandResult.forbidden('Sem permissão para mover para esta seção')
            changes['section_id'] = target.id

        if 'title' in changes:
            changes['title'] = (changes['title'] or '').strip()
            if not changes['title']:
                return CommandResult.refused('Título é obrigatório')
        if 'priority' in changes and changes['priority'] not in PRIORITIES:
            return CommandResult.refused(f"Prioridade inválida: {changes['priority']}")

        changed = list(changes)
        if 'assigned_to_list' in changes:
            assignees, error = self._validate_assignees(task.project_id, changes['assigned_to_list'])
            if error:
                return CommandResult.refused(error)
            changes['assigned_to_list'] = assignees
            # Quem deixou de estar atribuído para de trabalhar na tarefa
            working = [uid for uid in task.working_on_by if uid in assignees]
            if working != task.working_on_by:
                task.working_on_by = working
                if not working:
                    task.working_on_started = None
                changed.extend(['working_on_by', 'working_on_started'])

        if 'description' in changes:
            changes['description'] = changes['description'] or None

        for key, value in changes.items():
            setattr(task, key, value)
        task.updated_at = self.now()
        changed.append('updated_at')

        return self._commit([update(task, *changed)], value=task)

    def toggle_task_status(self, task_id):
        """ACTIVE <-> DONE. Tarefas FAILED não voltam"""
        task = self._task(task_id)
        if task is None or task.project_id != self.current_project_id:
            return CommandResult.not_found('Tarefa não encontrada')
        if not self.can_edit_section(task.section_id):
            return CommandResult.forbidden('Sem permissão para editar tarefas desta seção')

        new_status = task.toggled_status()
        if new_status is None:
            return CommandResult.refused('Tarefa com prazo expirado não pode ser reaberta')

        task.status = new_status
        task.updated_at = self.now()
        return self._commit([update(task, 'status', 'updated_at')], value=new_status)

    def delete_task(self, task_id):
        task = self._task(task_id)
        if task is None or task.project_id != self.current_project_id:
            return CommandResult.not_found('Tarefa não encontrada')
        if not self.can_delete_task():
            return CommandResult.forbidden('Sem permissão para excluir tarefas')

        self.tasks.remove(task)
        self.comments[:] = [c for c in self.comments if c.task_id != task.id]
        return self._commit([
            delete(TaskComment, task_id=task.id),
            delete(Task, id=task.id),
        ], value=True)

    # =================== TRABALHANDO EM ===================

    def can_work_on_task(self, task_id):
        task = self._task(task_id)
        if task is None:
            return False
        return TeamSyncPermissions.can_work_on_task(
            self.user_id,
            self.get_member_roles(self.user_id, task.project_id),
            task,
            self._section(task.section_id),
        )

    def start_working_on(self, task_id):
        """
        Marca o usuário como trabalhando na tarefa

        Vários responsáveis podem trabalhar na mesma tarefa, e um usuário
        pode trabalhar em várias tarefas ao mesmo tempo.
        """
        if self.user_id is None:
            return CommandResult.refused('Usuário não autenticado')
        task = self._task(task_id)
        if task is None:
            return CommandResult.not_found('Tarefa não encontrada')
        if not self.can_work_on_task(task.id):
            return CommandResult.forbidden('Apenas responsáveis com acesso à seção podem trabalhar na tarefa')
        if task.is_terminal:
            return CommandResult.refused('Tarefa concluída ou expirada')

        if self.user_id in task.working_on_by:
            return CommandResult(ok=True, value=task)

        now = self.now()
        task.working_on_by = task.working_on_by + [self.user_id]
        if not task.working_on_started:
            task.working_on_started = now
        task.updated_at = now
        return self._commit(
            [update(task, 'working_on_by', 'working_on_started', 'updated_at')],
            value=task
        )

    def stop_working_on(self, task_id):
        if self.user_id is None:
            return CommandResult.refused('Usuário não autenticado')
        task = self._task(task_id)
        if task is None:
            return CommandResult.not_found('Tarefa não encontrada')
        if self.user_id not in task.working_on_by:
            return CommandResult.refused('Usuário não está trabalhando nesta tarefa')

        task.working_on_by = [uid for uid in task.working_on_by if uid != self.user_id]
        if not task.working_on_by:
            task.working_on_started = None
        task.updated_at = self.now()
        return self._commit(
            [update(task, 'working_on_by', 'working_on_started', 'updated_at')],
            value=task
        )

    def get_working_on_users(self, task_id):
        task = self._task(task_id)
        if task is None:
            return []
        return [u for u in (self.get_user(uid) for uid in task.working_on_by) if u is not None]

    def is_current_user_working_on(self, task_id):
        task = self._task(task_id)
        return bool(task and self.user_id in task.working_on_by)

    def get_user_working_on_tasks(self, user_id):
        """Tarefas não concluídas do projeto ativo em que o usuário está trabalhando"""
        project = self._project(self.current_project_id)
        if project is None:
            return []

        result = []
        for task in self.tasks:
            if task.project_id != project.id or user_id not in task.working_on_by:
                continue
            if task.status == Task.STATUS_DONE:
                continue
            section = self._section(task.section_id)
            result.append({
                'task': task,
                'section_name': section.name if section else '',
                'project_name': project.name,
            })
        return result

    # =================== PRAZOS ===================

    def get_overdue_tasks(self):
        """Tarefas com prazo anterior a hoje e ainda não concluídas"""
        if self.current_project_id is None:
            return []
        today = start_of_day(self.now())
        return [
            {'task': t, 'assignees': self._assignee_entries(t)}
            for t in self.tasks
            if t.project_id == self.current_project_id
            and t.status != Task.STATUS_DONE
            and t.deadline
            and t.deadline < today
        ]

    def check_and_fail_expired_tasks(self):
        """
        Varredura de prazos do projeto ativo

        Toda tarefa ACTIVE com prazo antes do fim do dia atual vira FAILED,
        e a lista de quem trabalha nela é limpa. O valor do resultado é a
        quantidade de tarefas alteradas.
        """
        if self.current_project_id is None:
            return CommandResult(ok=True, value=0)

        now = self.now()
        cutoff = end_of_day(now)
        commands = []
        for task in self.tasks:
            if task.project_id != self.current_project_id:
                continue
            if task.fail_if_expired(cutoff, now):
                commands.append(update(task, 'status', 'working_on_by', 'working_on_started', 'updated_at'))

        if not commands:
            return CommandResult(ok=True, value=0)

        logger.info(f"⏰ {len(commands)} tarefas expiradas marcadas como FAILED")
        return self._commit(commands, value=len(commands))

    def get_failed_tasks(self):
        return [
            t for t in self.tasks
            if t.project_id == self.current_project_id and t.status == Task.STATUS_FAILED
        ]

    # =================== BUSCA ===================

    def search_tasks(self, query):
        """
        Busca sem distinção de maiúsculas em título, descrição e
        nome/usuário dos responsáveis, apenas no projeto ativo
        """
        query = (query or '').strip().lower()
        if not query or self.current_project_id is None:
            return []

        def matches(task):
            if query in task.title.lower():
                return True
            if task.description and query in task.description.lower():
                return True
            for user_id in task.assigned_to_list:
                user = self.get_user(user_id)
                if user and (query in user.display_name.lower() or query in user.username.lower()):
                    return True
            return False

        results = []
        for task in self.tasks:
            if task.project_id != self.current_project_id or not matches(task):
                continue
            section = self._section(task.section_id)
            results.append({
                'task': task,
                'section_name': section.name if section else '',
                'section_color': section.color if section else DEFAULT_SECTION_COLOR,
                'assignees': self._assignee_entries(task),
            })
        return results

    # =================== COMENTÁRIOS ===================

    def get_task_comments(self, task_id):
        task_id = as_uuid(task_id)
        return sorted((c for c in self.comments if c.task_id == task_id), key=lambda c: c.timestamp)

    def add_task_comment(self, task_id, text):
        if self.user_id is None:
            return CommandResult.refused('Usuário não autenticado')
        task = self._task(task_id)
        if task is None or self._membership(task.project_id, self.user_id) is None:
            return CommandResult.not_found('Tarefa não encontrada')
        text = (text or '').strip()
        if not text:
            return CommandResult.refused('Comentário não pode estar vazio')

        user = self.get_current_user()
        comment = TaskComment(
            task_id=task.id,
            user_id=self.user_id,
            user_name=user.display_name if user else 'Unknown',
            text=text,
            timestamp=self.now(),
        )
        self.comments.append(comment)
        return self._commit([insert(comment)], value=comment)

    def apply_remote_comment(self, payload):
        """
        Incorpora um comentário vindo do feed em tempo real

        Ignora duplicados (mesmo id) e tarefas fora do snapshot. Retorna True se incorporou
        """
        comment_id = as_uuid(payload.get('id'))
        task = self._task(payload.get('task_id'))
        if comment_id is None or task is None:
            return False
        if any(c.id == comment_id for c in self.comments):
            return False

        timestamp = payload.get('timestamp')
        if isinstance(timestamp, str):
            timestamp = parse_datetime(timestamp)

        self.comments.append(TaskComment(
            id=comment_id,
            task_id=task.id,
            user_id=payload.get('user_id'),
            user_name=payload.get('user_name') or 'Unknown',
            text=payload.get('text', ''),
            timestamp=timestamp or self.now(),
        ))
        self._notify()
        return True

    # =================== SNAPSHOT DO BOARD ===================

    def board_snapshot(self):
        """Estado serializável do projeto ativo para o board e o WebSocket"""
        current = self.get_current_project()
        if current is None:
            return {}

        project = current['project']
        sections = []
        for section in self.get_sections():
            tasks = []
            for entry in self.get_tasks(section.id):
                task = entry['task']
                tasks.append({
                    **task.as_dict(),
                    'assignees': [
                        {**a['user'].as_dict(), 'role_titles': a['role_titles']}
                        for a in entry['assignees']
                    ],
                    'comment_count': self.get_task_comment_count(task.id),
                })
            sections.append({
                **section.as_dict(),
                'can_edit': self.can_edit_section(section.id),
                'allowed_roles_text': section.allowed_roles_text(),
                'tasks': tasks,
            })

        return {
            'project': project.as_dict(),
            'role': current['role'],
            'is_owner': current['is_owner'],
            'permissions': self.effective_permissions().as_dict(),
            'roles': [r.as_dict() for r in self.get_project_roles()],
            'members': [
                {
                    **m['membership'].as_dict(),
                    'user': m['user'].as_dict() if m['user'] else None,
                    'online': self.is_user_online(m['membership'].user_id),
                }
                for m in self.get_project_members()
            ],
            'sections': sections,
        }
