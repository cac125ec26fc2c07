# apps/core/forms.py

from django import forms
from django.core.exceptions import ValidationError

from .models import RolePermissions, Task


def clean_string_list(value, label):
    """JSONField devolve None para lista vazia"""
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValidationError(f"{label} deve ser uma lista de textos")
    return [item.strip() for item in value if item.strip()]


class LoginForm(forms.Form):
    """Formulário de login - aceita usuário ou email"""

    username = forms.CharField(label='Usuário ou Email', max_length=150)
    password = forms.CharField(label='Senha')
    remember_me = forms.BooleanField(label='Lembrar-me', required=False)


class RegistrationForm(forms.Form):
    """Formulário de cadastro de usuário"""

    username = forms.CharField(label='Usuário', min_length=3, max_length=150)
    email = forms.EmailField(label='Email')
    password = forms.CharField(label='Senha', min_length=6)
    confirm_password = forms.CharField(label='Confirmar Senha', required=False)
    full_name = forms.CharField(label='Nome', max_length=150, required=False)
    surname = forms.CharField(label='Sobrenome', max_length=150, required=False)

    def clean_confirm_password(self):
        """Valida se senhas coincidem (quando informada)"""
        password = self.cleaned_data.get('password')
        confirm_password = self.cleaned_data.get('confirm_password')

        if password and confirm_password and password != confirm_password:
            raise ValidationError("As senhas não coincidem")

        return confirm_password


class ProjectForm(forms.Form):
    name = forms.CharField(label='Nome do Projeto', max_length=200)


class JoinProjectForm(forms.Form):
    invite_code = forms.CharField(label='Código de Convite', max_length=16)

    def clean_invite_code(self):
        return self.cleaned_data['invite_code'].strip().lower()


class SectionForm(forms.Form):
    """Criação e edição de seções"""

    name = forms.CharField(label='Nome', max_length=100, required=False)
    color = forms.RegexField(
        label='Cor',
        regex=r'^#[0-9a-fA-F]{6}$',
        required=False,
        error_messages={'invalid': 'Cor deve estar no formato #RRGGBB'}
    )
    allowed_roles = forms.JSONField(label='Papéis autorizados', required=False)

    def clean_allowed_roles(self):
        return clean_string_list(self.cleaned_data.get('allowed_roles'), 'Papéis autorizados')


class TaskForm(forms.Form):
    """
    Criação e edição de tarefas

    Na edição apenas os campos enviados são aplicados
    """

    title = forms.CharField(label='Título', max_length=200, required=False)
    description = forms.CharField(label='Descrição', required=False)
    priority = forms.ChoiceField(label='Prioridade', choices=Task.PRIORITY_CHOICES, required=False)
    status = forms.ChoiceField(
        label='Status',
        choices=[(Task.STATUS_ACTIVE, 'Ativa'), (Task.STATUS_DONE, 'Concluída')],
        required=False
    )
    deadline = forms.DateTimeField(label='Prazo', required=False)
    assigned_to_list = forms.JSONField(label='Responsáveis', required=False)
    section_id = forms.UUIDField(label='Seção', required=False)

    def clean_assigned_to_list(self):
        value = self.cleaned_data.get('assigned_to_list')
        if value is None:
            return []
        if not isinstance(value, list):
            raise ValidationError("Responsáveis deve ser uma lista de ids")
        try:
            return [int(user_id) for user_id in value]
        except (TypeError, ValueError):
            raise ValidationError("Responsáveis deve ser uma lista de ids")


class RoleForm(forms.Form):
    """Criação de papéis e alteração de permissões"""

    name = forms.CharField(label='Nome do Papel', max_length=100, required=False)
    color = forms.RegexField(
        label='Cor',
        regex=r'^#[0-9a-fA-F]{6}$',
        required=False,
        error_messages={'invalid': 'Cor deve estar no formato #RRGGBB'}
    )
    permissions = forms.JSONField(label='Permissões', required=False)

    def clean_permissions(self):
        value = self.cleaned_data.get('permissions') or {}
        if not isinstance(value, dict):
            raise ValidationError("Permissões deve ser um objeto")
        unknown = set(value) - set(RolePermissions.names())
        if unknown:
            raise ValidationError(f"Permissões desconhecidas: {', '.join(sorted(unknown))}")
        return {key: bool(flag) for key, flag in value.items()}


class MemberRoleToggleForm(forms.Form):
    role_title = forms.CharField(label='Papel', max_length=100)

    def clean_role_title(self):
        if not isinstance(self.data.get('role_title'), str):
            raise ValidationError("Papel deve ser um texto")
        return self.cleaned_data['role_title']


class MemberRolesForm(forms.Form):
    role_titles = forms.JSONField(label='Papéis')

    def clean_role_titles(self):
        return clean_string_list(self.cleaned_data.get('role_titles'), 'Papéis')


class CommentForm(forms.Form):
    text = forms.CharField(label='Comentário', max_length=5000)


class SearchForm(forms.Form):
    q = forms.CharField(label='Busca', required=False, max_length=200)
