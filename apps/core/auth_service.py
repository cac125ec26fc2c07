# apps/core/auth_service.py

"""
Serviço de Autenticação - Encapsula toda lógica de auth do TeamSync

Cadastro, login (usuário ou email), logout e os dados de sessão
consumidos pelo front-end. Também mantém a sequência de dias ativos.
"""

import logging
from typing import Dict, Optional, Tuple

from django.contrib.auth import authenticate, login, logout
from django.db import models, IntegrityError
from django.utils import timezone

from .models import User

logger = logging.getLogger(__name__)


class AuthenticationService:
    """
    Serviço encapsulado para gerenciar autenticação

    Métodos públicos retornam tuplas (sucesso, mensagem[, usuario])
    """

    def __init__(self):
        self._min_password_length = 6
        self._min_username_length = 3
        self._remember_me_seconds = 86400 * 30

    def register(self, request, data: Dict) -> Tuple[bool, str, Optional[User]]:
        """
        Cria usuário e já inicia a sessão

        Args:
            request: Request do Django
            data: Dict com username, email, password, full_name, surname

        Returns:
            Tuple[sucesso, mensagem, usuario_criado]
        """
        valid, error = self._validate_registration(data)
        if not valid:
            return False, error, None

        if self._user_exists(data['username'], data['email']):
            return False, "Usuário ou email já cadastrado", None

        try:
            user = User.objects.create_user(
                username=data['username'].strip(),
                email=data['email'].strip().lower(),
                password=data['password'],
                first_name=data.get('full_name', '').strip(),
                last_name=data.get('surname', '').strip(),
                streak=1,
                last_active=timezone.now(),
            )
        except IntegrityError as e:
            logger.warning(f"⚠️ Cadastro concorrente para '{data['username']}': {e}")
            return False, "Usuário ou email já cadastrado", None

        login(request, user, backend='django.contrib.auth.backends.ModelBackend')
        logger.info(f"✅ Usuário registrado: {user.username}")
        return True, "Conta criada com sucesso!", user

    def login(self, request, identifier: str, password: str, remember_me: bool = False) -> Tuple[bool, str, Optional[User]]:
        """
        Realiza login por nome de usuário ou email

        Sucesso atualiza a sequência de dias e o último acesso
        """
        user = self._authenticate(identifier, password)

        if user is None:
            logger.info(f"⚠️ Tentativa de login falhada para: {identifier}")
            return False, "Credenciais inválidas", None

        login(request, user)

        if remember_me:
            request.session.set_expiry(self._remember_me_seconds)

        self.touch(user)
        return True, f"Bem-vindo, {user.display_name}!", user

    def logout(self, request) -> bool:
        """Encerra a sessão"""
        username = getattr(request.user, 'username', None)
        logout(request)
        if username:
            logger.info(f"👋 Logout: {username}")
        return True

    def touch(self, user: User, now=None) -> int:
        """Atualiza streak e last_active, retorna a sequência atual"""
        streak = user.update_streak(now)
        user.last_login = user.last_active
        user.save(update_fields=['streak', 'last_active', 'last_login'])
        return streak

    def session_payload(self, request) -> Dict:
        """Dados da sessão atual para o cliente"""
        user = request.user
        if not user.is_authenticated:
            return {'authenticated': False, 'user': None}

        return {
            'authenticated': True,
            'user': user.as_dict(),
            'current_project_id': request.session.get('current_project_id'),
        }

    # =================== MÉTODOS PRIVADOS ===================

    def _validate_registration(self, data: Dict) -> Tuple[bool, str]:
        for field in ['username', 'email', 'password']:
            if not (data.get(field) or '').strip():
                return False, f"Campo {field} é obrigatório"

        email = data['email']
        if '@' not in email or '.' not in email.split('@')[-1]:
            return False, "Email inválido"

        if len(data['password']) < self._min_password_length:
            return False, f"Senha deve ter pelo menos {self._min_password_length} caracteres"

        username = data['username'].strip()
        if ' ' in username or len(username) < self._min_username_length:
            return False, "Nome de usuário deve ter pelo menos 3 caracteres e não conter espaços"

        return True, ""

    def _user_exists(self, username: str, email: str) -> bool:
        return User.objects.filter(
            models.Q(username__iexact=username.strip()) | models.Q(email__iexact=email.strip())
        ).exists()

    def _authenticate(self, identifier: str, password: str) -> Optional[User]:
        """Autentica por username e, se falhar, por email"""
        identifier = (identifier or '').strip()
        user = authenticate(username=identifier, password=password)

        if user is None and '@' in identifier:
            match = User.objects.filter(email__iexact=identifier, is_active=True).first()
            if match is not None:
                user = authenticate(username=match.username, password=password)

        return user


# Instância global do serviço
auth_service = AuthenticationService()
