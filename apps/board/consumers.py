# apps/board/consumers.py

import json
import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from django.conf import settings
from django.utils import timezone

from apps.core.store import WorkspaceStore

logger = logging.getLogger(__name__)


class ProjectConsumer(AsyncWebsocketConsumer):
    """
    Consumer WebSocket para atualizações em tempo real do projeto

    Funcionalidades:
    - Novos comentários de tarefas (sem duplicados por conexão)
    - Refresh do board após mutações de outros membros
    - Indicação de usuários online e digitando
    - Sincronização sob demanda
    """

    async def connect(self):
        """
        Conecta usuário ao grupo do projeto
        Verifica se é membro antes de aceitar a conexão
        """
        self.project_id = self.scope['url_route']['kwargs']['project_id']
        self.project_group_name = f'project_{self.project_id}'
        self.user = self.scope['user']

        if not self.user.is_authenticated:
            logger.warning("❌ Conexão WebSocket rejeitada - usuário não autenticado")
            await self.close()
            return

        # Cada conexão mantém a própria store para deduplicar eventos
        self.store = await self.load_store()
        if self.store is None:
            logger.warning(f"❌ Conexão WebSocket rejeitada - {self.user.username} sem acesso ao projeto {self.project_id}")
            await self.close()
            return

        await self.channel_layer.group_add(
            self.project_group_name,
            self.channel_name
        )

        await self.accept()

        # Notificar outros membros que alguém entrou
        await self.channel_layer.group_send(
            self.project_group_name,
            {
                'type': 'user_joined',
                'message': self.user_message()
            }
        )

        logger.info(f"✅ WebSocket conectado - {self.user.username} no projeto {self.project_id}")

    async def disconnect(self, close_code):
        if getattr(self, 'store', None) is not None:
            await self.channel_layer.group_send(
                self.project_group_name,
                {
                    'type': 'user_left',
                    'message': self.user_message()
                }
            )

            await self.channel_layer.group_discard(
                self.project_group_name,
                self.channel_name
            )

        logger.info(f"🔌 WebSocket desconectado - {self.user} do projeto {self.project_id}")

    async def receive(self, text_data=None, bytes_data=None):
        """
        Recebe mensagens do cliente WebSocket
        Processa diferentes tipos de eventos
        """
        try:
            data = json.loads(text_data or '')
        except json.JSONDecodeError:
            logger.error(f"❌ JSON inválido recebido via WebSocket de {self.user.username}")
            return

        message_type = data.get('type') if isinstance(data, dict) else None

        # Heartbeat/Ping
        if message_type == 'ping':
            await self.send_json({
                'type': 'pong',
                'interval': getattr(settings, 'TEAMSYNC_WS_HEARTBEAT_INTERVAL', 30),
                'timestamp': self.get_timestamp()
            })

        # Notificação de usuário digitando comentário
        elif message_type == 'typing_comment':
            await self.channel_layer.group_send(
                self.project_group_name,
                {
                    'type': 'user_typing',
                    'message': {
                        **self.user_message(),
                        'task_id': data.get('task_id'),
                        'is_typing': data.get('is_typing', True),
                    }
                }
            )

        # Sincronização de estado do board
        elif message_type == 'sync_board':
            board = await self.resync_board()
            await self.send_json({
                'type': 'board_sync',
                'board': board,
                'timestamp': self.get_timestamp()
            })

        else:
            logger.warning(f"⚠️ Tipo de mensagem WebSocket desconhecido: {message_type}")

    # === Handlers para eventos do grupo ===

    async def comment_added(self, event):
        """
        Novo comentário de tarefa

        Repassa apenas se a store desta conexão ainda não o conhecia
        """
        message = event['message']
        if self.store.apply_remote_comment(message):
            await self.send_json({
                'type': 'comment_added',
                'message': message
            })

    async def board_refresh(self, event):
        """
        Outro membro alterou o board - recarrega a store da conexão
        """
        await self.resync_board()
        await self.send_json({
            'type': 'board_refresh',
            'message': event['message']
        })

    async def member_joined(self, event):
        await self.send_json({
            'type': 'member_joined',
            'message': event['message']
        })

    async def user_joined(self, event):
        await self.forward_from_others('user_joined', event['message'])

    async def user_left(self, event):
        await self.forward_from_others('user_left', event['message'])

    async def user_typing(self, event):
        await self.forward_from_others('user_typing', event['message'])

    # === Métodos auxiliares ===

    async def forward_from_others(self, event_type, message):
        # Não enviar para o próprio usuário
        if message['user_id'] != self.user.id:
            await self.send_json({
                'type': event_type,
                'message': message
            })

    async def send_json(self, content):
        await self.send(text_data=json.dumps(content, default=str))

    @database_sync_to_async
    def load_store(self):
        """Store da conexão, ou None se o usuário não é membro do projeto"""
        store = WorkspaceStore(self.user)
        store.resync()
        if not store.set_current_project(self.project_id):
            return None
        return store

    @database_sync_to_async
    def resync_board(self):
        self.store.resync()
        self.store.set_current_project(self.project_id)
        return self.store.board_snapshot()

    def user_message(self):
        return {
            'username': self.user.display_name,
            'user_id': self.user.id,
            'timestamp': self.get_timestamp()
        }

    def get_timestamp(self):
        return timezone.now().isoformat()
