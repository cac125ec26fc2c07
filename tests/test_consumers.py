# tests/test_consumers.py

import pytest
from channels.db import database_sync_to_async
from channels.layers import get_channel_layer
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from django.contrib.auth.models import AnonymousUser

from apps.board.routing import websocket_urlpatterns

pytestmark = pytest.mark.django_db(transaction=True)


class ForceUser:
    """Injeta o usuário no scope no lugar do AuthMiddlewareStack"""

    def __init__(self, inner, user):
        self.inner = inner
        self.user = user

    async def __call__(self, scope, receive, send):
        return await self.inner(dict(scope, user=self.user), receive, send)


async def connect(user, project_id):
    communicator = WebsocketCommunicator(
        ForceUser(URLRouter(websocket_urlpatterns), user),
        f'/ws/project/{project_id}/'
    )
    connected, _ = await communicator.connect()
    return connected, communicator


async def test_anonymous_is_rejected(project):
    connected, _ = await connect(AnonymousUser(), project.id)
    assert not connected


async def test_non_member_is_rejected(outsider, project):
    connected, _ = await connect(outsider, project.id)
    assert not connected


async def test_ping_pong(owner, project):
    connected, communicator = await connect(owner, project.id)
    assert connected

    await communicator.send_json_to({'type': 'ping'})
    response = await communicator.receive_json_from()

    assert response['type'] == 'pong'
    assert response['interval'] == 30
    await communicator.disconnect()


async def test_sync_board(owner, project, todo):
    _, communicator = await connect(owner, project.id)

    await communicator.send_json_to({'type': 'sync_board'})
    response = await communicator.receive_json_from()

    assert response['type'] == 'board_sync'
    assert response['board']['project']['name'] == 'P1'
    assert [s['name'] for s in response['board']['sections']] == ['To Do']
    await communicator.disconnect()


async def test_presence_comes_from_others(owner, member, project, member_store):
    _, member_socket = await connect(member, project.id)
    assert await member_socket.receive_nothing()

    _, owner_socket = await connect(owner, project.id)
    event = await member_socket.receive_json_from()
    assert event['type'] == 'user_joined'
    assert event['message']['user_id'] == owner.pk
    assert event['message']['username'] == 'Ana Souza'

    await owner_socket.send_json_to({'type': 'typing_comment', 'task_id': 'abc'})
    event = await member_socket.receive_json_from()
    assert event['type'] == 'user_typing'
    assert event['message']['task_id'] == 'abc'
    assert await owner_socket.receive_nothing()

    await owner_socket.disconnect()
    assert (await member_socket.receive_json_from())['type'] == 'user_left'
    await member_socket.disconnect()


async def test_comment_is_delivered_once(owner_store, member, project, todo):
    task = (await database_sync_to_async(owner_store.create_task)(todo.id, 'T')).value
    _, communicator = await connect(member, project.id)

    comment = (await database_sync_to_async(owner_store.add_task_comment)(task.id, 'oi')).value

    event = await communicator.receive_json_from()
    assert event['type'] == 'comment_added'
    assert event['message']['id'] == str(comment.id)
    assert event['message']['text'] == 'oi'

    # O mesmo comentário entregue de novo é descartado
    await get_channel_layer().group_send(
        f'project_{project.id}',
        {'type': 'comment_added', 'message': comment.as_dict()}
    )
    assert await communicator.receive_nothing()
    await communicator.disconnect()


async def test_board_refresh_is_forwarded(owner, member, project, member_store):
    _, communicator = await connect(member, project.id)

    await get_channel_layer().group_send(
        f'project_{project.id}',
        {'type': 'board_refresh', 'message': {'user_id': owner.pk, 'action': 'create_section_view'}}
    )

    event = await communicator.receive_json_from()
    assert event == {'type': 'board_refresh', 'message': {'user_id': owner.pk, 'action': 'create_section_view'}}
    await communicator.disconnect()
