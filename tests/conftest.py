# tests/conftest.py

from datetime import datetime, timezone as dt_timezone

import pytest
from django.db import DatabaseError

from apps.core.models import User
from apps.core.repository import DjangoRepository
from apps.core.store import WorkspaceStore

# Meio-dia UTC: longe da virada do dia nas verificações de prazo
NOW = datetime(2026, 3, 10, 12, 0, tzinfo=dt_timezone.utc)


class Clock:
    """Relógio controlável para a store"""

    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now


class FlakyRepository(DjangoRepository):
    """Repositório que falha nas escritas enquanto `offline` for True"""

    def __init__(self):
        self.offline = False
        self.writes = []

    def _check(self, action):
        if self.offline:
            raise DatabaseError(f'{action} indisponível')
        self.writes.append(action)

    def insert(self, instance):
        self._check('insert')
        super().insert(instance)

    def update(self, instance, fields):
        self._check('update')
        super().update(instance, fields)

    def delete(self, model, **filters):
        self._check('delete')
        return super().delete(model, **filters)


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def make_user(db, clock):
    def factory(username, **extra):
        extra.setdefault('email', f'{username}@teamsync.io')
        extra.setdefault('last_active', clock.now)
        return User.objects.create_user(username=username, password='secret123', **extra)

    return factory


@pytest.fixture
def owner(make_user):
    return make_user('ana', first_name='Ana', last_name='Souza')


@pytest.fixture
def member(make_user):
    return make_user('bruno', first_name='Bruno')


@pytest.fixture
def outsider(make_user):
    return make_user('carla')


@pytest.fixture
def make_store(clock):
    def factory(user, repository=None):
        store = WorkspaceStore(user, repository=repository, clock=clock)
        store.resync()
        return store

    return factory


@pytest.fixture
def owner_store(make_store, owner):
    return make_store(owner)


@pytest.fixture
def project(owner_store):
    return owner_store.create_project('P1').value


@pytest.fixture
def member_store(make_store, member, project):
    store = make_store(member)
    assert store.join_project(project.invite_code)
    return store


@pytest.fixture
def todo(owner_store, project, member_store):
    """Seção restrita ao Owner (lista vazia)"""
    owner_store.resync()
    owner_store.set_current_project(project.id)
    return owner_store.create_section('To Do', '#3b82f6', []).value


@pytest.fixture
def shared(owner_store, project, member_store):
    """Seção aberta ao papel Member"""
    owner_store.resync()
    owner_store.set_current_project(project.id)
    return owner_store.create_section('Shared', '#22c55e', ['Owner', 'Member']).value
