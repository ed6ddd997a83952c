"""Shared fixtures: 每個測試都拿到一個全新的記憶體資料庫"""
import pytest

from app import create_app
from config import TestingConfig
from models import db, ProjectMember


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def register(client, username, password='secret-pass', email=None):
    resp = client.post('/api/register', json={
        'username': username,
        'email': email or f'{username}@example.com',
        'password': password
    })
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


def auth_headers(token):
    return {'Authorization': f'Bearer {token}'}


class Account:
    """測試用帳號: id + 已經帶 token 的 header"""

    def __init__(self, client, username):
        body = register(client, username)
        self.id = body['user']['user_id']
        self.username = username
        self.headers = auth_headers(body['token'])


@pytest.fixture
def make_user(client):
    def _make(username):
        return Account(client, username)
    return _make


@pytest.fixture
def add_member(app):
    """直接寫入成員資料,不經過 API"""
    def _add(project_id, user_id, role='member'):
        with app.app_context():
            db.session.add(ProjectMember(project_id=project_id, user_id=user_id, role=role))
            db.session.commit()
    return _add


@pytest.fixture
def create_project(client):
    def _create(owner, name='Board', content=None):
        resp = client.post('/api/projects', json={'name': name, 'content': content},
                           headers=owner.headers)
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()['project_id']
    return _create


@pytest.fixture
def create_task(client):
    def _create(actor, project_id, **fields):
        payload = {'title': 'Write docs'}
        payload.update(fields)
        resp = client.post(f'/api/projects/{project_id}/tasks', json=payload,
                           headers=actor.headers)
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()['task_id']
    return _create
