import pytest

from app import create_app
from config.database import db
from config.settings import Config
from models.user_model import User
from services.auth_service import create_token


class ChatTestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    JWT_SECRET = 'test-secret'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SOCKETIO_MESSAGE_QUEUE = None
    CORS_ALLOWED_ORIGINS = ['http://localhost:3000']
    SYSTEM_USER_EMAIL = 'security@campus.test'


@pytest.fixture
def app():
    app = create_app(ChatTestConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def users(app):
    alice = User(username='alice', display_name='Alice Okafor', role='student')
    bob = User(username='bob', display_name='Bob Adeyemi', role='student')
    system = User(username='security', display_name='Campus Security',
                  email=ChatTestConfig.SYSTEM_USER_EMAIL, role='admin')
    db.session.add_all([alice, bob, system])
    db.session.commit()
    return {'alice': alice, 'bob': bob, 'system': system}


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        return {'Authorization': f'Bearer {create_token(user)}'}
    return _headers


@pytest.fixture
def http(app):
    return app.test_client()


@pytest.fixture
def connect(app):
    """Open a Socket.IO test client authenticated as the given user."""
    socketio = app.extensions['socketio']
    clients = []

    def _connect(user=None, token=None):
        if token is None and user is not None:
            token = create_token(user)
        client = socketio.test_client(app, auth={'token': token} if token else None)
        clients.append(client)
        return client

    yield _connect
    for client in clients:
        if client.is_connected():
            client.disconnect()


def received(client):
    """(event name, first argument) pairs the client got since the last call."""
    return [(pkt['name'], pkt['args'][0] if pkt['args'] else None) for pkt in client.get_received()]


def payloads(events, name):
    return [args for event, args in events if event == name]
