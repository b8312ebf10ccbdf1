import os

BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
STORAGE_DIR = os.path.join(BASE_DIR, 'storage')


def _split(value):
    return [v.strip() for v in value.split(',') if v.strip()]


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-change-me')
    JWT_SECRET = os.environ.get('JWT_SECRET', SECRET_KEY)
    JWT_ALGORITHM = os.environ.get('JWT_ALGORITHM', 'HS256')
    JWT_EXPIRE_SECONDS = int(os.environ.get('JWT_EXPIRE_SECONDS', '3600'))

    SQLALCHEMY_DATABASE_URI = (
        os.environ.get('SQLALCHEMY_DATABASE_URI')
        or os.environ.get('DATABASE_URL')
        or f"sqlite:///{os.path.join(STORAGE_DIR, 'campus_chat.db')}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Optional broker so several server processes share one room,
    # e.g. redis://localhost:6379/0
    SOCKETIO_MESSAGE_QUEUE = os.environ.get('SOCKETIO_MESSAGE_QUEUE') or None
    CORS_ALLOWED_ORIGINS = _split(os.environ.get('CORS_ALLOWED_ORIGINS', 'http://localhost:3000,http://127.0.0.1:3000'))

    CHAT_ROOM = os.environ.get('CHAT_ROOM', 'community-chat')
    CHAT_HISTORY_LIMIT = int(os.environ.get('CHAT_HISTORY_LIMIT', '50'))
    MAX_MESSAGE_LENGTH = int(os.environ.get('MAX_MESSAGE_LENGTH', '500'))
    REACTION_EMOJIS = tuple(_split(os.environ.get('REACTION_EMOJIS', '👍,❤️,😂,😮,😢,🔥')))

    SYSTEM_USER_EMAIL = os.environ.get('SYSTEM_USER_EMAIL', 'system@campus-security.local')
