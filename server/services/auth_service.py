import logging
import time
from collections import namedtuple

import jwt
from flask import current_app, request

from config.database import db
from models.user_model import User

logger = logging.getLogger(__name__)

Identity = namedtuple('Identity', ['user_id', 'display_name', 'role'])


def create_token(user, expires_in=None):
    if expires_in is None:
        expires_in = current_app.config.get('JWT_EXPIRE_SECONDS', 3600)
    payload = {
        'user_id': user.id,
        'name': user.name,
        'role': user.role,
        'exp': int(time.time()) + int(expires_in),
    }
    return jwt.encode(payload, current_app.config['JWT_SECRET'], algorithm=current_app.config['JWT_ALGORITHM'])


def decode_token(token):
    """Return the token claims, or None if the token is missing, expired or forged."""
    if not token:
        return None
    try:
        return jwt.decode(
            token,
            current_app.config['JWT_SECRET'],
            algorithms=[current_app.config['JWT_ALGORITHM']],
        )
    except jwt.PyJWTError as e:
        logger.info("[AUTH] Token rejected: %s", e)
        return None


def resolve_identity(token):
    payload = decode_token(token)
    if not payload or payload.get('user_id') is None:
        return None
    try:
        user = db.session.get(User, int(payload['user_id']))
    except (TypeError, ValueError):
        return None
    if not user:
        logger.info("[AUTH] Token for unknown user_id=%s", payload.get('user_id'))
        return None
    return Identity(str(user.id), user.name, user.role)


def bearer_token():
    auth = request.headers.get('Authorization', '')
    if auth.startswith('Bearer '):
        return auth.split(' ', 1)[1].strip()
    return None
