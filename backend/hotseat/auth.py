from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app, g, jsonify, request

from hotseat.models import User

JWT_ALGORITHM = 'HS256'


def _secret() -> str:
    return current_app.config.get('JWT_SECRET') or current_app.config['SECRET_KEY']


def issue_token(user: User) -> str:
    """Create a signed bearer token for ``user``."""
    now = datetime.now(timezone.utc)
    minutes = int(current_app.config.get('JWT_EXPIRES_MIN', 60))
    payload = {
        'sub': user.id,
        'email': user.email,
        'iat': now,
        'exp': now + timedelta(minutes=minutes),
    }
    return jwt.encode(payload, _secret(), algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """Raises jwt.ExpiredSignatureError or jwt.InvalidTokenError."""
    return jwt.decode(token, _secret(), algorithms=[JWT_ALGORITHM])


def load_user_from_request(req):
    """Flask-Login request loader for ``Authorization: Bearer <jwt>``.

    Leaves the reason for a rejection in ``g.auth_error`` for the
    unauthorized handler.
    """
    header = req.headers.get('Authorization', '')
    if not header:
        g.auth_error = 'Authorization header is missing'
        return None
    if not header.startswith('Bearer '):
        g.auth_error = 'invalid authorization header'
        return None
    token = header.split(' ', 1)[1].strip()
    try:
        payload = decode_token(token)
    except jwt.ExpiredSignatureError:
        g.auth_error = 'token expired'
        return None
    except jwt.InvalidTokenError:
        g.auth_error = 'invalid token'
        return None
    user_id = payload.get('sub')
    user = User.query.filter_by(id=user_id).first() if user_id else None
    if user is None:
        g.auth_error = 'invalid token'
    return user


def unauthorized():
    message = g.get('auth_error') or 'authentication required'
    current_app.logger.info(f"[auth] rejected {request.method} {request.path}: {message}")
    return jsonify({'error': message}), 401
