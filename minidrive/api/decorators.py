"""
JWT authentication decorators for the REST API.
"""
from functools import wraps
from datetime import datetime, timedelta, timezone

import jwt
from flask import request, jsonify, current_app

from minidrive.extensions import db
from minidrive.models.user import User


def _jwt_secret():
    return current_app.config.get('JWT_SECRET_KEY') or current_app.config['SECRET_KEY']


def create_access_token(user_id, expires_minutes=None):
    """Create a JWT access token."""
    if expires_minutes is None:
        expires_minutes = current_app.config['ACCESS_TOKEN_MINUTES']
    payload = {
        'sub': str(user_id),
        'type': 'access',
        'iat': datetime.now(timezone.utc),
        'exp': datetime.now(timezone.utc) + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(payload, _jwt_secret(), algorithm='HS256')


def create_refresh_token(user_id, expires_days=None):
    """Create a JWT refresh token (longer-lived)."""
    if expires_days is None:
        expires_days = current_app.config['REFRESH_TOKEN_DAYS']
    payload = {
        'sub': str(user_id),
        'type': 'refresh',
        'iat': datetime.now(timezone.utc),
        'exp': datetime.now(timezone.utc) + timedelta(days=expires_days),
    }
    return jwt.encode(payload, _jwt_secret(), algorithm='HS256')


def decode_token(token):
    """Decode and validate a JWT token. Returns payload or None."""
    try:
        return jwt.decode(token, _jwt_secret(), algorithms=['HS256'])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def _auth_error(code, message):
    return jsonify({
        'error': {
            'code': code,
            'message': message,
        }
    }), 401


def get_current_api_user():
    """Extract user from Authorization header. Returns (user, error_response)."""
    auth_header = request.headers.get('Authorization', '')
    if not auth_header.startswith('Bearer '):
        return None, _auth_error('missing_token', 'Authorization header with Bearer token required.')

    token = auth_header[7:]  # Strip "Bearer "
    payload = decode_token(token)

    if payload is None:
        return None, _auth_error('invalid_token', 'Token is invalid or expired.')

    if payload.get('type') != 'access':
        return None, _auth_error('wrong_token_type', 'Access token required (not refresh token).')

    try:
        user_id = int(payload['sub'])
    except (KeyError, ValueError, TypeError):
        return None, _auth_error('invalid_token', 'Token contains invalid user ID.')

    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        return None, _auth_error('user_not_found', 'User not found or deactivated.')

    return user, None


def jwt_required(f):
    """Decorator: require valid JWT access token."""
    @wraps(f)
    def decorated(*args, **kwargs):
        user, error = get_current_api_user()
        if error:
            return error
        request.api_user = user
        return f(*args, **kwargs)
    return decorated


def jwt_optional(f):
    """Decorator: authenticate when a bearer token is sent, continue anonymously otherwise.

    A token that is sent but invalid is still rejected.
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        request.api_user = None
        if request.headers.get('Authorization'):
            user, error = get_current_api_user()
            if error:
                return error
            request.api_user = user
        return f(*args, **kwargs)
    return decorated
